"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures every response (including errors) gets X-Request-ID

Shared Resource Lifecycle:
- One httpx.AsyncClient is created at startup and stored in app.state
- The provider registry and the transcription gateway both use it
- The background task supervisor is drained before the client is closed
- The active system prompt is created at startup if none exists
"""

import json
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from luma.api.routes import create_api_router
from luma.config import get_settings
from luma.db.session import create_schema, session_scope
from luma.errors import ApiError, ApiErrorCode
from luma.logging import configure_logging, get_logger
from luma.middleware.request_id import RequestIDMiddleware
from luma.responses import (
    api_error_handler,
    crypto_error_handler,
    error_response,
    http_exception_handler,
    llm_error_handler,
    unhandled_exception_handler,
)
from luma.services.background import BackgroundTaskSupervisor
from luma.services.crypto import CryptoError
from luma.services.llm import EchoAdapter, LLMError, OpenAIAdapter, ProviderRegistry
from luma.services.prompts import ensure_default_system_prompt
from luma.services.transcription import TranscriptionGateway

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)

SHUTDOWN_DRAIN_TIMEOUT_S = 30.0


def build_provider_registry(client: httpx.AsyncClient) -> ProviderRegistry:
    """Register the built-in providers.

    "openai" talks to the configured OpenAI-compatible endpoint; "gemini" is
    served by the deterministic echo provider.
    """
    settings = get_settings()
    registry = ProviderRegistry()
    registry.register(
        "openai",
        OpenAIAdapter(
            client,
            base_url=settings.openai_base_url,
            timeout_s=settings.llm_timeout_s,
        ),
    )
    registry.register("gemini", EchoAdapter())
    return registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle resources.

    - Creates the shared httpx.AsyncClient
    - Builds the provider registry (unless one was injected) and the
      transcription gateway
    - Ensures the schema and the active system prompt exist
    - Drains background work, then closes the client on shutdown
    """
    settings = get_settings()

    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(60.0, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )

    registry = app.state.provider_registry_override
    if registry is None:
        registry = build_provider_registry(app.state.httpx_client)
    app.state.provider_registry = registry

    app.state.transcription_gateway = TranscriptionGateway(
        app.state.httpx_client,
        base_urls=settings.provider_base_urls,
        model=settings.transcription_model,
        timeout_s=settings.llm_timeout_s,
    )
    app.state.task_supervisor = BackgroundTaskSupervisor()

    logger.info("provider_registry_initialized", providers=registry.names())

    create_schema()
    with session_scope() as db:
        prompt = ensure_default_system_prompt(db)
    logger.info("system_prompt_ready", system_prompt_id=str(prompt.id))

    yield

    await app.state.task_supervisor.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT_S)
    await app.state.httpx_client.aclose()
    logger.info("httpx_client_closed")


def create_app(provider_registry: ProviderRegistry | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        provider_registry: Optional pre-built registry (for testing). When
            None, the built-in providers are registered at startup.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Luma API",
        description="Backend API for Luma - prompt-layered rewriting and transcription",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.provider_registry_override = provider_registry

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(LLMError, llm_error_handler)
    app.add_exception_handler(CryptoError, crypto_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body"),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
