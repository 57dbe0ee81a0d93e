"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from luma.api.routes.compose import router as compose_router
from luma.api.routes.health import router as health_router
from luma.api.routes.keys import router as keys_router
from luma.api.routes.prompts import router as prompts_router
from luma.api.routes.sessions import router as sessions_router
from luma.api.routes.transcriptions import router as transcriptions_router
from luma.api.routes.users import router as users_router


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(users_router)
    api_router.include_router(prompts_router)
    api_router.include_router(keys_router)
    api_router.include_router(sessions_router)
    api_router.include_router(compose_router)
    api_router.include_router(transcriptions_router)
    return api_router


__all__ = ["create_api_router"]
