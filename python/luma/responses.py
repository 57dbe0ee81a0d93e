"""API response envelope helpers and exception handlers.

All API responses use a consistent envelope:
- Success: { "data": ... }
- Error: { "error": { "code": "E_...", "message": "...", "request_id": "..." } }

The request_id is included in error responses for debugging and support.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from luma.errors import ERROR_CODE_TO_STATUS, ApiError, ApiErrorCode
from luma.logging import get_logger, get_request_id
from luma.services.crypto import CryptoError
from luma.services.llm.errors import LLMError, LLMErrorClass

logger = get_logger(__name__)

# Provider failures that have a dedicated API code; the rest are internal
LLM_ERROR_TO_CODE: dict[LLMErrorClass, ApiErrorCode] = {
    LLMErrorClass.INVALID_REQUEST: ApiErrorCode.E_INVALID_REQUEST,
    LLMErrorClass.NO_OUTPUT: ApiErrorCode.E_NO_OUTPUT,
}


def success_response(data: Any) -> dict[str, Any]:
    """Create a success response envelope.

    Args:
        data: The response data to wrap.

    Returns:
        Dict with "data" key containing the response.
    """
    return {"data": data}


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Optional request ID for correlation (auto-populated from context if None).

    Returns:
        Dict with "error" key containing code, message, and request_id.
    """
    if request_id is None:
        request_id = get_request_id()

    error = {"code": code.value, "message": message}
    if request_id:
        error["request_id"] = request_id

    return {"error": error}


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message),
    )


async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    """Translate a provider failure into the API error envelope."""
    code = LLM_ERROR_TO_CODE.get(exc.error_class, ApiErrorCode.E_INTERNAL)
    logger.warning(
        "llm_error_returned",
        error_class=exc.error_class.value,
        provider=exc.provider,
        api_code=code.value,
    )
    return JSONResponse(
        status_code=ERROR_CODE_TO_STATUS[code],
        content=error_response(code, f"{exc.error_class.value}: {exc.message}"),
    )


async def crypto_error_handler(request: Request, exc: CryptoError) -> JSONResponse:
    """Vault integrity failures are internal; the detail stays server-side."""
    logger.error("crypto_error", error=str(exc))
    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle FastAPI HTTPException and return proper JSON response."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_INVALID_REQUEST,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )
