"""Provider error classification and normalization.

- Classifies provider HTTP failures into normalized error classes
- Called by the registry after catching adapter exceptions
- Adapters raise LLMError directly for failures they detect themselves
  (missing key, empty response)

Error classes:
- E_LLM_INVALID_REQUEST: Request rejected before any network call
- E_LLM_NO_OUTPUT: Provider answered without any candidate text
- E_LLM_INVALID_KEY: Authentication failure (401/403)
- E_LLM_RATE_LIMIT: Rate limit exceeded (429)
- E_LLM_CONTEXT_TOO_LARGE: Context length exceeded
- E_LLM_TIMEOUT: Request timed out
- E_LLM_PROVIDER_DOWN: Provider unavailable (5xx, network error)
- E_MODEL_NOT_AVAILABLE: Model not found
"""

from enum import Enum

from luma.logging import get_logger

logger = get_logger(__name__)


class LLMErrorClass(str, Enum):
    """Normalized provider error classifications."""

    INVALID_REQUEST = "E_LLM_INVALID_REQUEST"
    NO_OUTPUT = "E_LLM_NO_OUTPUT"
    INVALID_KEY = "E_LLM_INVALID_KEY"
    RATE_LIMIT = "E_LLM_RATE_LIMIT"
    CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"
    TIMEOUT = "E_LLM_TIMEOUT"
    PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"
    MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"


class LLMError(Exception):
    """Exception for provider-related errors.

    Attributes:
        error_class: The normalized error classification
        message: Human-readable error message
        provider: The provider that returned the error (if known)
    """

    def __init__(
        self,
        error_class: LLMErrorClass,
        message: str,
        provider: str | None = None,
    ):
        self.error_class = error_class
        self.message = message
        self.provider = provider
        super().__init__(message)


def classify_provider_error(
    provider: str,
    status_code: int | None,
    json_body: dict | None,
) -> LLMErrorClass:
    """Classify a provider HTTP failure into a normalized error class.

    Args:
        provider: Registry name of the provider
        status_code: HTTP status code (None when no response arrived)
        json_body: Parsed JSON error response (if available)

    Returns:
        The appropriate LLMErrorClass for this error.
    """
    if status_code is None:
        return LLMErrorClass.PROVIDER_DOWN

    error_class = _classify_openai_compatible_error(status_code, json_body)
    if error_class is None:
        logger.warning("unclassified_provider_error", provider=provider, status_code=status_code)
        return LLMErrorClass.PROVIDER_DOWN
    return error_class


def _classify_openai_compatible_error(
    status_code: int, json_body: dict | None
) -> LLMErrorClass | None:
    """OpenAI and OpenAI-compatible endpoints.

    - 401 or 403 → INVALID_KEY
    - 429 → RATE_LIMIT
    - 404 → MODEL_NOT_AVAILABLE
    - 5xx → PROVIDER_DOWN
    - 400 + context_length_exceeded → CONTEXT_TOO_LARGE
    """
    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code == 429:
        return LLMErrorClass.RATE_LIMIT

    if status_code == 404:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    if status_code >= 500:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code == 400 and json_body:
        error = json_body.get("error") or {}
        if isinstance(error, dict):
            error_code = error.get("code") or ""
            error_message = (error.get("message") or "").lower()

            if error_code == "context_length_exceeded":
                return LLMErrorClass.CONTEXT_TOO_LARGE
            if "maximum context length" in error_message:
                return LLMErrorClass.CONTEXT_TOO_LARGE
            if "model" in error_message and "not found" in error_message:
                return LLMErrorClass.MODEL_NOT_AVAILABLE

    return None
