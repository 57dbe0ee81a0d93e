"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
Every code belongs to exactly one ErrorKind, which is what callers branch on:
NotFound, MissingAPIKey, ProviderNotSupported, Validation, NoOutput, Internal.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Coarse error categories surfaced by the core."""

    NOT_FOUND = "not_found"
    MISSING_API_KEY = "missing_api_key"
    PROVIDER_NOT_SUPPORTED = "provider_not_supported"
    VALIDATION = "validation_error"
    NO_OUTPUT = "no_output"
    INTERNAL = "internal_error"


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"
    E_SESSION_NOT_FOUND = "E_SESSION_NOT_FOUND"
    E_PRESET_NOT_FOUND = "E_PRESET_NOT_FOUND"
    E_MESSAGE_NOT_FOUND = "E_MESSAGE_NOT_FOUND"
    E_MESSAGE_TYPE_MISMATCH = "E_MESSAGE_TYPE_MISMATCH"
    E_API_KEY_NOT_FOUND = "E_API_KEY_NOT_FOUND"
    E_TRANSCRIPTION_NOT_FOUND = "E_TRANSCRIPTION_NOT_FOUND"
    E_SYSTEM_PROMPT_NOT_FOUND = "E_SYSTEM_PROMPT_NOT_FOUND"

    # Credential / provider errors (400)
    E_MISSING_API_KEY = "E_MISSING_API_KEY"
    E_PROVIDER_NOT_SUPPORTED = "E_PROVIDER_NOT_SUPPORTED"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_EMAIL_TAKEN = "E_EMAIL_TAKEN"

    # Provider returned nothing usable (502)
    E_NO_OUTPUT = "E_NO_OUTPUT"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500

    @property
    def kind(self) -> ErrorKind:
        return ERROR_CODE_TO_KIND.get(self, ErrorKind.INTERNAL)


ERROR_CODE_TO_KIND: dict[ApiErrorCode, ErrorKind] = {
    ApiErrorCode.E_NOT_FOUND: ErrorKind.NOT_FOUND,
    ApiErrorCode.E_USER_NOT_FOUND: ErrorKind.NOT_FOUND,
    ApiErrorCode.E_SESSION_NOT_FOUND: ErrorKind.NOT_FOUND,
    ApiErrorCode.E_PRESET_NOT_FOUND: ErrorKind.NOT_FOUND,
    ApiErrorCode.E_MESSAGE_NOT_FOUND: ErrorKind.NOT_FOUND,
    ApiErrorCode.E_MESSAGE_TYPE_MISMATCH: ErrorKind.NOT_FOUND,
    ApiErrorCode.E_API_KEY_NOT_FOUND: ErrorKind.NOT_FOUND,
    ApiErrorCode.E_TRANSCRIPTION_NOT_FOUND: ErrorKind.NOT_FOUND,
    ApiErrorCode.E_SYSTEM_PROMPT_NOT_FOUND: ErrorKind.NOT_FOUND,
    ApiErrorCode.E_MISSING_API_KEY: ErrorKind.MISSING_API_KEY,
    ApiErrorCode.E_PROVIDER_NOT_SUPPORTED: ErrorKind.PROVIDER_NOT_SUPPORTED,
    ApiErrorCode.E_INVALID_REQUEST: ErrorKind.VALIDATION,
    ApiErrorCode.E_EMAIL_TAKEN: ErrorKind.VALIDATION,
    ApiErrorCode.E_NO_OUTPUT: ErrorKind.NO_OUTPUT,
    ApiErrorCode.E_INTERNAL: ErrorKind.INTERNAL,
}

# Error kind to HTTP status mapping
ERROR_KIND_TO_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.MISSING_API_KEY: 400,
    ErrorKind.PROVIDER_NOT_SUPPORTED: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.NO_OUTPUT: 502,
    ErrorKind.INTERNAL: 500,
}

ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    code: ERROR_KIND_TO_STATUS[kind] for code, kind in ERROR_CODE_TO_KIND.items()
}
# Email collisions are conflicts, not generic validation failures
ERROR_CODE_TO_STATUS[ApiErrorCode.E_EMAIL_TAKEN] = 409


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)

    @property
    def kind(self) -> ErrorKind:
        return self.code.kind


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class MissingApiKeyError(ApiError):
    """The user has no usable credential for the requested provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            ApiErrorCode.E_MISSING_API_KEY, f"No API key configured for provider: {provider}"
        )


class ProviderNotSupportedError(ApiError):
    """The requested provider is not registered."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(ApiErrorCode.E_PROVIDER_NOT_SUPPORTED, f"Provider not supported: {provider}")
