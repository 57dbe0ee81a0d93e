"""Tests for error handling and response envelopes.

Verifies:
- Error envelope shape is correct
- Every error code belongs to one kind and maps to the kind's HTTP status
- Provider and vault failures are translated into the envelope
- Unknown exceptions return E_INTERNAL with 500
- Malformed JSON returns E_INVALID_REQUEST
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from luma.errors import (
    ERROR_CODE_TO_KIND,
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    ErrorKind,
    InvalidRequestError,
    MissingApiKeyError,
    NotFoundError,
    ProviderNotSupportedError,
)
from luma.responses import (
    api_error_handler,
    crypto_error_handler,
    error_response,
    llm_error_handler,
    success_response,
    unhandled_exception_handler,
)
from luma.services.crypto import CryptoError
from luma.services.llm import LLMError, LLMErrorClass
from tests.helpers import assert_error


class TestErrorResponse:
    """Tests for error response envelope format."""

    def test_error_response_has_correct_shape(self):
        response = error_response(ApiErrorCode.E_NOT_FOUND, "Resource not found")

        assert response["error"]["code"] == "E_NOT_FOUND"
        assert response["error"]["message"] == "Resource not found"

    def test_explicit_request_id_is_included(self):
        response = error_response(ApiErrorCode.E_INTERNAL, "boom", request_id="req-1")
        assert response["error"]["request_id"] == "req-1"

    def test_request_id_omitted_outside_a_request(self):
        response = error_response(ApiErrorCode.E_INTERNAL, "boom")
        assert "request_id" not in response["error"]


class TestSuccessResponse:
    def test_success_response_wraps_data(self):
        assert success_response({"id": "123"}) == {"data": {"id": "123"}}

    def test_success_response_with_none(self):
        assert success_response(None) == {"data": None}


class TestErrorKinds:
    """Every code belongs to exactly one kind."""

    def test_every_code_has_a_kind(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_KIND, f"{code} has no kind"

    @pytest.mark.parametrize(
        ("kind", "status"),
        [
            (ErrorKind.NOT_FOUND, 404),
            (ErrorKind.MISSING_API_KEY, 400),
            (ErrorKind.PROVIDER_NOT_SUPPORTED, 400),
            (ErrorKind.VALIDATION, 400),
            (ErrorKind.NO_OUTPUT, 502),
            (ErrorKind.INTERNAL, 500),
        ],
    )
    def test_kind_status(self, kind, status):
        codes = [c for c, k in ERROR_CODE_TO_KIND.items() if k == kind]
        assert codes
        for code in codes:
            if code == ApiErrorCode.E_EMAIL_TAKEN:
                continue
            assert ERROR_CODE_TO_STATUS[code] == status

    def test_email_taken_is_a_conflict(self):
        assert ERROR_CODE_TO_STATUS[ApiErrorCode.E_EMAIL_TAKEN] == 409
        assert ApiErrorCode.E_EMAIL_TAKEN.kind == ErrorKind.VALIDATION

    def test_message_type_mismatch_is_not_found(self):
        assert ApiErrorCode.E_MESSAGE_TYPE_MISMATCH.kind == ErrorKind.NOT_FOUND


class TestApiErrorClasses:
    def test_not_found_defaults(self):
        exc = NotFoundError()
        assert exc.code == ApiErrorCode.E_NOT_FOUND
        assert exc.status_code == 404
        assert exc.kind == ErrorKind.NOT_FOUND

    def test_invalid_request_defaults(self):
        exc = InvalidRequestError()
        assert exc.status_code == 400
        assert exc.kind == ErrorKind.VALIDATION

    def test_missing_api_key_names_provider(self):
        exc = MissingApiKeyError("openai")
        assert exc.provider == "openai"
        assert exc.kind == ErrorKind.MISSING_API_KEY
        assert "openai" in exc.message

    def test_provider_not_supported(self):
        exc = ProviderNotSupportedError("anthropic")
        assert exc.status_code == 400
        assert exc.kind == ErrorKind.PROVIDER_NOT_SUPPORTED


def _app_raising(exc: Exception) -> TestClient:
    """Minimal app with the production handlers and one failing route."""
    app = FastAPI()
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(LLMError, llm_error_handler)
    app.add_exception_handler(CryptoError, crypto_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/fail")
    def fail():
        raise exc

    return TestClient(app, raise_server_exceptions=False)


class TestExceptionHandlers:
    def test_api_error(self):
        response = _app_raising(MissingApiKeyError("gemini")).get("/fail")
        assert_error(response, 400, "E_MISSING_API_KEY")

    @pytest.mark.parametrize(
        ("error_class", "status", "code"),
        [
            (LLMErrorClass.NO_OUTPUT, 502, "E_NO_OUTPUT"),
            (LLMErrorClass.INVALID_REQUEST, 400, "E_INVALID_REQUEST"),
            (LLMErrorClass.RATE_LIMIT, 500, "E_INTERNAL"),
            (LLMErrorClass.INVALID_KEY, 500, "E_INTERNAL"),
            (LLMErrorClass.PROVIDER_DOWN, 500, "E_INTERNAL"),
        ],
    )
    def test_llm_error_mapping(self, error_class, status, code):
        exc = LLMError(error_class, "provider said no", provider="openai")
        response = _app_raising(exc).get("/fail")
        assert_error(response, status, code)

    def test_crypto_error_does_not_leak_detail(self):
        response = _app_raising(CryptoError("mac check failed")).get("/fail")

        assert_error(response, 500, "E_INTERNAL")
        assert "mac" not in response.text

    def test_unhandled_exception(self):
        response = _app_raising(RuntimeError("secret internals")).get("/fail")

        assert_error(response, 500, "E_INTERNAL")
        assert "secret internals" not in response.text


class TestAppErrorHandling:
    """Errors surfaced by the real application."""

    def test_malformed_json(self, client):
        response = client.post(
            "/users", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert_error(response, 400, "E_INVALID_REQUEST")

    def test_schema_violation_is_invalid_request(self, client):
        response = client.post("/users", json={"name": "Ada"})
        assert_error(response, 400, "E_INVALID_REQUEST")

    def test_unknown_route(self, client):
        assert_error(client.get("/no-such-route"), 404, "E_NOT_FOUND")

    def test_error_body_carries_request_id(self, client):
        response = client.get("/no-such-route")
        assert response.json()["error"]["request_id"] == response.headers["X-Request-ID"]
