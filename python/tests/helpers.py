"""Test helpers shared across test modules.

Provides:
- The deterministic vault secret used by every test
- Assertions for the API error envelope
"""

TEST_SECRET = "luma-test-vault-secret"


def assert_error(response, status_code: int, code: str) -> dict:
    """Assert an error envelope and return its error object."""
    assert response.status_code == status_code, response.text
    error = response.json()["error"]
    assert error["code"] == code
    return error


def data_of(response, status_code: int = 200):
    """Assert a success status and return the envelope's data."""
    assert response.status_code == status_code, response.text
    return response.json()["data"]
