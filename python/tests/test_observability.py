"""Tests for redaction utilities and logging context.

Covers:
- hash_text, safe_kv
- Request and task context injection into log entries
"""

import pytest

from luma.logging import (
    add_request_context,
    bind_task_context,
    clear_request_context,
    clear_task_context,
    get_request_id,
    set_request_context,
    set_user_context,
)
from luma.services.redact import FORBIDDEN_KEYS, hash_text, safe_kv

# ─── Redaction ───────────────────────────────────────────────────────────


class TestHashText:
    def test_stable_output(self):
        assert hash_text("hello") == hash_text("hello")

    def test_different_inputs_differ(self):
        assert hash_text("hello") != hash_text("world")

    def test_returns_hex_string(self):
        """Output is a 64-char hex string (SHA-256)."""
        result = hash_text("test")
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)


class TestSafeKv:
    def test_allowed_keys_pass_through(self):
        kv = safe_kv(provider="openai", content_chars=12, api_key_sha256="abc")
        assert kv == {"provider": "openai", "content_chars": 12, "api_key_sha256": "abc"}

    @pytest.mark.parametrize("key", ["api_key", "content", "transcript", "system_prompt"])
    def test_forbidden_key_raises_in_test(self, key):
        with pytest.raises(ValueError, match=key):
            safe_kv(**{key: "secret value"})

    def test_forbidden_key_dropped_in_prod(self):
        kv = safe_kv(_env="prod", provider="openai", api_key="sk-live")
        assert kv == {"provider": "openai"}

    def test_sensitive_fields_are_forbidden(self):
        for key in ("api_key", "encrypted_key", "raw_text", "transformed_text", "context_text"):
            assert key in FORBIDDEN_KEYS


# ─── Logging context ─────────────────────────────────────────────────────


@pytest.fixture
def clean_context():
    clear_request_context()
    clear_task_context()
    yield
    clear_request_context()
    clear_task_context()


class TestLoggingContext:
    def test_request_context_injected(self, clean_context):
        set_request_context("req-1", "user-1")

        event = add_request_context(None, "info", {"event": "x"})

        assert event["request_id"] == "req-1"
        assert event["user_id"] == "user-1"
        assert get_request_id() == "req-1"

    def test_user_context_can_be_set_later(self, clean_context):
        set_request_context("req-2")
        set_user_context("user-2")

        event = add_request_context(None, "info", {"event": "x"})
        assert event["user_id"] == "user-2"

    def test_task_context_injected(self, clean_context):
        bind_task_context(task_name="transcribe_and_compose", task_id="t-1")

        event = add_request_context(None, "info", {"event": "x"})

        assert event["task_name"] == "transcribe_and_compose"
        assert event["task_id"] == "t-1"

    def test_empty_context_adds_nothing(self, clean_context):
        assert add_request_context(None, "info", {"event": "x"}) == {"event": "x"}
