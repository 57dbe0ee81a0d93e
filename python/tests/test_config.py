"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from luma.config import Environment, Settings, get_settings


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "sqlite:///luma.db",
        "LUMA_ENV": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestDefaults:
    def test_provider_defaults(self):
        s = _make_settings()
        assert s.default_model == "gpt-4o-mini"
        assert s.transcription_model == "whisper-1"
        assert s.llm_timeout_s == 45
        assert s.openai_base_url == "https://api.openai.com/v1"

    def test_provider_base_urls_strip_trailing_slash(self):
        s = _make_settings(OPENAI_BASE_URL="http://localhost:8080/v1/")
        assert s.provider_base_urls["openai"] == "http://localhost:8080/v1"
        assert set(s.provider_base_urls) == {"openai", "gemini"}

    def test_environment_is_parsed(self):
        assert _make_settings(LUMA_ENV="local").luma_env == Environment.LOCAL

    def test_get_settings_reads_environment(self, test_env):
        settings = get_settings()
        assert settings.database_url == test_env
        assert settings.luma_env == Environment.TEST
        assert settings.log_json is False


class TestValidation:
    @pytest.mark.parametrize("env", ["staging", "prod"])
    def test_secret_required_outside_local(self, env, monkeypatch):
        monkeypatch.delenv("LUMA_SECRET_KEY", raising=False)
        with pytest.raises(ValidationError, match="LUMA_SECRET_KEY"):
            _make_settings(LUMA_ENV=env)

    def test_secret_optional_locally(self, monkeypatch):
        monkeypatch.delenv("LUMA_SECRET_KEY", raising=False)
        assert _make_settings(LUMA_ENV="local").luma_secret_key is None

    def test_prod_with_secret_accepted(self):
        s = _make_settings(LUMA_ENV="prod", LUMA_SECRET_KEY="operator-secret")
        assert s.luma_secret_key == "operator-secret"

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_non_positive_timeout_rejected(self, timeout):
        with pytest.raises(ValidationError, match="LLM_TIMEOUT_S"):
            _make_settings(LLM_TIMEOUT_S=timeout)

    def test_database_url_required(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValidationError):
            Settings(LUMA_ENV="test")
