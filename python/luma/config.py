"""Application settings loaded from environment variables.

Environment Configuration:
    LUMA_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    LUMA_SECRET_KEY: Operator secret the credential vault derives its key from
        (required in staging/prod)

Provider Configuration:
    OPENAI_BASE_URL: Base URL for the OpenAI-compatible chat/transcription API
    GEMINI_BASE_URL: Base URL for the Gemini API
    LUMA_DEFAULT_MODEL: Model used when a request does not name one
    LUMA_TRANSCRIPTION_MODEL: Model sent to the transcription endpoint
    LLM_TIMEOUT_S: Timeout for outbound provider calls
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - LUMA_SECRET_KEY is required in staging and prod only
    """

    luma_env: Environment = Field(default=Environment.LOCAL, alias="LUMA_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    luma_secret_key: str | None = Field(default=None, alias="LUMA_SECRET_KEY")

    # Provider endpoints
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta", alias="GEMINI_BASE_URL"
    )

    # Generation defaults
    default_model: str = Field(default="gpt-4o-mini", alias="LUMA_DEFAULT_MODEL")
    transcription_model: str = Field(default="whisper-1", alias="LUMA_TRANSCRIPTION_MODEL")
    llm_timeout_s: int = Field(default=45, alias="LLM_TIMEOUT_S")

    # Console logs are easier to read locally
    log_json: bool = Field(default=True, alias="LUMA_LOG_JSON")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure the vault secret is set where it matters."""
        if self.luma_env in (Environment.STAGING, Environment.PROD):
            if not self.luma_secret_key:
                raise ValueError(f"LUMA_SECRET_KEY is required for LUMA_ENV={self.luma_env.value}")

        if self.llm_timeout_s <= 0:
            raise ValueError("LLM_TIMEOUT_S must be positive")

        return self

    @property
    def provider_base_urls(self) -> dict[str, str]:
        """Base URL per provider name."""
        return {
            "openai": self.openai_base_url.rstrip("/"),
            "gemini": self.gemini_base_url.rstrip("/"),
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
