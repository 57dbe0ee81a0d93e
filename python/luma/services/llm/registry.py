"""Name-keyed provider registry.

- Providers are registered under a lowercase name at startup
- lookup() is case-insensitive and raises ProviderNotSupportedError for
  unknown names
- generate() wraps the provider call with error normalization and emits
  llm.request.started / llm.request.finished / llm.request.failed events

The registry holds no per-request state; one instance is shared by every
request for the life of the process.

Error handling:
- Provider 401/403 → E_LLM_INVALID_KEY
- Provider 429 → E_LLM_RATE_LIMIT
- Timeout → E_LLM_TIMEOUT
- Other transport failures → E_LLM_PROVIDER_DOWN
- LLMError raised by the provider itself passes through unchanged
"""

import time

import httpx

from luma.errors import ProviderNotSupportedError
from luma.logging import get_logger
from luma.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from luma.services.llm.provider import LLMProvider
from luma.services.llm.types import GenerateRequest
from luma.services.redact import hash_text, safe_kv

logger = get_logger(__name__)


def normalize_provider_name(name: str) -> str:
    return name.strip().lower()


class ProviderRegistry:
    """Maps provider names to provider implementations."""

    def __init__(self) -> None:
        self._providers: dict[str, LLMProvider] = {}

    def register(self, name: str, provider: LLMProvider) -> None:
        """Register (or replace) the provider for a name."""
        key = normalize_provider_name(name)
        if not key:
            raise ValueError("provider name must not be empty")
        self._providers[key] = provider
        logger.info(
            "llm_provider_registered", provider=key, implementation=type(provider).__name__
        )

    def get(self, name: str) -> LLMProvider | None:
        """Return the provider for a name, or None."""
        return self._providers.get(normalize_provider_name(name))

    def lookup(self, name: str) -> LLMProvider:
        """Return the provider for a name.

        Raises:
            ProviderNotSupportedError: If nothing is registered under the name.
        """
        provider = self.get(name)
        if provider is None:
            raise ProviderNotSupportedError(name)
        return provider

    def names(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    async def generate(self, req: GenerateRequest) -> str:
        """Run one rewrite through the named provider with error normalization.

        Raises:
            ProviderNotSupportedError: If the provider is not registered.
            LLMError: With normalized error class on failure.
        """
        provider_name = normalize_provider_name(req.provider_name)
        provider = self.lookup(provider_name)
        base = {"provider": provider_name, "model_name": req.model}

        logger.info(
            "llm.request.started",
            **safe_kv(
                **base,
                content_chars=len(req.content),
                content_sha256=hash_text(req.content),
                context_chars=len(req.context_text),
                has_temporary_prompt=bool(req.temporary_prompt),
            ),
        )

        start = time.monotonic()

        try:
            text = await provider.generate(req)

        except LLMError as e:
            self._log_failure(base, e.error_class, start)
            raise

        except httpx.TimeoutException as e:
            self._log_failure(base, LLMErrorClass.TIMEOUT, start)
            raise LLMError(
                LLMErrorClass.TIMEOUT,
                "Request timed out",
                provider=provider_name,
            ) from e

        except httpx.HTTPStatusError as e:
            json_body = self._safe_parse_json(e.response)
            error_class = classify_provider_error(provider_name, e.response.status_code, json_body)
            self._log_failure(
                base,
                error_class,
                start,
                status_code=e.response.status_code,
                provider_request_id=e.response.headers.get("x-request-id"),
            )
            raise LLMError(
                error_class,
                f"Provider returned HTTP {e.response.status_code}",
                provider=provider_name,
            ) from e

        except httpx.HTTPError as e:
            self._log_failure(base, LLMErrorClass.PROVIDER_DOWN, start)
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                "Network error",
                provider=provider_name,
            ) from e

        latency_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=latency_ms,
                output_chars=len(text),
            ),
        )
        return text

    def _log_failure(
        self, base: dict, error_class: LLMErrorClass, start: float, **extra
    ) -> None:
        latency_ms = int((time.monotonic() - start) * 1000)
        logger.error(
            "llm.request.failed",
            **safe_kv(
                **base,
                outcome="error",
                error_class=error_class.value,
                latency_ms=latency_ms,
                **extra,
            ),
        )

    def _safe_parse_json(self, response: httpx.Response) -> dict | None:
        """Safely parse JSON from response, returning None on failure."""
        try:
            return response.json()
        except ValueError:
            return None
