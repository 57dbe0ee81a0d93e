"""Composition orchestrator.

Turns content plus prompt layers into rewritten text using the caller's own
provider credential.

Order of operations (each step can abort the rest):
1. Reject empty content (E_INVALID_REQUEST) before touching the vault
2. Resolve the system prompt (explicit text wins over the stored one)
3. Resolve the preset prompt (explicit text wins over a lookup by id)
4. Look up the provider (E_PROVIDER_NOT_SUPPORTED)
5. Decrypt the caller's key (E_MISSING_API_KEY if absent or undecryptable)
6. Default the model when none is given
7. Call the provider once; no retries, failures propagate unchanged

Sync DB access uses run_in_threadpool (starlette) to avoid blocking the event loop.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from luma.config import get_settings
from luma.errors import InvalidRequestError, MissingApiKeyError, NotFoundError
from luma.logging import get_logger
from luma.services.api_keys import get_decrypted_api_key
from luma.services.crypto import CryptoError, SecretCipher
from luma.services.llm import GenerateRequest, ProviderRegistry
from luma.services.prompts import resolve_prompt_layers

logger = get_logger(__name__)


@dataclass(frozen=True)
class CompositionRequest:
    """Inputs for one composition.

    system_prompt and preset_text, when non-empty, are used as-is instead of
    being looked up.
    """

    user_id: UUID
    content: str
    provider_name: str = "openai"
    model: str = ""
    system_prompt: str | None = None
    preset_id: UUID | None = None
    preset_text: str | None = None
    temporary_prompt: str | None = None
    context_text: str | None = None


def _decrypt_or_missing(
    db: Session, user_id: UUID, provider: str, cipher: SecretCipher | None
) -> str:
    try:
        return get_decrypted_api_key(db, user_id, provider, cipher=cipher)
    except NotFoundError:
        raise MissingApiKeyError(provider) from None
    except CryptoError as e:
        logger.error("api_key_decrypt_failed", provider=provider, error=str(e))
        raise MissingApiKeyError(provider) from e


async def compose(
    db: Session,
    registry: ProviderRegistry,
    request: CompositionRequest,
    *,
    cipher: SecretCipher | None = None,
) -> str:
    """Produce the rewritten text for a request.

    Args:
        db: Database session (used from a worker thread).
        registry: Provider registry.
        request: What to rewrite and how.
        cipher: Vault cipher override (defaults to the process cipher).

    Returns:
        The provider's rewrite.

    Raises:
        InvalidRequestError: If content is empty.
        NotFoundError: If a referenced preset doesn't exist.
        ProviderNotSupportedError: If the provider isn't registered.
        MissingApiKeyError: If the user has no usable key for the provider.
        LLMError: If the provider call fails.
    """
    if not request.content.strip():
        raise InvalidRequestError(message="content is required")

    layers = await run_in_threadpool(
        resolve_prompt_layers,
        db,
        user_id=request.user_id,
        system_prompt=request.system_prompt,
        preset_id=request.preset_id,
        preset_text=request.preset_text,
        temporary_prompt=request.temporary_prompt,
        context_text=request.context_text,
    )

    provider_name = request.provider_name.strip().lower()
    registry.lookup(provider_name)

    api_key = await run_in_threadpool(
        _decrypt_or_missing, db, request.user_id, provider_name, cipher
    )

    model = request.model.strip() or get_settings().default_model

    return await registry.generate(
        GenerateRequest(
            provider_name=provider_name,
            model=model,
            system_prompt=layers.system_prompt,
            preset_prompt=layers.preset_prompt,
            temporary_prompt=layers.temporary_prompt,
            context_text=layers.context_text,
            content=request.content,
            api_key=api_key,
        )
    )
