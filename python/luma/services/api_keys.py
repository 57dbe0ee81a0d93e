"""Credential vault service.

Stores one encrypted API key per (user, provider) and hands out plaintext
only for the duration of an outbound provider call.

- Upsert by (user_id, provider_name): same provider = same row, id preserved
- Provider names are normalized to lowercase on every operation
- get_decrypted_api_key distinguishes "no key" (NotFoundError) from
  "key present but undecryptable" (CryptoError)

Security invariants:
- Plaintext keys never persist beyond the call that needs them
- Never log plaintext keys or ciphertext; fingerprints only
- encrypted_key is never returned to clients
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from luma.db.models import APIKey
from luma.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from luma.logging import get_logger
from luma.schemas.keys import ApiKeyOut
from luma.services.crypto import SecretCipher, compute_key_fingerprint, get_cipher

logger = get_logger(__name__)


def _normalize_provider(provider: str) -> str:
    provider = provider.strip().lower()
    if not provider:
        raise InvalidRequestError(message="Provider name is required")
    return provider


def _find_key(db: Session, user_id: UUID, provider: str) -> APIKey | None:
    stmt = select(APIKey).where(APIKey.user_id == user_id, APIKey.provider_name == provider)
    return db.scalars(stmt).first()


def list_api_keys(db: Session, user_id: UUID) -> list[ApiKeyOut]:
    """List a user's stored keys (safe fields only)."""
    stmt = select(APIKey).where(APIKey.user_id == user_id).order_by(APIKey.provider_name)
    return [ApiKeyOut.model_validate(key) for key in db.scalars(stmt).all()]


def upsert_api_key(
    db: Session,
    user_id: UUID,
    provider: str,
    plaintext: str,
    *,
    cipher: SecretCipher | None = None,
) -> tuple[ApiKeyOut, bool]:
    """Encrypt and store a key, replacing any existing key for the provider.

    Args:
        db: Database session.
        user_id: Owner of the key.
        provider: Provider name (case-insensitive).
        plaintext: The key in clear text.
        cipher: Vault cipher override (defaults to the process cipher).

    Returns:
        Tuple of (ApiKeyOut, is_created) where is_created is True for a new row.
    """
    provider = _normalize_provider(provider)
    cipher = cipher or get_cipher()

    encrypted = cipher.encrypt(plaintext)
    fingerprint = compute_key_fingerprint(plaintext)

    existing = _find_key(db, user_id, provider)
    if existing is not None:
        existing.encrypted_key = encrypted
        existing.key_fingerprint = fingerprint
        db.flush()
        db.commit()

        logger.info(
            "api_key_updated", user_id=str(user_id), provider=provider, fingerprint=fingerprint
        )
        return ApiKeyOut.model_validate(existing), False

    key = APIKey(
        user_id=user_id,
        provider_name=provider,
        encrypted_key=encrypted,
        key_fingerprint=fingerprint,
    )
    db.add(key)
    db.flush()
    db.commit()

    logger.info("api_key_created", user_id=str(user_id), provider=provider, fingerprint=fingerprint)
    return ApiKeyOut.model_validate(key), True


def get_decrypted_api_key(
    db: Session,
    user_id: UUID,
    provider: str,
    *,
    cipher: SecretCipher | None = None,
) -> str:
    """Return the plaintext key for a provider.

    Raises:
        NotFoundError(E_API_KEY_NOT_FOUND): If the user has no key for the provider.
        CryptoError: If the stored ciphertext fails authentication.
    """
    provider = _normalize_provider(provider)
    key = _find_key(db, user_id, provider)
    if key is None:
        raise NotFoundError(ApiErrorCode.E_API_KEY_NOT_FOUND, f"No API key for provider: {provider}")

    return (cipher or get_cipher()).decrypt(key.encrypted_key)


def delete_api_key(db: Session, user_id: UUID, provider: str) -> None:
    """Delete the key for a provider.

    Raises:
        NotFoundError(E_API_KEY_NOT_FOUND): If there is no such key.
    """
    provider = _normalize_provider(provider)
    key = _find_key(db, user_id, provider)
    if key is None:
        raise NotFoundError(ApiErrorCode.E_API_KEY_NOT_FOUND, f"No API key for provider: {provider}")

    db.delete(key)
    db.commit()
    logger.info("api_key_deleted", user_id=str(user_id), provider=provider)
