"""Credential vault cipher.

Authenticated symmetric encryption for per-user provider API keys using
PyNaCl (libsodium SecretBox: XSalsa20-Poly1305).

- The symmetric key is the SHA-256 digest of the operator secret
  (LUMA_SECRET_KEY), so its length does not depend on the secret's length
  and is stable across restarts.
- Every encryption draws a fresh random 24-byte nonce.
- Stored form: base64(nonce || ciphertext || tag).
- Decryption fails closed: tampering, truncation, invalid base64, or a wrong
  key raise CryptoError and never yield partial plaintext.

Security invariants:
- Never log plaintext keys or ciphertext
- The derived key is read-only after construction (safe for concurrent use)
"""

import base64
import binascii
import hashlib
from functools import lru_cache

import nacl.exceptions
from nacl.secret import SecretBox

from luma.config import Environment, get_settings
from luma.logging import get_logger

logger = get_logger(__name__)

NONCE_SIZE = SecretBox.NONCE_SIZE
KEY_SIZE = SecretBox.KEY_SIZE

# Used only when LUMA_ENV is local/test and no secret is configured
DEV_SECRET = "luma-local-development-secret"


class CryptoError(Exception):
    """Raised when cryptographic operations fail."""

    pass


def derive_key(secret: str | bytes) -> bytes:
    """Derive the 32-byte symmetric key from an operator secret."""
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if not secret:
        raise CryptoError("vault secret must not be empty")
    return hashlib.sha256(secret).digest()


class SecretCipher:
    """Encrypts and decrypts short text secrets with a process-wide key."""

    def __init__(self, secret: str | bytes):
        self._box = SecretBox(derive_key(secret))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext and return the base64 storage form."""
        try:
            sealed = self._box.encrypt(plaintext.encode("utf-8"))
        except nacl.exceptions.CryptoError as e:
            logger.error("encryption_failed", error_type=type(e).__name__)
            raise CryptoError("encryption failed") from e
        return base64.b64encode(bytes(sealed)).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Decrypt a value produced by encrypt().

        Raises:
            CryptoError: If the value is malformed, truncated, tampered with,
                or was sealed under a different key.
        """
        try:
            raw = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError("ciphertext is not valid base64") from e

        if len(raw) < NONCE_SIZE:
            raise CryptoError("ciphertext too short")

        nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            plaintext = self._box.decrypt(ciphertext, nonce)
        except nacl.exceptions.CryptoError as e:
            raise CryptoError("decryption failed") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError("decrypted value is not valid UTF-8") from e


@lru_cache(maxsize=1)
def get_cipher() -> SecretCipher:
    """Build the process-wide cipher from settings.

    Raises:
        CryptoError: If no secret is configured outside local/test.
    """
    settings = get_settings()
    secret = settings.luma_secret_key
    if not secret:
        if settings.luma_env not in (Environment.LOCAL, Environment.TEST):
            raise CryptoError("LUMA_SECRET_KEY is not set")
        logger.warning("vault_using_dev_secret", env=settings.luma_env.value)
        secret = DEV_SECRET
    return SecretCipher(secret)


def clear_cipher_cache() -> None:
    """Drop the cached cipher. Useful for testing."""
    get_cipher.cache_clear()


FINGERPRINT_CHARS = 4
MIN_FINGERPRINTED_KEY_LENGTH = 8


def compute_key_fingerprint(api_key: str) -> str:
    """Last 4 characters of a key, safe for display.

    Keys shorter than 8 characters get an empty fingerprint so that at most
    half of a key is ever stored or shown in clear.
    """
    if len(api_key) < MIN_FINGERPRINTED_KEY_LENGTH:
        return ""
    return api_key[-FINGERPRINT_CHARS:]
