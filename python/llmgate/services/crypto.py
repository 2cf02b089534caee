"""Cryptographic helpers for stored provider credentials.

Provider API keys are stored in llm_providers.api_key as a single opaque
string produced by encrypt_credential(). Decryption happens once per
provider call inside the adapter layer.

Blob format:
    base64( nonce[24] || ciphertext )

XSalsa20-Poly1305 authenticated encryption via PyNaCl (libsodium bindings).

Security invariants:
- Never log plaintext keys or ciphertext
- Master key is validated on first use (32 bytes)
- Nonce is random per encryption; never supplied by the caller
- Decryption fails if the blob was produced under another master key
"""

import base64
import binascii
import os
from functools import lru_cache

from nacl.secret import SecretBox

from llmgate.logging import get_logger

logger = get_logger(__name__)

MASTER_KEY_ENV = "LLMGATE_KEY_ENCRYPTION_KEY"

# XSalsa20-Poly1305 nonce size (24 bytes)
NONCE_SIZE = SecretBox.NONCE_SIZE

# Master key size (32 bytes)
MASTER_KEY_SIZE = SecretBox.KEY_SIZE


class CryptoError(Exception):
    """Raised when cryptographic operations fail."""

    pass


@lru_cache(maxsize=1)
def _get_master_key() -> bytes:
    """Load and validate the master key from environment.

    Cached after first load; base64-encoded in the environment variable.

    Raises:
        CryptoError: If the key is missing, invalid base64, or wrong size.
    """
    key_b64 = os.environ.get(MASTER_KEY_ENV)
    if not key_b64:
        raise CryptoError(f"{MASTER_KEY_ENV} environment variable is not set")

    try:
        key = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError(f"{MASTER_KEY_ENV} is not valid base64: {e}") from e

    if len(key) != MASTER_KEY_SIZE:
        raise CryptoError(
            f"{MASTER_KEY_ENV} must be {MASTER_KEY_SIZE} bytes, got {len(key)} bytes"
        )

    return key


def require_master_key() -> bytes:
    """Load and validate the master encryption key.

    Raises:
        CryptoError: If the key is missing or invalid.
    """
    return _get_master_key()


def clear_master_key_cache() -> None:
    """Clear the cached master key (tests, key rotation)."""
    _get_master_key.cache_clear()


def encrypt_credential(plaintext: str) -> str:
    """Encrypt a provider API key for storage.

    Args:
        plaintext: The plaintext API key.

    Returns:
        The base64 blob to store in llm_providers.api_key.

    Raises:
        CryptoError: If encryption fails or the master key is not configured.
    """
    nonce = os.urandom(NONCE_SIZE)
    try:
        box = SecretBox(require_master_key())
        encrypted = box.encrypt(plaintext.encode("utf-8"), nonce=nonce)
    except CryptoError:
        raise
    except Exception as e:
        logger.error("encryption_failed", error_type=type(e).__name__)
        raise CryptoError(f"Encryption failed: {type(e).__name__}") from e

    # EncryptedMessage is nonce || ciphertext
    return base64.b64encode(bytes(encrypted)).decode("ascii")


def decrypt_credential(blob: str) -> str:
    """Decrypt a provider API key produced by encrypt_credential().

    Args:
        blob: The stored base64 blob.

    Returns:
        The plaintext API key.

    Raises:
        CryptoError: If the blob is malformed, the master key is wrong,
            or the data was tampered with.
    """
    try:
        raw = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError("Stored credential is not valid base64") from e

    if len(raw) <= NONCE_SIZE:
        raise CryptoError("Stored credential is too short")

    try:
        box = SecretBox(require_master_key())
        plaintext = box.decrypt(raw[NONCE_SIZE:], nonce=raw[:NONCE_SIZE])
    except CryptoError:
        raise
    except Exception as e:
        logger.error("decryption_failed", error_type=type(e).__name__)
        raise CryptoError(f"Decryption failed: {type(e).__name__}") from e

    return plaintext.decode("utf-8")


def compute_key_fingerprint(api_key: str) -> str:
    """Last 4 characters of the key; safe for logs and the settings UI."""
    if len(api_key) < 4:
        return api_key
    return api_key[-4:]
