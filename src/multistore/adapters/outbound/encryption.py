"""AES-256-GCM encryption adapter implementing EncryptionPort.

The credential handed to ``store`` / ``retrieve`` is a base64-encoded
256-bit key.  Ciphertext is laid out as ``nonce(12) || ciphertext || tag(16)``
so a single blob carries everything needed to decrypt it.
"""

from __future__ import annotations

import base64
import binascii
import os

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from multistore.domain.exceptions import DecryptionFailedError, EncryptionFailedError
from multistore.ports.outbound import EncryptionPort

logger = structlog.get_logger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def generate_key() -> str:
    """Fresh random key, base64-encoded, usable as a storage credential."""
    return base64.b64encode(os.urandom(KEY_SIZE)).decode("ascii")


class AesGcmEncryptor(EncryptionPort):
    """Authenticated symmetric encryption with a per-call key."""

    def encrypt(self, data: bytes, credential: str) -> bytes:
        key = _decode_key(credential, EncryptionFailedError)
        nonce = os.urandom(NONCE_SIZE)
        try:
            return nonce + AESGCM(key).encrypt(nonce, data, None)
        except Exception as exc:
            logger.error("encryption_failed", error=str(exc))
            raise EncryptionFailedError(message=f"Encryption failed: {exc}") from exc

    def decrypt(self, data: bytes, credential: str) -> bytes:
        key = _decode_key(credential, DecryptionFailedError)
        if len(data) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionFailedError(message="Ciphertext is too short")
        nonce, sealed = data[:NONCE_SIZE], data[NONCE_SIZE:]
        try:
            return AESGCM(key).decrypt(nonce, sealed, None)
        except InvalidTag as exc:
            logger.warning("decryption_authentication_failed")
            raise DecryptionFailedError(message="Authentication tag mismatch") from exc


def _decode_key(
    credential: str,
    error_cls: type[EncryptionFailedError] | type[DecryptionFailedError],
) -> bytes:
    try:
        key = base64.b64decode(credential, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise error_cls(message="Key is not valid base64") from exc
    if len(key) != KEY_SIZE:
        raise error_cls(message=f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    return key
