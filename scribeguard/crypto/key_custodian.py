"""Wrap/unwrap per-record AES keys under the system RSA keypair.

Never log keys or plaintext.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from observability.logging_config import get_logger
from scribeguard.common.exceptions import (
    DecryptionFailedError,
    EncryptionFailedError,
    InvalidInputError,
    KeyUnavailableError,
)
from scribeguard.crypto.keys import KeyMaterial

logger = get_logger(__name__)

AES_KEY_BYTES = 32
IV_BYTES = 16


def _oaep_sha256() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


class KeyCustodian:
    """Asymmetric key wrapping (RSA-OAEP, SHA-256) for per-record symmetric keys."""

    def __init__(self, keys: KeyMaterial):
        self._keys = keys

    @property
    def key_id(self) -> str:
        return self._keys.key_id

    def public_key_pem(self) -> str:
        """PEM of the wrapping public key, for clients that encrypt before upload."""
        return self._keys.public_pem()

    def wrap_key(self, raw_key: bytes) -> str:
        if self._keys.public_key is None:
            raise KeyUnavailableError("No RSA public key configured; cannot wrap key")
        if not isinstance(raw_key, (bytes, bytearray)) or not raw_key:
            raise InvalidInputError("raw_key must be non-empty bytes")
        try:
            wrapped = self._keys.public_key.encrypt(bytes(raw_key), _oaep_sha256())
        except ValueError as exc:
            logger.error("Key wrap failed", extra={"key_id": self.key_id, "error_type": type(exc).__name__})
            raise EncryptionFailedError("Failed to wrap symmetric key") from exc
        return base64.b64encode(wrapped).decode("ascii")

    def unwrap_key(self, wrapped: str) -> bytes:
        if self._keys.private_key is None:
            raise KeyUnavailableError("No RSA private key configured; cannot unwrap key")
        if not isinstance(wrapped, str) or not wrapped:
            raise DecryptionFailedError("Wrapped key must be a non-empty base64 string")
        try:
            ciphertext = base64.b64decode(wrapped, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionFailedError("Wrapped key is not valid base64") from exc
        try:
            return self._keys.private_key.decrypt(ciphertext, _oaep_sha256())
        except ValueError as exc:
            # Raised for wrong keypair and for malformed ciphertext alike.
            logger.error("Key unwrap failed", extra={"key_id": self.key_id, "error_type": type(exc).__name__})
            raise DecryptionFailedError("Failed to unwrap symmetric key") from exc

    @staticmethod
    def generate_symmetric_material() -> tuple[bytes, bytes]:
        """Fresh (key, iv) pair for a newly created sensitive record."""
        return os.urandom(AES_KEY_BYTES), os.urandom(IV_BYTES)

    @staticmethod
    def generate_iv() -> bytes:
        return os.urandom(IV_BYTES)


__all__ = ["AES_KEY_BYTES", "IV_BYTES", "KeyCustodian"]
