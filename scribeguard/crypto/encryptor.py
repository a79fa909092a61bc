"""AES-256-CBC field encryption with PKCS#7 padding.

Deterministic: identical (plaintext, key, iv) always yields identical
ciphertext. Callers own IV freshness.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from scribeguard.common.exceptions import (
    CryptoError,
    DecryptionFailedError,
    EncryptionFailedError,
    InvalidInputError,
)
from scribeguard.crypto.key_custodian import AES_KEY_BYTES, IV_BYTES

_BLOCK_BITS = 128


def _as_bytes(value: bytes | str, *, expected: int, name: str, error: type[CryptoError]) -> bytes:
    """Accept raw bytes or base64 text and check the decoded length."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise error(f"{name} is not valid base64") from exc
    else:
        raise error(f"{name} must be bytes or a base64 string")
    if len(raw) != expected:
        raise error(f"{name} must be {expected} bytes, got {len(raw)}")
    return raw


class Encryptor:
    """Symmetric encrypt/decrypt of text given a resolved key and IV."""

    def encrypt(self, plaintext: str, key: bytes | str, iv: bytes | str) -> str:
        if not isinstance(plaintext, str):
            raise InvalidInputError("plaintext must be a string")
        key_bytes = _as_bytes(key, expected=AES_KEY_BYTES, name="key", error=EncryptionFailedError)
        iv_bytes = _as_bytes(iv, expected=IV_BYTES, name="iv", error=EncryptionFailedError)

        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv_bytes)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(ciphertext).decode("ascii")

    def decrypt(self, ciphertext_b64: str, key: bytes | str, iv: bytes | str) -> str:
        if not isinstance(ciphertext_b64, (str, bytes)) or not ciphertext_b64:
            raise DecryptionFailedError("ciphertext must be a non-empty base64 string")
        key_bytes = _as_bytes(key, expected=AES_KEY_BYTES, name="key", error=DecryptionFailedError)
        iv_bytes = _as_bytes(iv, expected=IV_BYTES, name="iv", error=DecryptionFailedError)
        try:
            ciphertext = base64.b64decode(ciphertext_b64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionFailedError("ciphertext is not valid base64") from exc
        if not ciphertext or len(ciphertext) % (_BLOCK_BITS // 8):
            raise DecryptionFailedError("ciphertext length is not a whole number of blocks")

        decryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv_bytes)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        try:
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as exc:
            # Bad padding or undecodable bytes: wrong key, wrong IV block, or tampering.
            raise DecryptionFailedError("Failed to decrypt ciphertext") from exc


__all__ = ["Encryptor"]
