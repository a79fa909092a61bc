"""At-rest protection for standalone secrets such as OAuth refresh tokens.

Uses a dedicated AES-256-GCM key (REFRESH_TOKEN_AES_KEY_HEX), kept separate
from per-record envelope keys. Token hashes use PBKDF2-HMAC-SHA512.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidKey, InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from scribeguard.common.exceptions import DecryptionFailedError, InvalidInputError, KeyUnavailableError
from scribeguard.infra.settings import KeySettings, get_key_settings

GCM_NONCE_BYTES = 12
GCM_TAG_BYTES = 16

HASH_ITERATIONS = 100_000
HASH_KEYLEN = 64
HASH_SALT_BYTES = 16


class SecretBox:
    """AES-256-GCM sealing with a layout of base64(nonce || tag || ciphertext)."""

    def __init__(self, key_hex: str):
        try:
            key = bytes.fromhex(key_hex or "")
        except ValueError as exc:
            raise KeyUnavailableError("Secret key must be a hex string") from exc
        if len(key) != 32:
            raise KeyUnavailableError("Secret key must be 32 bytes (64 hex characters)")
        self._aead = AESGCM(key)

    @classmethod
    def from_settings(cls, settings: KeySettings | None = None) -> "SecretBox":
        settings = settings or get_key_settings()
        if settings.refresh_token_aes_key_hex is None:
            raise KeyUnavailableError("Missing REFRESH_TOKEN_AES_KEY_HEX")
        return cls(settings.refresh_token_aes_key_hex.get_secret_value())

    def encrypt(self, plain: str) -> str:
        if not isinstance(plain, str):
            raise InvalidInputError("secret must be a string")
        nonce = os.urandom(GCM_NONCE_BYTES)
        sealed = self._aead.encrypt(nonce, plain.encode("utf-8"), None)
        # AESGCM appends the tag; the stored layout puts it before the ciphertext.
        ciphertext, tag = sealed[:-GCM_TAG_BYTES], sealed[-GCM_TAG_BYTES:]
        return base64.b64encode(nonce + tag + ciphertext).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            buf = base64.b64decode(token or "", validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionFailedError("Invalid encrypted token format") from exc
        if len(buf) < GCM_NONCE_BYTES + GCM_TAG_BYTES:
            raise DecryptionFailedError("Invalid encrypted token format")

        nonce = buf[:GCM_NONCE_BYTES]
        tag = buf[GCM_NONCE_BYTES : GCM_NONCE_BYTES + GCM_TAG_BYTES]
        ciphertext = buf[GCM_NONCE_BYTES + GCM_TAG_BYTES :]
        try:
            plain = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as exc:
            raise DecryptionFailedError("Encrypted token failed authentication") from exc
        return plain.decode("utf-8")

    @staticmethod
    def generate_key_hex() -> str:
        return AESGCM.generate_key(bit_length=256).hex()


def _kdf(salt: str) -> PBKDF2HMAC:
    return PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=HASH_KEYLEN,
        salt=salt.encode("utf-8"),
        iterations=HASH_ITERATIONS,
    )


def hash_token(token: str, salt: str | None = None) -> str:
    """Return ``"<salt>$<derived-hex>"`` for server-side token storage."""
    if not isinstance(token, str) or not token:
        raise InvalidInputError("token must be a non-empty string")
    salt = salt or os.urandom(HASH_SALT_BYTES).hex()
    derived = _kdf(salt).derive(token.encode("utf-8")).hex()
    return f"{salt}${derived}"


def verify_token_hash(token: str, stored: str | None) -> bool:
    """Constant-time check of ``token`` against a value from hash_token()."""
    if not stored or not token:
        return False
    parts = stored.split("$")
    if len(parts) != 2 or not all(parts):
        return False
    salt, derived = parts
    try:
        expected = bytes.fromhex(derived)
    except ValueError:
        return False
    try:
        _kdf(salt).verify(token.encode("utf-8"), expected)
    except InvalidKey:
        return False
    return True


__all__ = ["SecretBox", "hash_token", "verify_token_hash"]
