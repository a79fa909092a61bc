"""Exception hierarchy for the PHI de-identification and encryption core."""

from __future__ import annotations


class PHIError(Exception):
    """Base error for scribeguard."""

    pass


class InvalidInputError(PHIError, ValueError):
    """Caller passed empty or wrong-typed input (local validation failure)."""

    pass


class DetectionUnavailableError(PHIError):
    """External PHI detector failed, timed out, or returned a malformed response."""

    def __init__(self, message: str, backend: str | None = None, reason: str | None = None):
        self.backend = backend
        self.reason = reason
        super().__init__(message)


class KeyMaterialError(PHIError):
    """Key configuration or per-record key data problem."""

    pass


class KeyUnavailableError(KeyMaterialError):
    """The required public/private/secret key is not configured."""

    pass


class MissingKeyMaterialError(KeyMaterialError):
    """A record lacks its wrapped AES key or IV."""

    def __init__(self, message: str, record_id: str | None = None):
        self.record_id = record_id
        super().__init__(message)


class FieldError(PHIError):
    """Named-field encryption/decryption error tied to a record."""

    def __init__(self, message: str, field: str | None = None, record_id: str | None = None):
        self.field = field
        self.record_id = record_id
        super().__init__(message)


class MissingEncryptedFieldError(FieldError):
    """``encrypted_<field>`` (or the IV it needs) is absent."""

    pass


class MissingPlainFieldError(FieldError):
    """The plaintext field to encrypt is absent or empty."""

    pass


class CryptoError(PHIError):
    """Cryptographic operation failed (bad key, corrupt ciphertext, bad base64)."""

    def __init__(self, message: str, field: str | None = None, record_id: str | None = None):
        self.field = field
        self.record_id = record_id
        super().__init__(message)


class DecryptionFailedError(CryptoError):
    pass


class EncryptionFailedError(CryptoError):
    pass


__all__ = [
    "PHIError",
    "InvalidInputError",
    "DetectionUnavailableError",
    "KeyMaterialError",
    "KeyUnavailableError",
    "MissingKeyMaterialError",
    "FieldError",
    "MissingEncryptedFieldError",
    "MissingPlainFieldError",
    "CryptoError",
    "DecryptionFailedError",
    "EncryptionFailedError",
]
