"""Process-wide asymmetric key material.

Loaded once at startup into an immutable object and handed to KeyCustodian,
so tests can build distinct keypairs without touching the environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from scribeguard.common.exceptions import KeyUnavailableError
from scribeguard.infra.settings import KeySettings, get_key_settings


def _normalize_pem(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    # Secret stores commonly flatten PEM newlines to literal "\n".
    return value.replace("\\n", "\n").strip().encode("utf-8") + b"\n"


@dataclass(frozen=True)
class KeyMaterial:
    """RSA keypair used to wrap and unwrap per-record AES keys.

    Either half may be absent: a write-only service can hold just the public
    key. The custodian raises KeyUnavailableError when a missing half is needed.
    """

    public_key: rsa.RSAPublicKey | None = None
    private_key: rsa.RSAPrivateKey | None = None
    key_id: str = "default"

    @classmethod
    def from_pem(
        cls,
        public_pem: str | bytes | None = None,
        private_pem: str | bytes | None = None,
        *,
        key_id: str = "default",
        password: bytes | None = None,
    ) -> "KeyMaterial":
        private_key = None
        public_key = None
        try:
            if private_pem:
                loaded = serialization.load_pem_private_key(_normalize_pem(private_pem), password=password)
                if not isinstance(loaded, rsa.RSAPrivateKey):
                    raise KeyUnavailableError("Private key is not an RSA key")
                private_key = loaded
            if public_pem:
                loaded_pub = serialization.load_pem_public_key(_normalize_pem(public_pem))
                if not isinstance(loaded_pub, rsa.RSAPublicKey):
                    raise KeyUnavailableError("Public key is not an RSA key")
                public_key = loaded_pub
        except (ValueError, TypeError) as exc:
            raise KeyUnavailableError(f"Unable to load PEM key material ({type(exc).__name__})") from exc

        if public_key is None and private_key is not None:
            public_key = private_key.public_key()
        return cls(public_key=public_key, private_key=private_key, key_id=key_id)

    @classmethod
    def from_settings(cls, settings: KeySettings | None = None) -> "KeyMaterial":
        """Build key material from env-driven settings (inline PEM first, then paths)."""
        settings = settings or get_key_settings()

        public_pem: str | None = settings.rsa_public_key
        private_pem: str | None = (
            settings.rsa_private_key.get_secret_value() if settings.rsa_private_key else None
        )
        if public_pem is None and settings.public_key_path is not None:
            public_pem = _read_key_file(settings.public_key_path)
        if private_pem is None and settings.private_key_path is not None:
            private_pem = _read_key_file(settings.private_key_path)

        return cls.from_pem(public_pem, private_pem, key_id=settings.public_key_id)

    @classmethod
    def generate(cls, key_size: int = 2048, key_id: str = "default") -> "KeyMaterial":
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        return cls(public_key=private_key.public_key(), private_key=private_key, key_id=key_id)

    def public_pem(self) -> str:
        if self.public_key is None:
            raise KeyUnavailableError("No RSA public key configured")
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def private_pem(self, password: bytes | None = None) -> str:
        if self.private_key is None:
            raise KeyUnavailableError("No RSA private key configured")
        encryption: serialization.KeySerializationEncryption = (
            serialization.BestAvailableEncryption(password) if password else serialization.NoEncryption()
        )
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption,
        ).decode("ascii")

    def __repr__(self) -> str:
        return (
            f"KeyMaterial(key_id={self.key_id!r}, public={self.public_key is not None}, "
            f"private={self.private_key is not None})"
        )


def _read_key_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise KeyUnavailableError(f"Key file not readable: {path}") from exc


__all__ = ["KeyMaterial"]
