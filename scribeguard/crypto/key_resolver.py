"""Per-record envelope encryption for named fields.

A record (encounter, transcript, SOAP note row) is a plain mutable mapping.
Its storage layout is::

    encrypted_aes_key   base64 RSA-wrapped AES-256 key, minted at creation
    iv                  base64 IV established at creation
    encrypted_<field>   base64 AES-256-CBC ciphertext replacing <field>
    <field>_iv          base64 IV of that field (per-field IV policy only)

Read paths return FieldResult instead of raising so listings can skip one bad
record; the write path raises.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, MutableMapping

from observability.logging_config import get_logger
from observability.phi_metrics import PHIMetrics
from scribeguard.common.exceptions import (
    CryptoError,
    EncryptionFailedError,
    InvalidInputError,
    MissingEncryptedFieldError,
    MissingKeyMaterialError,
    MissingPlainFieldError,
    PHIError,
)
from scribeguard.crypto.encryptor import Encryptor
from scribeguard.crypto.key_custodian import KeyCustodian
from scribeguard.infra.safe_logging import record_ref

logger = get_logger(__name__)

WRAPPED_KEY_FIELD = "encrypted_aes_key"
IV_FIELD = "iv"

Record = MutableMapping[str, Any]
# Already-unwrapped key bytes, or a wrapped key string held outside the record.
KeyOverride = bytes | str | None


class IVPolicy(str, Enum):
    """How field writes treat the IV.

    PER_FIELD: every write mints a fresh IV stored beside the field as
    ``<field>_iv``; the record-level ``iv`` is only set when absent.
    RECORD: every write mints a fresh IV and overwrites the record-level
    ``iv``. Fields written earlier under the old IV no longer decrypt
    correctly; kept only for stores that cannot hold per-field IVs.
    """

    PER_FIELD = "per_field"
    RECORD = "record"


def encrypted_field_name(field: str) -> str:
    return f"encrypted_{field}"


def field_iv_name(field: str) -> str:
    return f"{field}_iv"


@dataclass(frozen=True)
class FieldResult:
    """Outcome of a named-field decrypt."""

    ok: bool
    field: str
    value: str | None = None
    error: str | None = None
    error_type: str | None = None

    @classmethod
    def success(cls, field: str, value: str) -> "FieldResult":
        return cls(ok=True, field=field, value=value)

    @classmethod
    def failure(cls, field: str, exc: PHIError) -> "FieldResult":
        return cls(ok=False, field=field, error=str(exc), error_type=type(exc).__name__)


@dataclass(frozen=True)
class EncryptedField:
    """Outcome of a named-field encrypt: the stored ciphertext and the IV used."""

    field: str
    ciphertext: str
    iv: str


class EncounterKeyResolver:
    """Resolve a record's AES key and encrypt/decrypt its named fields."""

    def __init__(
        self,
        custodian: KeyCustodian,
        encryptor: Encryptor | None = None,
        iv_policy: IVPolicy | str = IVPolicy.PER_FIELD,
    ):
        self._custodian = custodian
        self._encryptor = encryptor or Encryptor()
        self._iv_policy = IVPolicy(iv_policy)

    @property
    def iv_policy(self) -> IVPolicy:
        return self._iv_policy

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    def provision(self, record: Record, fields: Iterable[str] = ()) -> Record:
        """Mint and wrap the record's AES key + IV, then encrypt any initial fields.

        Called once when the record is created. Raises InvalidInputError if the
        record already carries a wrapped key.
        """
        if record.get(WRAPPED_KEY_FIELD):
            raise InvalidInputError(f"Record {record_ref(record)} already has a wrapped key")

        key, iv = self._custodian.generate_symmetric_material()
        record[WRAPPED_KEY_FIELD] = self._custodian.wrap_key(key)
        record[IV_FIELD] = _b64(iv)
        logger.info(
            "Provisioned record key",
            extra={"record_id": record_ref(record), "key_id": self._custodian.key_id},
        )

        for field in fields:
            self.encrypt_named_field(record, field)
        return record

    def resolve_key(self, record: Record) -> bytes:
        wrapped = record.get(WRAPPED_KEY_FIELD)
        if not wrapped or not record.get(IV_FIELD):
            raise MissingKeyMaterialError(
                f"Missing encrypted AES key or IV on record {record_ref(record)}",
                record_id=record_ref(record),
            )
        return self._custodian.unwrap_key(wrapped)

    def _key_for(self, record: Record, key: KeyOverride) -> bytes:
        if isinstance(key, (bytes, bytearray)):
            return bytes(key)
        wrapped = key if isinstance(key, str) and key else record.get(WRAPPED_KEY_FIELD)
        if not wrapped:
            raise MissingKeyMaterialError(
                f"Missing encrypted AES key on record {record_ref(record)}",
                record_id=record_ref(record),
            )
        return self._custodian.unwrap_key(wrapped)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def decrypt_named_field(self, record: Record, field: str, key: KeyOverride = None) -> FieldResult:
        """Decrypt ``encrypted_<field>`` into ``record[field]`` in place.

        On success the ciphertext, IV(s) and wrapped key are removed so
        downstream consumers only see plaintext. On failure the record is left
        as-is, except that ``record[field]`` is set to None when the ciphertext
        itself failed to decrypt.
        """
        try:
            self._require_encrypted(record, field)
            aes_key = self._key_for(record, key)
        except PHIError as exc:
            return self._read_failure(record, field, exc)

        result = self._decrypt_into(record, field, aes_key)
        if result.ok:
            _strip_key_material(record, (field,))
        return result

    def decrypt_named_fields(
        self, record: Record, fields: Iterable[str], key: KeyOverride = None
    ) -> dict[str, FieldResult]:
        """Decrypt several fields against a single key resolution.

        Key material is stripped once, after every field has been attempted,
        and only for the fields that decrypted; a failed field keeps its
        ciphertext and IV.
        """
        fields = list(fields)
        try:
            aes_key = self._key_for(record, key)
        except PHIError as exc:
            return {field: self._read_failure(record, field, exc) for field in fields}

        results: dict[str, FieldResult] = {}
        for field in fields:
            try:
                self._require_encrypted(record, field)
            except PHIError as exc:
                results[field] = self._read_failure(record, field, exc)
                continue
            results[field] = self._decrypt_into(record, field, aes_key)

        decrypted = [field for field, result in results.items() if result.ok]
        if decrypted:
            _strip_key_material(record, decrypted, keep_key=len(decrypted) < len(results))
        return results

    def decrypt_records(
        self,
        records: Iterable[Record],
        field: str,
        key_for: Callable[[Record], KeyOverride] | None = None,
    ) -> list[FieldResult]:
        """Decrypt one field across a listing; failures are reported, not raised.

        ``key_for`` supplies the key when it lives elsewhere, e.g. on the parent
        encounter of a SOAP note row.
        """
        results: list[FieldResult] = []
        for record in records:
            key = key_for(record) if key_for is not None else None
            results.append(self.decrypt_named_field(record, field, key=key))
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(
                "Batch decrypt skipped records",
                extra={"field": field, "failed": failed, "total": len(results)},
            )
        return results

    def _require_encrypted(self, record: Record, field: str) -> None:
        if not record.get(encrypted_field_name(field)) or not _field_iv(record, field):
            raise MissingEncryptedFieldError(
                f"Missing {encrypted_field_name(field)} or IV for {field}",
                field=field,
                record_id=record_ref(record),
            )

    def _decrypt_into(self, record: Record, field: str, aes_key: bytes) -> FieldResult:
        try:
            value = self._encryptor.decrypt(record[encrypted_field_name(field)], aes_key, _field_iv(record, field))
        except CryptoError as exc:
            record[field] = None
            return self._read_failure(record, field, exc)
        record[field] = value
        PHIMetrics.record_field_operation("decrypt", ok=True)
        return FieldResult.success(field, value)

    @staticmethod
    def _read_failure(record: Record, field: str, exc: PHIError) -> FieldResult:
        logger.error(
            "Field decrypt failed",
            extra={"field": field, "record_id": record_ref(record), "error_type": type(exc).__name__},
        )
        PHIMetrics.record_field_operation("decrypt", ok=False)
        return FieldResult.failure(field, exc)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def encrypt_named_field(self, record: Record, field: str) -> EncryptedField:
        """Encrypt ``record[field]`` under the record key with a freshly minted IV.

        Raises MissingPlainFieldError, MissingKeyMaterialError or
        EncryptionFailedError.
        """
        plaintext = record.get(field)
        if plaintext is None or plaintext == "":
            raise MissingPlainFieldError(
                f"Missing plain field {field} for encryption", field=field, record_id=record_ref(record)
            )

        try:
            aes_key = self._key_for(record, None)
            iv = _b64(self._custodian.generate_iv())
            ciphertext = self._encryptor.encrypt(plaintext, aes_key, iv)
        except CryptoError as exc:
            logger.error(
                "Field encrypt failed",
                extra={"field": field, "record_id": record_ref(record), "error_type": type(exc).__name__},
            )
            PHIMetrics.record_field_operation("encrypt", ok=False)
            raise EncryptionFailedError(
                f"Failed to encrypt {field}", field=field, record_id=record_ref(record)
            ) from exc

        record[encrypted_field_name(field)] = ciphertext
        if self._iv_policy is IVPolicy.PER_FIELD:
            record[field_iv_name(field)] = iv
            record.setdefault(IV_FIELD, iv)
        else:
            record[IV_FIELD] = iv
        del record[field]
        PHIMetrics.record_field_operation("encrypt", ok=True)
        return EncryptedField(field=field, ciphertext=ciphertext, iv=iv)


def _field_iv(record: Record, field: str) -> str | None:
    return record.get(field_iv_name(field)) or record.get(IV_FIELD)


def _strip_key_material(record: Record, fields: Iterable[str], keep_key: bool = False) -> None:
    """Drop ciphertext and IVs of decrypted fields.

    ``keep_key`` leaves the wrapped key and record IV in place for fields
    that still hold ciphertext.
    """
    for field in fields:
        record.pop(encrypted_field_name(field), None)
        record.pop(field_iv_name(field), None)
    if keep_key:
        return
    record.pop(IV_FIELD, None)
    record.pop(WRAPPED_KEY_FIELD, None)


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


__all__ = [
    "EncounterKeyResolver",
    "EncryptedField",
    "FieldResult",
    "IVPolicy",
    "IV_FIELD",
    "WRAPPED_KEY_FIELD",
    "encrypted_field_name",
    "field_iv_name",
]
