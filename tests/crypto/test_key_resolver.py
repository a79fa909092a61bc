"""Tests for per-record envelope encryption of named fields."""

import pytest

from observability.phi_metrics import PHIMetrics
from scribeguard.common.exceptions import (
    EncryptionFailedError,
    InvalidInputError,
    MissingKeyMaterialError,
    MissingPlainFieldError,
)
from scribeguard.crypto.key_custodian import KeyCustodian
from scribeguard.crypto.key_resolver import EncounterKeyResolver, IVPolicy

TRANSCRIPT = "Patient Jane Roe, 54, reports three days of productive cough."
SOAP = "S: productive cough x3d. O: afebrile. A: bronchitis. P: supportive care."


@pytest.fixture
def record(resolver):
    rec = {"id": "enc-42", "transcript": TRANSCRIPT}
    resolver.provision(rec, ["transcript"])
    return rec


class TestProvision:
    def test_provision_stores_wrapped_key_iv_and_ciphertext(self, record):
        assert record["encrypted_aes_key"]
        assert record["iv"]
        assert record["encrypted_transcript"]
        assert record["transcript_iv"]
        assert "transcript" not in record

    def test_provision_twice_is_rejected(self, resolver, record):
        with pytest.raises(InvalidInputError):
            resolver.provision(record)

    def test_resolve_key_requires_key_material(self, resolver):
        with pytest.raises(MissingKeyMaterialError):
            resolver.resolve_key({"id": "x"})


class TestDecrypt:
    def test_decrypt_restores_plaintext_and_strips_key_material(self, resolver, record, metrics):
        result = resolver.decrypt_named_field(record, "transcript")

        assert result.ok
        assert result.value == TRANSCRIPT
        assert record == {"id": "enc-42", "transcript": TRANSCRIPT}
        assert metrics.counter(PHIMetrics.FIELD_OPERATIONS, {"operation": "decrypt", "outcome": "ok"}) == 1

    def test_missing_ciphertext_is_reported(self, resolver, record):
        result = resolver.decrypt_named_field(record, "soap_note")

        assert not result.ok
        assert result.error_type == "MissingEncryptedFieldError"
        assert "encrypted_aes_key" in record

    def test_missing_wrapped_key_is_reported(self, resolver, record):
        del record["encrypted_aes_key"]

        result = resolver.decrypt_named_field(record, "transcript")

        assert result.error_type == "MissingKeyMaterialError"
        assert "encrypted_transcript" in record

    def test_wrong_keypair_is_reported_and_record_kept(self, record, other_key_material):
        other = EncounterKeyResolver(KeyCustodian(other_key_material))

        result = other.decrypt_named_field(record, "transcript")

        assert result.error_type == "DecryptionFailedError"
        assert "encrypted_transcript" in record

    def test_tampered_ciphertext_nulls_the_field(self, resolver, record, metrics):
        record["encrypted_transcript"] = "AAAA" + record["encrypted_transcript"][4:-4] + "AAAA"

        result = resolver.decrypt_named_field(record, "transcript")

        if not result.ok:
            assert record["transcript"] is None
            assert "encrypted_transcript" in record
            assert metrics.counter(PHIMetrics.FIELD_OPERATIONS, {"operation": "decrypt", "outcome": "failed"}) == 1
        else:
            assert result.value != TRANSCRIPT

    def test_unwrapped_key_override(self, resolver, record):
        aes_key = resolver.resolve_key(record)
        del record["encrypted_aes_key"]

        result = resolver.decrypt_named_field(record, "transcript", key=aes_key)

        assert result.value == TRANSCRIPT

    def test_wrapped_key_from_parent_record(self, resolver, record):
        note = {"id": "note-1", "soap_note": SOAP, "encrypted_aes_key": record["encrypted_aes_key"], "iv": record["iv"]}
        resolver.encrypt_named_field(note, "soap_note")
        parent_key = note.pop("encrypted_aes_key")

        result = resolver.decrypt_named_field(note, "soap_note", key=parent_key)

        assert result.value == SOAP

    def test_decrypt_named_fields_shares_one_key(self, resolver, record):
        record["soap_note"] = SOAP
        resolver.encrypt_named_field(record, "soap_note")

        results = resolver.decrypt_named_fields(record, ["transcript", "soap_note"])

        assert {f: r.value for f, r in results.items()} == {"transcript": TRANSCRIPT, "soap_note": SOAP}
        assert set(record) == {"id", "transcript", "soap_note"}

    def test_decrypt_named_fields_keeps_ciphertext_of_failed_field(self, resolver, record):
        record["soap_note"] = SOAP
        resolver.encrypt_named_field(record, "soap_note")
        record["encrypted_transcript"] = "AAAA"

        results = resolver.decrypt_named_fields(record, ["soap_note", "transcript"])

        assert {f: r.ok for f, r in results.items()} == {"soap_note": True, "transcript": False}
        assert record["soap_note"] == SOAP
        assert record["transcript"] is None
        assert record["encrypted_transcript"] == "AAAA"
        assert record["transcript_iv"]
        assert record["encrypted_aes_key"]
        assert "encrypted_soap_note" not in record
        assert "soap_note_iv" not in record

    def test_decrypt_records_reports_per_record(self, resolver, record):
        broken = {"id": "enc-43", "encrypted_transcript": "AAAA", "iv": record["iv"]}

        results = resolver.decrypt_records([record, broken], "transcript")

        assert [r.ok for r in results] == [True, False]
        assert results[1].error_type == "MissingKeyMaterialError"


class TestEncrypt:
    def test_each_write_gets_a_fresh_iv(self, resolver, record):
        record["a"] = "same text"
        record["b"] = "same text"

        first = resolver.encrypt_named_field(record, "a")
        second = resolver.encrypt_named_field(record, "b")

        assert first.iv != second.iv
        assert first.ciphertext != second.ciphertext

    def test_per_field_policy_keeps_all_fields_readable(self, resolver, record):
        record_iv = record["iv"]
        record["soap_note"] = SOAP
        resolver.encrypt_named_field(record, "soap_note")

        assert record["iv"] == record_iv
        results = resolver.decrypt_named_fields(record, ["transcript", "soap_note"])
        assert all(r.ok for r in results.values())

    def test_record_policy_overwrites_shared_iv(self, custodian):
        legacy = EncounterKeyResolver(custodian, iv_policy=IVPolicy.RECORD)
        rec = {"id": "enc-9", "transcript": TRANSCRIPT}
        legacy.provision(rec, ["transcript"])
        iv_after_first = rec["iv"]
        rec["soap_note"] = SOAP
        legacy.encrypt_named_field(rec, "soap_note")

        assert rec["iv"] != iv_after_first
        assert "transcript_iv" not in rec

        # The earlier field is now read with the later IV and does not come back intact.
        result = legacy.decrypt_named_field(dict(rec), "transcript")
        assert not (result.ok and result.value == TRANSCRIPT)
        assert legacy.decrypt_named_field(rec, "soap_note").value == SOAP

    def test_missing_plain_field(self, resolver, record):
        with pytest.raises(MissingPlainFieldError):
            resolver.encrypt_named_field(record, "soap_note")

    def test_empty_plain_field(self, resolver, record):
        record["soap_note"] = ""

        with pytest.raises(MissingPlainFieldError):
            resolver.encrypt_named_field(record, "soap_note")

    def test_missing_key_material(self, resolver):
        with pytest.raises(MissingKeyMaterialError):
            resolver.encrypt_named_field({"soap_note": SOAP}, "soap_note")

    def test_corrupt_wrapped_key_raises_encryption_failed(self, resolver):
        rec = {"soap_note": SOAP, "encrypted_aes_key": "AAAA", "iv": "AAAA"}

        with pytest.raises(EncryptionFailedError) as excinfo:
            resolver.encrypt_named_field(rec, "soap_note")

        assert excinfo.value.field == "soap_note"
        assert rec["soap_note"] == SOAP
