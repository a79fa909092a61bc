"""Tests for KeyMaterial loading and RSA-OAEP key wrapping."""

import base64

import pytest

from scribeguard.common.exceptions import (
    DecryptionFailedError,
    InvalidInputError,
    KeyUnavailableError,
)
from scribeguard.crypto.key_custodian import AES_KEY_BYTES, IV_BYTES, KeyCustodian
from scribeguard.crypto.keys import KeyMaterial
from scribeguard.infra.settings import KeySettings


class TestWrapUnwrap:
    def test_round_trip(self, custodian):
        key, _ = custodian.generate_symmetric_material()

        assert custodian.unwrap_key(custodian.wrap_key(key)) == key

    def test_wrapping_is_randomized(self, custodian):
        key = b"k" * AES_KEY_BYTES

        assert custodian.wrap_key(key) != custodian.wrap_key(key)

    def test_wrong_keypair_fails(self, custodian, other_key_material):
        wrapped = custodian.wrap_key(b"k" * AES_KEY_BYTES)

        with pytest.raises(DecryptionFailedError):
            KeyCustodian(other_key_material).unwrap_key(wrapped)

    @pytest.mark.parametrize("wrapped", ["", "not base64!!", base64.b64encode(b"short").decode()])
    def test_malformed_wrapped_key(self, custodian, wrapped):
        with pytest.raises(DecryptionFailedError):
            custodian.unwrap_key(wrapped)

    def test_empty_raw_key_is_rejected(self, custodian):
        with pytest.raises(InvalidInputError):
            custodian.wrap_key(b"")

    def test_public_only_custodian_cannot_unwrap(self, key_material):
        public_only = KeyMaterial.from_pem(public_pem=key_material.public_pem())
        wrapped = KeyCustodian(public_only).wrap_key(b"k" * AES_KEY_BYTES)

        with pytest.raises(KeyUnavailableError):
            KeyCustodian(public_only).unwrap_key(wrapped)
        assert KeyCustodian(key_material).unwrap_key(wrapped) == b"k" * AES_KEY_BYTES

    def test_no_key_material(self):
        custodian = KeyCustodian(KeyMaterial())

        with pytest.raises(KeyUnavailableError):
            custodian.wrap_key(b"k")
        with pytest.raises(KeyUnavailableError):
            custodian.public_key_pem()

    def test_generated_material_sizes(self):
        key, iv = KeyCustodian.generate_symmetric_material()

        assert (len(key), len(iv)) == (AES_KEY_BYTES, IV_BYTES)
        assert len(KeyCustodian.generate_iv()) == IV_BYTES


class TestKeyMaterial:
    def test_private_pem_alone_derives_public_key(self, key_material):
        loaded = KeyMaterial.from_pem(private_pem=key_material.private_pem())

        assert loaded.public_pem() == key_material.public_pem()

    def test_escaped_newlines_are_accepted(self, key_material):
        flattened = key_material.private_pem().replace("\n", "\\n")

        assert KeyMaterial.from_pem(private_pem=flattened).private_key is not None

    def test_encrypted_private_pem(self, key_material):
        pem = key_material.private_pem(password=b"s3cret")

        assert KeyMaterial.from_pem(private_pem=pem, password=b"s3cret").private_key is not None

    def test_garbage_pem(self):
        with pytest.raises(KeyUnavailableError):
            KeyMaterial.from_pem(public_pem="-----BEGIN PUBLIC KEY-----\nnope\n-----END PUBLIC KEY-----")

    def test_from_settings_inline(self, key_material):
        settings = KeySettings(
            rsa_private_key=key_material.private_pem().replace("\n", "\\n"),
            public_key_id="kid-7",
        )

        loaded = KeyMaterial.from_settings(settings)

        assert loaded.key_id == "kid-7"
        assert KeyCustodian(loaded).key_id == "kid-7"

    def test_from_settings_paths(self, key_material, tmp_path):
        (tmp_path / "public.pem").write_text(key_material.public_pem())
        (tmp_path / "private.pem").write_text(key_material.private_pem())
        settings = KeySettings(public_key_path=tmp_path / "public.pem", private_key_path=tmp_path / "private.pem")

        custodian = KeyCustodian(KeyMaterial.from_settings(settings))

        assert custodian.unwrap_key(custodian.wrap_key(b"x" * 32)) == b"x" * 32

    def test_missing_key_file(self, tmp_path):
        with pytest.raises(KeyUnavailableError):
            KeyMaterial.from_settings(KeySettings(private_key_path=tmp_path / "absent.pem"))

    def test_repr_hides_keys(self, key_material):
        assert "BEGIN" not in repr(key_material)
