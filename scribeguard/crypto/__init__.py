"""Envelope encryption: RSA-wrapped per-record AES keys and field encryption."""

from scribeguard.crypto.encryptor import Encryptor
from scribeguard.crypto.key_custodian import KeyCustodian
from scribeguard.crypto.key_resolver import EncounterKeyResolver, EncryptedField, FieldResult, IVPolicy
from scribeguard.crypto.keys import KeyMaterial
from scribeguard.crypto.secret_box import SecretBox, hash_token, verify_token_hash

__all__ = [
    "Encryptor",
    "EncounterKeyResolver",
    "EncryptedField",
    "FieldResult",
    "IVPolicy",
    "KeyCustodian",
    "KeyMaterial",
    "SecretBox",
    "hash_token",
    "verify_token_hash",
]
