"""Shared fixtures: keypairs, crypto components, stub detector, metrics sink."""

from __future__ import annotations

import pytest

from observability.metrics import InMemoryMetricsClient, reset_metrics_client, set_metrics_client
from scribeguard.crypto.key_custodian import KeyCustodian
from scribeguard.crypto.key_resolver import EncounterKeyResolver
from scribeguard.crypto.keys import KeyMaterial
from scribeguard.infra.settings import get_key_settings, get_phi_settings
from scribeguard.phi.adapters.stub import StubBackend
from scribeguard.phi.detection import PHIDetectorAdapter
from scribeguard.phi.masker import PHIMasker

SAMPLE_NOTE = "Patient John Smith, DOB 01/02/1980, seen today."

# Spans over SAMPLE_NOTE in detector wire shape.
SAMPLE_SPANS = [
    {"Type": "NAME", "Text": "John Smith", "BeginOffset": 8, "EndOffset": 18, "Score": 0.99},
    {"Type": "DATE", "Text": "01/02/1980", "BeginOffset": 24, "EndOffset": 34, "Score": 0.95},
]


@pytest.fixture(scope="session")
def key_material() -> KeyMaterial:
    return KeyMaterial.generate(key_id="test-key")


@pytest.fixture(scope="session")
def other_key_material() -> KeyMaterial:
    return KeyMaterial.generate(key_id="other-key")


@pytest.fixture
def custodian(key_material) -> KeyCustodian:
    return KeyCustodian(key_material)


@pytest.fixture
def resolver(custodian) -> EncounterKeyResolver:
    return EncounterKeyResolver(custodian)


@pytest.fixture
def stub_backend() -> StubBackend:
    return StubBackend(SAMPLE_SPANS)


@pytest.fixture
def masker(stub_backend) -> PHIMasker:
    return PHIMasker(PHIDetectorAdapter(stub_backend, timeout_s=2.0))


@pytest.fixture(autouse=True)
def metrics() -> InMemoryMetricsClient:
    client = InMemoryMetricsClient()
    set_metrics_client(client)
    yield client
    reset_metrics_client()


@pytest.fixture
def clean_settings(monkeypatch):
    """Clear cached settings so env changes made by a test take effect."""
    for name in ("PHI_MASK_THRESHOLD", "PHI_DETECTOR_BACKEND", "PHI_IV_POLICY", "REFRESH_TOKEN_AES_KEY_HEX"):
        monkeypatch.delenv(name, raising=False)
    get_phi_settings.cache_clear()
    get_key_settings.cache_clear()
    yield monkeypatch
    get_phi_settings.cache_clear()
    get_key_settings.cache_clear()
