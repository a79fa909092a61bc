"""Process-wide wiring for the PHI and crypto components.

Everything is built once from settings and cached. Tests construct the
components directly instead of going through these helpers.
"""

from __future__ import annotations

from functools import lru_cache

from observability.logging_config import get_logger
from scribeguard.crypto.key_custodian import KeyCustodian
from scribeguard.crypto.key_resolver import EncounterKeyResolver
from scribeguard.crypto.keys import KeyMaterial
from scribeguard.crypto.secret_box import SecretBox
from scribeguard.infra.settings import PHISettings, get_phi_settings
from scribeguard.phi.adapters import (
    ComprehendMedicalBackend,
    PresidioBackend,
    RegexBackend,
    StubBackend,
)
from scribeguard.phi.detection import PHIDetectorAdapter
from scribeguard.phi.masker import PHIMasker
from scribeguard.phi.ports import PHIDetectionBackend
from scribeguard.phi.service import PHIService

logger = get_logger(__name__)


def build_detection_backend(settings: PHISettings) -> PHIDetectionBackend:
    """Instantiate the backend named by ``settings.detector_backend``."""
    backend = settings.detector_backend
    if backend == "comprehend":
        return ComprehendMedicalBackend(region=settings.aws_region)
    if backend == "presidio":
        return PresidioBackend(language=settings.presidio_language)
    if backend == "stub":
        logger.warning("Using stub PHI detector; no PHI will be detected")
        return StubBackend()
    return RegexBackend()


@lru_cache
def get_detector() -> PHIDetectorAdapter:
    settings = get_phi_settings()
    backend = build_detection_backend(settings)
    logger.info("PHI detector configured", extra={"backend": backend.name})
    return PHIDetectorAdapter(backend, timeout_s=settings.detector_timeout_s)


@lru_cache
def get_masker() -> PHIMasker:
    return PHIMasker.from_settings(get_detector())


@lru_cache
def get_key_material() -> KeyMaterial:
    return KeyMaterial.from_settings()


@lru_cache
def get_key_custodian() -> KeyCustodian:
    return KeyCustodian(get_key_material())


@lru_cache
def get_key_resolver() -> EncounterKeyResolver:
    return EncounterKeyResolver(get_key_custodian(), iv_policy=get_phi_settings().iv_policy)


@lru_cache
def get_secret_box() -> SecretBox:
    return SecretBox.from_settings()


def get_phi_service(with_keys: bool = True) -> PHIService:
    """Construct a PHIService; ``with_keys=False`` skips loading RSA material."""
    resolver = get_key_resolver() if with_keys else None
    return PHIService(get_masker(), resolver=resolver)


__all__ = [
    "build_detection_backend",
    "get_detector",
    "get_key_custodian",
    "get_key_material",
    "get_key_resolver",
    "get_masker",
    "get_phi_service",
    "get_secret_box",
]
