"""Detection backend adapters for PHIDetectorAdapter."""

from scribeguard.phi.adapters.comprehend_medical import ComprehendMedicalBackend
from scribeguard.phi.adapters.presidio import PresidioBackend
from scribeguard.phi.adapters.regex_backend import RegexBackend
from scribeguard.phi.adapters.stub import StubBackend

__all__ = ["ComprehendMedicalBackend", "PresidioBackend", "RegexBackend", "StubBackend"]
