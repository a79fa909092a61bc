"""PHI masking, unmasking and orchestration."""

from scribeguard.phi.detection import PHIDetectorAdapter
from scribeguard.phi.masker import PHIMasker
from scribeguard.phi.models import MaskingResult, PHISpan, UnmaskResult, UnmaskWarnings
from scribeguard.phi.ports import PHIDetectionBackend, TextGenerator
from scribeguard.phi.service import DraftResult, PHIService
from scribeguard.phi.unmasker import PHIUnmasker

__all__ = [
    "DraftResult",
    "MaskingResult",
    "PHIDetectionBackend",
    "PHIDetectorAdapter",
    "PHIMasker",
    "PHIService",
    "PHISpan",
    "PHIUnmasker",
    "TextGenerator",
    "UnmaskResult",
    "UnmaskWarnings",
]
