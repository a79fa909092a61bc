"""Ports/interfaces for PHI detection and text generation.

These are intentionally lightweight so the adapter and service can swap
implementations (AWS Comprehend Medical, Presidio, regex, test stubs).
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence, Union, runtime_checkable

from scribeguard.phi.models import PHISpan

RawSpans = Sequence[Union[PHISpan, Mapping[str, Any]]]


@runtime_checkable
class PHIDetectionBackend(Protocol):
    """Abstraction over an external PHI span detector.

    ``detect`` may be a plain function (run in a worker thread) or a coroutine
    function. Records use the detector wire shape
    ``{Type, Text, BeginOffset, EndOffset, Score, Id?}`` or PHISpan.
    """

    name: str

    def detect(self, text: str) -> RawSpans | Awaitable[RawSpans]:
        """Return zero or more spans for ``text``."""


# Generative model boundary: receives masked text only, returns generated text.
TextGenerator = Callable[[str], Union[str, Awaitable[str]]]


__all__ = ["PHIDetectionBackend", "RawSpans", "TextGenerator"]
