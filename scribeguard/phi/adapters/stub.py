"""Stub detection backend for demo/testing use only.

Returns a fixed list of spans regardless of input and remembers every text it
was asked about, so tests can assert what reached the detector.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Union

from scribeguard.phi.models import PHISpan


class StubBackend:
    name = "stub"

    def __init__(self, spans: Iterable[Union[PHISpan, Mapping[str, Any]]] = ()):
        self.spans = list(spans)
        self.calls: list[str] = []

    def detect(self, text: str) -> list[Union[PHISpan, Mapping[str, Any]]]:
        self.calls.append(text)
        return list(self.spans)


__all__ = ["StubBackend"]
