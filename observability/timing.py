"""Latency measurement that reports success or failure alongside the duration."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from .metrics import get_metrics_client


class TimingContext:
    """Measures a block in milliseconds.

    The emitted timing carries an ``outcome`` tag (``ok`` or ``error``) and,
    on failure, the exception class name as ``error_type``.
    """

    def __init__(self, name: str, tags: dict[str, str] | None = None, emit_metric: bool = True):
        self.name = name
        self.tags = dict(tags or {})
        self.emit_metric = emit_metric
        self.elapsed_ms: float = 0.0
        self._started: float = 0.0

    def __enter__(self) -> "TimingContext":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000
        if not self.emit_metric:
            return
        tags = {**self.tags, "outcome": "error" if exc_type else "ok"}
        if exc_type is not None:
            tags["error_type"] = exc_type.__name__
        get_metrics_client().timing(self.name, self.elapsed_ms, tags)


@contextmanager
def timed(name: str, tags: dict[str, str] | None = None, emit_metric: bool = True) -> Iterator[TimingContext]:
    """Time a block.

    Usage:
        with timed(PHIMetrics.DETECT_LATENCY, {"backend": "comprehend"}) as t:
            spans = await adapter.detect(text)
    """
    with TimingContext(name, tags, emit_metric) as ctx:
        yield ctx
