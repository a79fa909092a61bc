"""Counters and timings for the PHI pipeline.

Backends:
- NullMetricsClient: discards everything (default)
- StdoutMetricsClient: one JSON line per observation on stderr
- InMemoryMetricsClient: thread-safe accumulator for tests and local runs

Choose with METRICS_BACKEND=null|stdout|memory or install a client with
set_metrics_client(). Tags must never carry PHI; use enum-like values only.
"""

from __future__ import annotations

import json
import os
import sys
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone

TagKey = tuple[tuple[str, str], ...]


def _tag_key(tags: dict[str, str] | None) -> TagKey:
    return tuple(sorted((tags or {}).items()))


class MetricsClient(ABC):
    @abstractmethod
    def incr(self, name: str, tags: dict[str, str] | None = None, value: int = 1) -> None:
        """Add ``value`` to a counter."""

    @abstractmethod
    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        """Record a duration in milliseconds."""


class NullMetricsClient(MetricsClient):
    def incr(self, name: str, tags: dict[str, str] | None = None, value: int = 1) -> None:
        pass

    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        pass


class StdoutMetricsClient(MetricsClient):
    """Debug sink; stderr keeps metrics out of CLI output on stdout."""

    def __init__(self, prefix: str = "scribeguard"):
        self.prefix = prefix

    def _write(self, kind: str, name: str, value: float, tags: dict[str, str] | None) -> None:
        line = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": kind,
            "metric": f"{self.prefix}.{name}",
            "value": value,
            "tags": tags or {},
        }
        print(json.dumps(line), file=sys.stderr)

    def incr(self, name: str, tags: dict[str, str] | None = None, value: int = 1) -> None:
        self._write("counter", name, value, tags)

    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        self._write("timing", name, value_ms, tags)


class InMemoryMetricsClient(MetricsClient):
    """Counters keyed by (name, sorted tags); every timing observation is kept."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.counters: dict[tuple[str, TagKey], int] = defaultdict(int)
        self.timings: dict[str, list[tuple[float, TagKey]]] = defaultdict(list)

    def incr(self, name: str, tags: dict[str, str] | None = None, value: int = 1) -> None:
        with self._lock:
            self.counters[(name, _tag_key(tags))] += value

    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        with self._lock:
            self.timings[name].append((value_ms, _tag_key(tags)))

    def counter(self, name: str, tags: dict[str, str] | None = None) -> int:
        with self._lock:
            return self.counters.get((name, _tag_key(tags)), 0)

    def counter_total(self, name: str) -> int:
        """Sum of a counter across every tag combination."""
        with self._lock:
            return sum(count for (metric, _), count in self.counters.items() if metric == name)

    def timing_tags(self, name: str) -> list[dict[str, str]]:
        with self._lock:
            return [dict(tags) for _, tags in self.timings.get(name, [])]


_BACKENDS: dict[str, type[MetricsClient]] = {
    "null": NullMetricsClient,
    "stdout": StdoutMetricsClient,
    "memory": InMemoryMetricsClient,
}

_client: MetricsClient | None = None


def get_metrics_client() -> MetricsClient:
    """Process-wide client, created from METRICS_BACKEND on first use."""
    global _client
    if _client is None:
        backend = os.getenv("METRICS_BACKEND", "null").strip().lower()
        _client = _BACKENDS.get(backend, NullMetricsClient)()
    return _client


def set_metrics_client(client: MetricsClient) -> None:
    global _client
    _client = client


def reset_metrics_client() -> None:
    """Forget the current client so the next call re-reads the environment."""
    global _client
    _client = None
