"""Renderers that let log lines describe PHI without containing it."""

from __future__ import annotations

import hashlib
from collections import Counter
from typing import Any, Iterable, Mapping

_DIGEST_CHARS = 12


def safe_log_text(text: str | bytes | None) -> str:
    """Short SHA-256 prefix and length of ``text``; the text itself is never returned.

    Equal inputs render equally, so repeated documents can be correlated
    across log lines.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    normalized = (text or "").strip()
    if not normalized:
        return "<empty>"
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:_DIGEST_CHARS]
    return f"<sha256={digest} len={len(normalized)}>"


def span_type_counts(spans: Iterable[Any]) -> dict[str, int]:
    """Count spans per entity type, e.g. ``{"NAME": 2, "DATE": 1}``."""
    return dict(Counter(getattr(span, "type", "PHI") for span in spans))


def record_ref(record: Mapping[str, Any]) -> str | None:
    """Identifier of a record for log lines; never a field value."""
    for key in ("id", "record_id", "encounter_id"):
        value = record.get(key)
        if value is not None:
            return str(value)
    return None


__all__ = ["record_ref", "safe_log_text", "span_type_counts"]
