"""Pattern-based PHI detection for local development and offline use.

Deterministic and dependency-free; it catches structured identifiers (labelled
names, MRNs, dates, phone numbers, emails, SSNs) but not free-text names.
"""

from __future__ import annotations

import re
from typing import Any

# Structured patient header, e.g. "Patient: Jane Test".
_PATIENT_HEADER_RE = re.compile(r"(?im)\b(?:Patient|Pt|Name)\s*:\s*([^\n]+)")
# Leading "Last, First" before MRN.
_LEADING_NAME_RE = re.compile(r"^\s*([A-Z][A-Za-z'\-]+,\s*[A-Z][A-Za-z'\-]+)\s+MRN\b")
# "Patient Jane Test" (no colon).
_PATIENT_INLINE_RE = re.compile(r"\b[Pp]atient\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,2})\b")
_DOCTOR_RE = re.compile(r"\b(?:Dr\.|Doctor)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)")

_MRN_RE = re.compile(r"(?i)\b(?:MRN|Medical\s*Record(?:\s*Number)?|Patient\s*ID)\s*[:#]?\s*(\d{5,12})\b")
_DATE_RE = re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b")
_ISO_DATE_RE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
_PHONE_RE = re.compile(r"(?<!\d)(?:\(\d{3}\)\s*|\d{3}[-.\s])\d{3}[-.\s]\d{4}(?!\d)")
_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_SSN_RE = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")

# (pattern, entity type, score, capture group)
_PATTERNS: tuple[tuple[re.Pattern[str], str, float, int], ...] = (
    (_PATIENT_HEADER_RE, "NAME", 0.99, 1),
    (_LEADING_NAME_RE, "NAME", 0.99, 1),
    (_PATIENT_INLINE_RE, "NAME", 0.90, 1),
    (_DOCTOR_RE, "NAME", 0.90, 1),
    (_MRN_RE, "ID", 0.99, 1),
    (_SSN_RE, "ID", 0.99, 0),
    (_DATE_RE, "DATE", 0.95, 0),
    (_ISO_DATE_RE, "DATE", 0.95, 0),
    (_PHONE_RE, "PHONE", 0.95, 0),
    (_EMAIL_RE, "EMAIL", 0.99, 0),
)


class RegexBackend:
    name = "regex"

    def detect(self, text: str) -> list[dict[str, Any]]:
        found: dict[tuple[int, int], dict[str, Any]] = {}
        for pattern, entity_type, score, group in _PATTERNS:
            for match in pattern.finditer(text):
                start, end = match.span(group)
                # Header captures run to end of line; trim trailing whitespace.
                value = text[start:end].rstrip()
                end = start + len(value)
                if end <= start:
                    continue
                current = found.get((start, end))
                if current is None or current["Score"] < score:
                    found[(start, end)] = {
                        "Type": entity_type,
                        "Text": value,
                        "BeginOffset": start,
                        "EndOffset": end,
                        "Score": score,
                    }
        return sorted(found.values(), key=lambda s: s["BeginOffset"])


__all__ = ["RegexBackend"]
