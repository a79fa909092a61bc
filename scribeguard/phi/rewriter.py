"""Offset-safe text rewriting and the ``{{TYPE_ID}}`` token format."""

from __future__ import annotations

import re
from typing import Any

from scribeguard.common.exceptions import InvalidInputError

# Any {{...}} run without nested braces; the body is validated separately.
MASK_TOKEN_RE = re.compile(r"\{\{([^{}]+)\}\}")
TOKEN_BODY_RE = re.compile(r"^([A-Za-z0-9]+)_(\d+)$")
_TYPE_RE = re.compile(r"^[A-Za-z0-9]+$")


def require_text(text: Any, name: str = "text") -> str:
    if not isinstance(text, str) or not text:
        raise InvalidInputError(f"{name} is required and must be a non-empty string")
    return text


def format_mask_token(entity_type: str, entity_id: int) -> str:
    if not isinstance(entity_type, str) or not _TYPE_RE.match(entity_type):
        raise InvalidInputError(f"Token type must be alphanumeric, got {entity_type!r}")
    if isinstance(entity_id, bool) or not isinstance(entity_id, int) or entity_id < 0:
        raise InvalidInputError(f"Token id must be a non-negative integer, got {entity_id!r}")
    return f"{{{{{entity_type}_{entity_id}}}}}"


def parse_mask_token(body: str) -> tuple[str, str] | None:
    """Split a token body like ``NAME_1`` into ``("NAME", "1")``; None if malformed."""
    match = TOKEN_BODY_RE.match(body)
    if match is None:
        return None
    return match.group(1), match.group(2)


def replace_range(text: str, begin_offset: int, end_offset: int, replacement: str) -> str:
    """Replace ``text[begin_offset:end_offset]`` with ``replacement``.

    Only characters at or after ``end_offset`` move, so rewriting spans in
    descending offset order keeps every pending offset valid.
    """
    if not 0 <= begin_offset <= end_offset <= len(text):
        raise InvalidInputError(
            f"Invalid range [{begin_offset}, {end_offset}) for text of length {len(text)}"
        )
    return text[:begin_offset] + replacement + text[end_offset:]


__all__ = [
    "MASK_TOKEN_RE",
    "TOKEN_BODY_RE",
    "format_mask_token",
    "parse_mask_token",
    "replace_range",
    "require_text",
]
