"""Restore original text from ``{{TYPE_ID}}`` tokens and an entity ledger.

Pure regex substitution: no offsets are involved, so replacements of any
length reflow naturally. Bad tokens are reported, never raised.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Union

from observability.logging_config import get_logger
from observability.phi_metrics import PHIMetrics
from scribeguard.phi.models import PHISpan, UnmaskResult, UnmaskWarnings
from scribeguard.phi.rewriter import MASK_TOKEN_RE, parse_mask_token, require_text

logger = get_logger(__name__)

LedgerEntry = Union[PHISpan, Mapping[str, Any]]


def _first(entry: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def build_ledger_lookup(phi_entities: Iterable[LedgerEntry]) -> dict[str, str]:
    """Map ``"TYPE_ID"`` to original text. Entries missing any part are ignored."""
    lookup: dict[str, str] = {}
    for entity in phi_entities:
        if isinstance(entity, PHISpan):
            entity_type, entity_id, text = entity.type, entity.id, entity.text
        else:
            entity_type = _first(entity, "type", "Type")
            entity_id = _first(entity, "id", "Id")
            text = _first(entity, "text", "Text")
        if entity_type is None or entity_id is None or text is None:
            continue
        lookup[f"{entity_type}_{entity_id}"] = str(text)
    return lookup


class PHIUnmasker:
    """Inverse of PHIMasker given the ledger it produced."""

    def unmask(self, masked_text: str, phi_entities: Iterable[LedgerEntry]) -> UnmaskResult:
        require_text(masked_text, "masked_text")
        lookup = build_ledger_lookup(phi_entities or ())
        warnings = UnmaskWarnings()

        def _restore(match: re.Match[str]) -> str:
            token = match.group(0)
            parts = parse_mask_token(match.group(1))
            if parts is None:
                warnings.invalid_tokens.append(token)
                return token
            replacement = lookup.get(f"{parts[0]}_{parts[1]}")
            if replacement is None:
                warnings.no_match_tokens.append(token)
                return token
            return replacement

        unmasked = MASK_TOKEN_RE.sub(_restore, masked_text)

        if warnings.invalid_tokens or warnings.no_match_tokens:
            logger.warning(
                "Unmask left tokens in place",
                extra={
                    "invalid_tokens": len(warnings.invalid_tokens),
                    "no_match_tokens": len(warnings.no_match_tokens),
                },
            )
            PHIMetrics.record_unmask_warnings(len(warnings.invalid_tokens), len(warnings.no_match_tokens))
        return UnmaskResult(unmasked_text=unmasked, warnings=warnings)


__all__ = ["PHIUnmasker", "build_ledger_lookup"]
