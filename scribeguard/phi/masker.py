"""Reversible PHI masking.

Spans are rewritten from the end of the text backward: replacing
``text[b:e]`` only moves characters at or after ``e``, so every span still
waiting (all with smaller offsets) keeps valid offsets. Spans within one text
are therefore processed sequentially; independent texts can be masked
concurrently.
"""

from __future__ import annotations

import asyncio
import math
from typing import Any, Iterable, Mapping, Sequence, Union

from observability.logging_config import get_logger
from observability.phi_metrics import PHIMetrics
from scribeguard.common.exceptions import InvalidInputError
from scribeguard.infra.safe_logging import safe_log_text, span_type_counts
from scribeguard.infra.settings import (
    DEFAULT_MASK_THRESHOLD,
    FALLBACK_MASK_THRESHOLD,
    PHISettings,
    get_phi_settings,
)
from scribeguard.phi.detection import PHIDetectorAdapter
from scribeguard.phi.models import MaskingResult, PHISpan
from scribeguard.phi.rewriter import format_mask_token, replace_range, require_text

logger = get_logger(__name__)

SpanLike = Union[PHISpan, Mapping[str, Any]]


class PHIMasker:
    """Turn detector spans into a confidence-filtered, token-masked text."""

    def __init__(
        self,
        detector: PHIDetectorAdapter | None = None,
        *,
        default_threshold: float | None = DEFAULT_MASK_THRESHOLD,
        fallback_threshold: float = FALLBACK_MASK_THRESHOLD,
    ):
        self._detector = detector
        self._default_threshold = default_threshold
        self._fallback_threshold = fallback_threshold

    @classmethod
    def from_settings(
        cls, detector: PHIDetectorAdapter | None, settings: PHISettings | None = None
    ) -> "PHIMasker":
        settings = settings or get_phi_settings()
        return cls(
            detector,
            default_threshold=settings.mask_threshold,
            fallback_threshold=settings.mask_fallback_threshold,
        )

    def resolve_threshold(self, threshold: float | None = None) -> float:
        """Explicit argument, else the configured default, else the fallback constant."""
        if threshold is None:
            threshold = (
                self._default_threshold if self._default_threshold is not None else self._fallback_threshold
            )
        try:
            value = float(threshold)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"mask threshold must be numeric, got {threshold!r}") from exc
        if math.isnan(value) or not 0.0 <= value <= 1.0:
            raise InvalidInputError(f"mask threshold must be within [0, 1], got {value}")
        return value

    async def mask(self, text: str, threshold: float | None = None) -> MaskingResult:
        """Detect PHI in ``text`` and mask every span scoring at or above the threshold."""
        require_text(text)
        if self._detector is None:
            raise InvalidInputError("PHIMasker has no detector; use mask_spans() with known spans")
        spans = await self._detector.detect(text)
        return self.mask_spans(text, spans, threshold)

    async def mask_many(self, texts: Iterable[str], threshold: float | None = None) -> list[MaskingResult]:
        """Mask independent texts concurrently; results keep input order."""
        return list(await asyncio.gather(*(self.mask(text, threshold) for text in texts)))

    def mask_spans(
        self, text: str, spans: Sequence[SpanLike], threshold: float | None = None
    ) -> MaskingResult:
        """Mask ``text`` using already-detected ``spans`` (no detector call)."""
        require_text(text)
        mask_threshold = self.resolve_threshold(threshold)

        ordered = sorted(
            (_anchor(text, span) for span in spans),
            key=lambda s: s.begin_offset,
            reverse=True,
        )
        numbered = _number(ordered)

        to_mask = [s for s in numbered if s.score >= mask_threshold]
        skipped = [s for s in numbered if s.score < mask_threshold]
        to_mask, merged = _merge_overlaps(text, to_mask)

        masked_text = text
        for entity in to_mask:
            masked_text = replace_range(
                masked_text,
                entity.begin_offset,
                entity.end_offset,
                format_mask_token(entity.type, entity.id),
            )

        PHIMetrics.record_masking(len(numbered), len(to_mask), len(skipped), merged)
        logger.info(
            "Masked PHI",
            extra={
                "text": safe_log_text(text),
                "detected": len(numbered),
                "masked": len(to_mask),
                "skipped": len(skipped),
                "merged": merged,
                "masked_types": span_type_counts(to_mask),
                "mask_threshold": mask_threshold,
            },
        )
        return MaskingResult(
            masked_text=masked_text,
            phi_entities=tuple(to_mask),
            skipped_entities=tuple(skipped),
            mask_threshold=mask_threshold,
        )


def _anchor(text: str, span: SpanLike) -> PHISpan:
    try:
        parsed = span if isinstance(span, PHISpan) else PHISpan.model_validate(span)
        return parsed.anchored_to(text)
    except ValueError as exc:
        # pydantic.ValidationError is a ValueError subclass.
        raise InvalidInputError(f"Invalid PHI span: {type(exc).__name__}") from exc


def _number(descending: list[PHISpan]) -> list[PHISpan]:
    """Give each span a token id unique within its type.

    Detector ids are kept. A span without one gets its 1-based position,
    bumped past any ``TYPE_ID`` already taken; a repeated detector id is
    renumbered the same way.
    """
    reserved = {(s.type, s.id) for s in descending if s.id is not None}
    taken: set[tuple[str, int]] = set()
    numbered: list[PHISpan] = []
    for idx, span in enumerate(descending):
        if span.id is None or (span.type, span.id) in taken:
            candidate = idx + 1
            while (span.type, candidate) in reserved or (span.type, candidate) in taken:
                candidate += 1
            span = span.model_copy(update={"id": candidate})
        taken.add((span.type, span.id))
        numbered.append(span)
    return numbered


def _merge_overlaps(text: str, descending: list[PHISpan]) -> tuple[list[PHISpan], int]:
    """Fold overlapping spans into the lower-offset one.

    Detectors are expected not to overlap; when they do, the absorbing span is
    widened to the union so unmasking still restores the exact source text.
    Touching spans (end == next begin) are left alone.
    """
    kept: list[PHISpan] = []
    merged = 0
    for span in descending:
        while kept and span.end_offset > kept[-1].begin_offset:
            absorbed = kept.pop()
            end = max(span.end_offset, absorbed.end_offset)
            span = span.model_copy(
                update={
                    "end_offset": end,
                    "text": text[span.begin_offset : end],
                    "score": max(span.score, absorbed.score),
                }
            )
            merged += 1
        kept.append(span)
    if merged:
        logger.warning("Merged overlapping PHI spans", extra={"merged": merged})
    return kept, merged


__all__ = ["PHIMasker"]
