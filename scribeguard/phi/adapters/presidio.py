"""Presidio AnalyzerEngine backend.

The analyzer loads a spaCy model on first use, so construction is lazy and
the engine is shared across calls.
"""

from __future__ import annotations

from typing import Any, Sequence

from observability.logging_config import get_logger

logger = get_logger(__name__)


class PresidioBackend:
    name = "presidio"

    def __init__(
        self,
        analyzer: Any = None,
        language: str = "en",
        entities: Sequence[str] | None = None,
    ):
        self._analyzer = analyzer
        self.language = language
        self.entities = list(entities) if entities else None

    @property
    def analyzer(self) -> Any:
        if self._analyzer is None:
            from presidio_analyzer import AnalyzerEngine

            logger.info("Loading Presidio analyzer", extra={"language": self.language})
            self._analyzer = AnalyzerEngine()
        return self._analyzer

    def detect(self, text: str) -> list[dict[str, Any]]:
        results = self.analyzer.analyze(text=text, language=self.language, entities=self.entities)

        # Several recognizers can fire on the same range; keep the best score.
        best: dict[tuple[int, int], Any] = {}
        for result in results:
            key = (result.start, result.end)
            if key not in best or result.score > best[key].score:
                best[key] = result

        return [
            {
                "Type": r.entity_type,
                "Text": text[r.start : r.end],
                "BeginOffset": r.start,
                "EndOffset": r.end,
                "Score": float(r.score),
            }
            for r in sorted(best.values(), key=lambda r: r.start)
            if r.end > r.start
        ]


__all__ = ["PresidioBackend"]
