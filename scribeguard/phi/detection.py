"""Boundary around the external PHI span detector.

The adapter is the only await point in the masking path. It enforces a
timeout, maps every backend failure to DetectionUnavailableError, and
validates detector output on ingress. Malformed or out-of-range spans fail the
call rather than being dropped, so unmasked PHI never slips through silently.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Iterable

from pydantic import ValidationError

from observability.logging_config import get_logger
from observability.phi_metrics import PHIMetrics
from observability.timing import timed
from scribeguard.common.exceptions import DetectionUnavailableError
from scribeguard.infra.safe_logging import safe_log_text
from scribeguard.phi.models import PHISpan
from scribeguard.phi.ports import PHIDetectionBackend, RawSpans
from scribeguard.phi.rewriter import require_text

logger = get_logger(__name__)


class PHIDetectorAdapter:
    """Call a detection backend and return validated PHISpan objects."""

    def __init__(self, backend: PHIDetectionBackend, timeout_s: float | None = 10.0):
        self._backend = backend
        self._timeout_s = timeout_s
        self._log = logger.bind(backend=self.backend_name)

    @property
    def backend_name(self) -> str:
        return getattr(self._backend, "name", type(self._backend).__name__)

    async def detect(self, text: str, timeout: float | None = None) -> list[PHISpan]:
        require_text(text)

        limit = timeout if timeout is not None else self._timeout_s
        try:
            with timed(PHIMetrics.DETECT_LATENCY, {"backend": self.backend_name}):
                raw = await asyncio.wait_for(self._call_backend(text), timeout=limit)
        except asyncio.TimeoutError as exc:
            self._fail("timeout", text)
            raise DetectionUnavailableError(
                f"PHI detection timed out after {limit}s", backend=self.backend_name, reason="timeout"
            ) from exc
        except DetectionUnavailableError:
            self._fail("backend", text)
            raise
        except Exception as exc:  # noqa: BLE001 - any backend failure is a detection outage
            self._fail("backend", text, exc)
            raise DetectionUnavailableError(
                f"PHI detection failed ({type(exc).__name__})", backend=self.backend_name, reason="backend"
            ) from exc

        return self._ingest(text, raw)

    async def _call_backend(self, text: str) -> RawSpans:
        detect = self._backend.detect
        if inspect.iscoroutinefunction(detect):
            return await detect(text)
        result = await asyncio.to_thread(detect, text)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _ingest(self, text: str, raw: Iterable[Any] | None) -> list[PHISpan]:
        spans: list[PHISpan] = []
        for item in raw or ():
            try:
                span = item if isinstance(item, PHISpan) else PHISpan.model_validate(item)
            except ValidationError as exc:
                self._fail("malformed_response", text)
                raise DetectionUnavailableError(
                    f"Detector returned a malformed span ({exc.error_count()} errors)",
                    backend=self.backend_name,
                    reason="malformed_response",
                ) from exc
            try:
                spans.append(span.anchored_to(text))
            except ValueError as exc:
                self._fail("out_of_range", text)
                raise DetectionUnavailableError(
                    "Detector returned a span outside the source text",
                    backend=self.backend_name,
                    reason="out_of_range",
                ) from exc
        self._log.debug(
            "PHI detection complete", extra={"text": safe_log_text(text), "spans": len(spans)}
        )
        return spans

    def _fail(self, reason: str, text: str, exc: Exception | None = None) -> None:
        PHIMetrics.record_detection_failure(reason)
        self._log.error(
            "PHI detection unavailable",
            extra={
                "reason": reason,
                "text": safe_log_text(text),
                "error_type": type(exc).__name__ if exc else None,
            },
        )


__all__ = ["PHIDetectorAdapter"]
