"""PHI-specific metrics for de-identification and field encryption.

Only counts and latencies are emitted; never span text or field values.
"""

from __future__ import annotations

from .metrics import get_metrics_client


class PHIMetrics:
    """High-level metrics for the PHI core."""

    # Counter metric names
    SPANS_DETECTED = "phi.spans_detected_total"
    SPANS_MASKED = "phi.spans_masked_total"
    SPANS_SKIPPED = "phi.spans_skipped_total"
    SPANS_MERGED = "phi.spans_merged_total"
    UNMASK_WARNINGS = "phi.unmask_warnings_total"
    DETECTION_FAILURES = "phi.detection_failures_total"
    FIELD_OPERATIONS = "crypto.field_operations_total"

    # Timing metric names
    DETECT_LATENCY = "phi.detect_latency_ms"

    @staticmethod
    def record_masking(detected: int, masked: int, skipped: int, merged: int = 0) -> None:
        client = get_metrics_client()
        client.incr(PHIMetrics.SPANS_DETECTED, None, detected)
        client.incr(PHIMetrics.SPANS_MASKED, None, masked)
        client.incr(PHIMetrics.SPANS_SKIPPED, None, skipped)
        if merged:
            client.incr(PHIMetrics.SPANS_MERGED, None, merged)

    @staticmethod
    def record_unmask_warnings(invalid: int, no_match: int) -> None:
        client = get_metrics_client()
        if invalid:
            client.incr(PHIMetrics.UNMASK_WARNINGS, {"kind": "invalid_format"}, invalid)
        if no_match:
            client.incr(PHIMetrics.UNMASK_WARNINGS, {"kind": "no_match"}, no_match)

    @staticmethod
    def record_detection_failure(reason: str) -> None:
        get_metrics_client().incr(PHIMetrics.DETECTION_FAILURES, {"reason": reason})

    @staticmethod
    def record_field_operation(operation: str, ok: bool) -> None:
        """Record an encrypt/decrypt of a named field.

        Args:
            operation: "encrypt" or "decrypt"
            ok: Whether the operation succeeded
        """
        get_metrics_client().incr(
            PHIMetrics.FIELD_OPERATIONS,
            {"operation": operation, "outcome": "ok" if ok else "failed"},
        )
