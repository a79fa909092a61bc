"""JSON logging for the PHI and crypto layers.

Structured fields passed through ``extra=`` become top-level keys of the JSON
line. Field names that usually carry raw clinical text or secrets are replaced
before the line is written, so a stray ``extra={"transcript": ...}`` cannot
leak PHI into log storage.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping

# Keys whose values are never written verbatim.
REDACTED_FIELDS = frozenset(
    {"plaintext", "transcript", "soap_note", "raw_text", "unmasked_text", "aes_key", "private_key", "token"}
)
REDACTED = "<redacted>"


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; structured extras are merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in (getattr(record, "extra_fields", None) or {}).items():
            payload[key] = REDACTED if key in REDACTED_FIELDS and value is not None else value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """Adapter that folds bound fields and per-call ``extra`` into ``extra_fields``."""

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        fields = dict(self.extra or {})
        fields.update(kwargs.get("extra") or {})
        kwargs["extra"] = {"extra_fields": fields}
        return msg, kwargs

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Return a logger that adds ``fields`` to every record."""
        return StructuredLogger(self.logger, {**(self.extra or {}), **fields})


_configured = False


def configure_logging(level: int | str | None = None, structured: bool = True) -> None:
    """Install a single stderr handler on the root logger.

    ``level`` defaults to ``LOG_LEVEL`` from the environment, then INFO.
    Repeated calls are no-ops.
    """
    global _configured
    if _configured:
        return

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        StructuredFormatter()
        if structured
        else logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # botocore logs request bodies at DEBUG, which would include raw transcript text.
    for noisy in ("botocore", "boto3", "urllib3", "presidio-analyzer"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str, **fields: Any) -> StructuredLogger:
    """Structured logger for ``name`` with optional bound fields."""
    return StructuredLogger(logging.getLogger(name), fields)
