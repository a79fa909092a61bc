"""AWS Comprehend Medical DetectPHI backend.

DetectPHI caps each request at 20,000 UTF-8 bytes. Longer texts are split at
whitespace boundaries, each chunk is sent separately, and offsets are shifted
back onto the full text. Ids are renumbered so they stay unique per text.
"""

from __future__ import annotations

from typing import Any

from observability.logging_config import get_logger

logger = get_logger(__name__)

MAX_TEXT_BYTES = 20_000


def split_for_detection(text: str, max_bytes: int = MAX_TEXT_BYTES) -> list[tuple[int, str]]:
    """Split ``text`` into ``(offset, chunk)`` pairs each under ``max_bytes`` UTF-8 bytes."""
    chunks: list[tuple[int, str]] = []
    start = 0
    while start < len(text):
        end = len(text)
        if len(text[start:end].encode("utf-8")) > max_bytes:
            # Walk back until the chunk fits, then to the last whitespace.
            end = min(len(text), start + max_bytes)
            while end > start + 1 and len(text[start:end].encode("utf-8")) > max_bytes:
                end -= 1
            cut = max(text.rfind(" ", start, end), text.rfind("\n", start, end))
            if cut > start:
                end = cut + 1
        chunks.append((start, text[start:end]))
        start = end
    return chunks


class ComprehendMedicalBackend:
    name = "comprehend"

    def __init__(self, region: str = "us-east-1", client: Any = None, max_bytes: int = MAX_TEXT_BYTES):
        self.region = region
        self.max_bytes = max_bytes
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            # Lazy import so local dev can run without boto3 unless this backend is enabled.
            import boto3  # type: ignore

            self._client = boto3.client("comprehendmedical", region_name=self.region)
        return self._client

    def detect(self, text: str) -> list[dict[str, Any]]:
        chunks = split_for_detection(text, self.max_bytes)
        if len(chunks) == 1:
            return list(self.client.detect_phi(Text=text).get("Entities", []))

        logger.debug("Splitting text for DetectPHI", extra={"chunks": len(chunks)})
        entities: list[dict[str, Any]] = []
        for offset, chunk in chunks:
            for entity in self.client.detect_phi(Text=chunk).get("Entities", []):
                shifted = dict(entity)
                shifted["BeginOffset"] = entity["BeginOffset"] + offset
                shifted["EndOffset"] = entity["EndOffset"] + offset
                shifted["Id"] = len(entities)
                entities.append(shifted)
        return entities


__all__ = ["ComprehendMedicalBackend", "MAX_TEXT_BYTES", "split_for_detection"]
