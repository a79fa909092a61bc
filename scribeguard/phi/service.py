"""PHIService orchestrates masking, generation and field encryption.

Only this service, the masker and the resolver touch raw PHI; downstream
callers (LLM drafting, logging) consume masked text and entity ledgers.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Iterable

from observability.logging_config import get_logger
from scribeguard.common.exceptions import InvalidInputError, KeyUnavailableError
from scribeguard.crypto.key_resolver import (
    WRAPPED_KEY_FIELD,
    EncounterKeyResolver,
    EncryptedField,
    FieldResult,
    KeyOverride,
    Record,
)
from scribeguard.infra.safe_logging import record_ref
from scribeguard.phi.masker import PHIMasker
from scribeguard.phi.models import MaskingResult, UnmaskResult, UnmaskWarnings
from scribeguard.phi.ports import TextGenerator
from scribeguard.phi.unmasker import LedgerEntry, PHIUnmasker

logger = get_logger(__name__)


@dataclass
class DraftResult:
    """Outcome of a masked generation round trip."""

    masked_prompt: str
    masked_output: str
    output: str
    masking: MaskingResult
    warnings: UnmaskWarnings = field(default_factory=UnmaskWarnings)


class PHIService:
    """Core PHI workflows: de-identify, re-identify, draft, seal and open records."""

    def __init__(
        self,
        masker: PHIMasker,
        unmasker: PHIUnmasker | None = None,
        resolver: EncounterKeyResolver | None = None,
    ):
        self._masker = masker
        self._unmasker = unmasker or PHIUnmasker()
        self._resolver = resolver

    async def deidentify(self, text: str, threshold: float | None = None) -> MaskingResult:
        """Detect and mask PHI in ``text``."""
        return await self._masker.mask(text, threshold)

    def reidentify(self, masked_text: str, phi_entities: Iterable[LedgerEntry]) -> UnmaskResult:
        return self._unmasker.unmask(masked_text, phi_entities)

    async def draft_with_masking(
        self, text: str, generate: TextGenerator, threshold: float | None = None
    ) -> DraftResult:
        """Mask ``text``, hand only the masked prompt to ``generate``, then restore its output.

        ``generate`` may be sync or async. Tokens the generator invents or
        mangles are reported in ``warnings`` and left in the output.
        """
        masking = await self.deidentify(text, threshold)

        generated = generate(masking.masked_text)
        if inspect.isawaitable(generated):
            generated = await generated
        if not isinstance(generated, str):
            raise InvalidInputError(f"generator must return text, got {type(generated).__name__}")

        if not generated:
            return DraftResult(
                masked_prompt=masking.masked_text, masked_output="", output="", masking=masking
            )

        restored = self.reidentify(generated, masking.phi_entities)
        logger.info(
            "Drafted with masking",
            extra={
                "masked_spans": len(masking.phi_entities),
                "fully_restored": restored.fully_restored,
            },
        )
        return DraftResult(
            masked_prompt=masking.masked_text,
            masked_output=generated,
            output=restored.unmasked_text,
            masking=masking,
            warnings=restored.warnings,
        )

    def seal_fields(self, record: Record, fields: Iterable[str]) -> list[EncryptedField]:
        """Encrypt the named plain fields of ``record`` in place.

        A record without key material is provisioned first.
        """
        resolver = self._require_resolver()
        fields = list(fields)
        if not record.get(WRAPPED_KEY_FIELD):
            resolver.provision(record)
        sealed = [resolver.encrypt_named_field(record, name) for name in fields]
        logger.info("Sealed record fields", extra={"record_id": record_ref(record), "fields": fields})
        return sealed

    def open_fields(
        self, record: Record, fields: Iterable[str], key: KeyOverride = None
    ) -> dict[str, FieldResult]:
        return self._require_resolver().decrypt_named_fields(record, fields, key=key)

    def _require_resolver(self) -> EncounterKeyResolver:
        if self._resolver is None:
            raise KeyUnavailableError("PHIService has no key resolver configured")
        return self._resolver


__all__ = ["DraftResult", "PHIService"]
