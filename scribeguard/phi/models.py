"""PHI span and masking result types.

PHISpan is the validated boundary type for detector output: it accepts the
detector's wire names (``BeginOffset``), camelCase and snake_case, and is
immutable once built.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


class PHISpan(BaseModel):
    """One detected PHI occurrence over a half-open character range."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    type: str = Field(validation_alias=AliasChoices("type", "Type"))
    text: str = Field(default="", validation_alias=AliasChoices("text", "Text"))
    begin_offset: int = Field(
        ge=0, validation_alias=AliasChoices("begin_offset", "beginOffset", "BeginOffset")
    )
    end_offset: int = Field(
        gt=0, validation_alias=AliasChoices("end_offset", "endOffset", "EndOffset")
    )
    score: float = Field(ge=0.0, le=1.0, validation_alias=AliasChoices("score", "Score"))
    id: int | None = Field(default=None, ge=0, validation_alias=AliasChoices("id", "Id"))

    @field_validator("type", mode="before")
    @classmethod
    def _token_safe_type(cls, value: Any) -> str:
        # Tokens are {{TYPE_ID}} with TYPE in [A-Za-z0-9]+; "DATE_TIME" becomes "DATETIME".
        cleaned = _NON_ALNUM_RE.sub("", str(value or ""))
        return cleaned or "PHI"

    @model_validator(mode="after")
    def _ordered_offsets(self) -> "PHISpan":
        if self.begin_offset >= self.end_offset:
            raise ValueError("begin_offset must be less than end_offset")
        return self

    @property
    def ledger_key(self) -> str:
        return f"{self.type}_{self.id}"

    def anchored_to(self, source: str) -> "PHISpan":
        """Return this span checked against ``source``, with ``text`` set to the exact slice.

        Raises ValueError when the range falls outside ``source``.
        """
        if self.end_offset > len(source):
            raise ValueError(
                f"span end_offset {self.end_offset} exceeds source length {len(source)}"
            )
        actual = source[self.begin_offset : self.end_offset]
        if self.text == actual:
            return self
        return self.model_copy(update={"text": actual})


@dataclass(frozen=True)
class MaskingResult:
    """Output of one masking call.

    ``phi_entities`` is the ledger needed to reverse the call; persist or
    transmit it alongside ``masked_text``.
    """

    masked_text: str
    phi_entities: tuple[PHISpan, ...] = ()
    skipped_entities: tuple[PHISpan, ...] = ()
    mask_threshold: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "masked_text": self.masked_text,
            "phi_entities": [e.model_dump() for e in self.phi_entities],
            "skipped_entities": [e.model_dump() for e in self.skipped_entities],
            "mask_threshold": self.mask_threshold,
        }


@dataclass
class UnmaskWarnings:
    invalid_tokens: list[str] = field(default_factory=list)
    no_match_tokens: list[str] = field(default_factory=list)


@dataclass
class UnmaskResult:
    unmasked_text: str
    warnings: UnmaskWarnings = field(default_factory=UnmaskWarnings)

    @property
    def fully_restored(self) -> bool:
        return not (self.warnings.invalid_tokens or self.warnings.no_match_tokens)


__all__ = ["PHISpan", "MaskingResult", "UnmaskWarnings", "UnmaskResult"]
