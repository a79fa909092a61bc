"""Runtime settings (env-driven) using pydantic-settings.

Settings objects are frozen; build them once at process start and pass the
values into constructors rather than reading the environment deep in the core.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

# Masking policy default applied when the caller does not pass a threshold.
DEFAULT_MASK_THRESHOLD = 0.15
# Used only when no default threshold is configured at all.
FALLBACK_MASK_THRESHOLD = 0.5

DetectorBackendName = Literal["comprehend", "presidio", "regex", "stub"]
IVPolicyName = Literal["per_field", "record"]


def _check_unit_interval(value: float | None) -> float | None:
    if value is not None and not 0.0 <= value <= 1.0:
        raise ValueError("threshold must be within [0, 1]")
    return value


class PHISettings(BaseSettings):
    """Settings for detection, masking, and field encryption policy."""

    mask_threshold: Optional[float] = DEFAULT_MASK_THRESHOLD
    mask_fallback_threshold: float = FALLBACK_MASK_THRESHOLD

    detector_backend: DetectorBackendName = "regex"
    detector_timeout_s: float = 10.0
    aws_region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("PHI_AWS_REGION", "AWS_REGION"),
    )
    presidio_language: str = "en"

    iv_policy: IVPolicyName = "per_field"

    model_config = {
        "env_prefix": "PHI_",
        "extra": "ignore",
        "frozen": True,
        "populate_by_name": True,
        "env_parse_none_str": "none",
    }

    @field_validator("mask_threshold", "mask_fallback_threshold")
    @classmethod
    def _threshold_range(cls, value: float | None) -> float | None:
        return _check_unit_interval(value)

    @field_validator("detector_timeout_s")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("detector_timeout_s must be positive")
        return value


class KeySettings(BaseSettings):
    """Key material locations.

    PEM values may be given inline (with literal ``\\n`` escapes, as stored in
    most secret managers) or as file paths. Inline values win.
    """

    rsa_public_key: Optional[str] = None
    rsa_private_key: Optional[SecretStr] = None
    public_key_path: Optional[Path] = None
    private_key_path: Optional[Path] = None
    public_key_id: str = "default"

    refresh_token_aes_key_hex: Optional[SecretStr] = None

    model_config = {"extra": "ignore", "frozen": True}


@lru_cache(maxsize=1)
def get_phi_settings() -> PHISettings:
    return PHISettings()


@lru_cache(maxsize=1)
def get_key_settings() -> KeySettings:
    return KeySettings()


__all__ = [
    "DEFAULT_MASK_THRESHOLD",
    "FALLBACK_MASK_THRESHOLD",
    "PHISettings",
    "KeySettings",
    "get_phi_settings",
    "get_key_settings",
]
