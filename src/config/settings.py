# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for retry, cache, workflow, quality gate and logging
settings. Every field can be set through a ``GENFLOW_``-prefixed environment
variable (e.g. ``GENFLOW_RETRY_MAX_RETRIES=5``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from genflow.core.errors import GenflowError


class ConfigurationError(GenflowError):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GENFLOW_",
        extra="ignore",
    )

    # === Retry ===
    retry_max_retries: int = 3
    retry_base_delay_s: float = 10.0
    retry_max_delay_s: float = 60.0
    retry_strategy: Literal["fixed", "linear", "exponential"] = "exponential"
    retry_delay_sequence: str = "10,30,60"

    # === Cache ===
    cache_enabled: bool = True
    cache_dir: Path = Path("~/.genflow/cache")
    cache_default_ttl_s: float = 3600.0
    cache_max_entries: int = 1000

    # === Workflow ===
    state_dir_name: str = ".genflow"
    default_automation_mode: Literal["auto", "manual", "skip"] = "auto"

    # === Quality gate ===
    quality_gate_enabled: bool = False
    quality_min_score: int = 70
    quality_max_retries: int = 3
    quality_auto_fix: bool = True

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("retry_max_retries", "quality_max_retries", "cache_max_entries")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("retry_delay_sequence")
    @classmethod
    def validate_delay_sequence(cls, v: str) -> str:  # noqa: N805
        """Each comma-separated entry must be a non-negative number."""
        for part in v.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                value = float(part)
            except ValueError as exc:
                raise ValueError(f"invalid delay {part!r} in retry_delay_sequence") from exc
            if value < 0:
                raise ValueError("retry_delay_sequence entries must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.retry_base_delay_s > self.retry_max_delay_s:
            errors.append("RETRY_BASE_DELAY_S must be <= RETRY_MAX_DELAY_S")

        if not 0 <= self.quality_min_score <= 100:
            errors.append("QUALITY_MIN_SCORE must be between 0 and 100")

        if self.cache_default_ttl_s <= 0:
            errors.append("CACHE_DEFAULT_TTL_S must be > 0")

        if not self.state_dir_name.strip():
            errors.append("STATE_DIR_NAME must not be empty")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def retry_delay_sequence_list(self) -> list[float]:
        """Parse comma-separated retry delays."""
        return [float(p) for p in self.retry_delay_sequence.split(",") if p.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-project config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
