# src/cache/models.py — v1
"""Cache domain models: CacheEntry, CacheStats."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class CacheEntry(BaseModel):
    """Single cached value. Logically absent once ``now >= expires_at``."""

    key: str
    value: Any
    # Entries written before the rename carry ``created_at``.
    stored_at: datetime = Field(validation_alias=AliasChoices("stored_at", "created_at"))
    expires_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class CacheStats(BaseModel):
    """Counters reported by ResponseCache.stats()."""

    memory_entries: int = 0
    disk_entries: int = 0
    disk_bytes: int = 0
    hits: int = 0
    misses: int = 0
    computes: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
