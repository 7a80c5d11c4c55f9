# src/cache/base_cache_store.py — v1
"""Abstract persistent cache store interface (the disk tier)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from genflow.cache.models import CacheEntry


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key, or None if missing or unreadable."""

    @abstractmethod
    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store cache entry."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove cache entry. Missing keys are ignored."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove all entries. Returns the number removed."""

    @abstractmethod
    async def list_keys(self) -> list[str]:
        """List keys of all stored entries."""

    async def size_bytes(self) -> int:
        """Total storage used, when the backend can tell."""
        return 0
