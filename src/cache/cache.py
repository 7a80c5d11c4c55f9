# src/cache/cache.py — v1
"""Two-tier response cache: in-memory dict in front of a persistent store.

Read path: memory, then disk. Unexpired disk hits repopulate memory.
Expired entries are deleted when they are read; there is no background sweep.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, TypeVar

from genflow.cache.base_cache_store import BaseCacheStore
from genflow.cache.models import CacheEntry, CacheStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_S = 3600.0
DEFAULT_MAX_ENTRIES = 1000
EVICTION_FRACTION = 0.1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResponseCache:
    """Cache for expensive generation results.

    Args:
        store: Persistent tier. None keeps the cache memory-only.
        default_ttl_s: TTL used when ``set`` is called without one.
        max_entries: Memory bound; the oldest 10% are evicted from memory
            (not from disk) when exceeded.
        clock: Returns the current UTC time. Injectable for tests.
    """

    def __init__(
        self,
        store: BaseCacheStore | None = None,
        default_ttl_s: float = DEFAULT_TTL_S,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if default_ttl_s <= 0:
            raise ValueError("default_ttl_s must be > 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._store = store
        self._default_ttl_s = default_ttl_s
        self._max_entries = max_entries
        self._clock = clock
        self._memory: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._hits = 0
        self._misses = 0
        self._computes = 0

    @property
    def store(self) -> BaseCacheStore | None:
        return self._store

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        entry = await self._lookup(key)
        return entry.value if entry is not None else None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds (default TTL if None)."""
        ttl_s = self._default_ttl_s if ttl is None else ttl
        if ttl_s <= 0:
            raise ValueError("ttl must be > 0")

        now = self._clock()
        entry = CacheEntry(
            key=key,
            value=value,
            stored_at=now,
            expires_at=now + timedelta(seconds=ttl_s),
            metadata=metadata or {},
        )
        self._remember(entry)

        if self._store is not None:
            try:
                await self._store.put(key, entry)
            except (OSError, TypeError, ValueError) as e:
                logger.warning("Cache write failed for %s: %s", key, e)

    async def has(self, key: str) -> bool:
        return await self._lookup(key, count=False) is not None

    async def delete(self, key: str) -> None:
        self._memory.pop(key, None)
        if self._store is not None:
            try:
                await self._store.delete(key)
            except OSError as e:
                logger.warning("Cache delete failed for %s: %s", key, e)

    async def clear(self) -> int:
        """Drop every entry from both tiers. Returns the number of disk entries removed."""
        self._memory.clear()
        removed = 0
        if self._store is not None:
            removed = await self._store.clear()
        logger.info("Cache cleared (%d disk entries removed)", removed)
        return removed

    async def get_or_compute(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        ttl: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> T:
        """Return the cached value or compute, store and return it.

        Concurrent callers for the same absent key share a single ``fn`` call.
        Exceptions from ``fn`` propagate and nothing is cached.
        """
        entry = await self._lookup(key)
        if entry is not None:
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                # Another awaiter may have filled it while we waited.
                entry = await self._lookup(key, count=False)
                if entry is not None:
                    return entry.value

                self._computes += 1
                value = await fn()
                await self.set(key, value, ttl=ttl, metadata=metadata)
                return value
        finally:
            self._release_lock(key)

    async def stats(self) -> CacheStats:
        disk_entries = 0
        disk_bytes = 0
        if self._store is not None:
            try:
                disk_entries = len(await self._store.list_keys())
                disk_bytes = await self._store.size_bytes()
            except OSError as e:
                logger.warning("Cache stats unavailable: %s", e)
        return CacheStats(
            memory_entries=len(self._memory),
            disk_entries=disk_entries,
            disk_bytes=disk_bytes,
            hits=self._hits,
            misses=self._misses,
            computes=self._computes,
        )

    # --- Internals ---

    async def _lookup(self, key: str, count: bool = True) -> CacheEntry | None:
        now = self._clock()

        entry = self._memory.get(key)
        if entry is not None:
            if entry.is_expired(now):
                await self.delete(key)
                return self._miss(count)
            return self._hit(entry, count)

        if self._store is None:
            return self._miss(count)

        entry = await self._store.get(key)
        if entry is None:
            return self._miss(count)
        if entry.is_expired(now):
            await self.delete(key)
            return self._miss(count)

        self._remember(entry)
        return self._hit(entry, count)

    def _hit(self, entry: CacheEntry, count: bool) -> CacheEntry:
        if count:
            self._hits += 1
        return entry

    def _miss(self, count: bool) -> None:
        if count:
            self._misses += 1
        return None

    def _release_lock(self, key: str) -> None:
        """Drop the per-key lock once no caller holds or awaits it."""
        users = self._lock_users.get(key, 0) - 1
        if users > 0:
            self._lock_users[key] = users
            return
        self._lock_users.pop(key, None)
        self._locks.pop(key, None)

    def _remember(self, entry: CacheEntry) -> None:
        self._memory[entry.key] = entry
        if len(self._memory) > self._max_entries:
            self._evict_oldest()

    def _evict_oldest(self) -> None:
        count = max(1, math.ceil(len(self._memory) * EVICTION_FRACTION))
        oldest = sorted(self._memory.values(), key=lambda e: e.stored_at)[:count]
        for entry in oldest:
            del self._memory[entry.key]
        logger.debug("Evicted %d entries from memory cache", len(oldest))
