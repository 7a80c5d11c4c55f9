# src/cache/json_store.py — v1
"""JSON file-based cache store.

Stores cache entries as individual ``<key>.json`` files under the cache root.
Entries that fail to parse are reported as misses; they are overwritten by
the next ``put`` for the same key.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from genflow.cache.base_cache_store import BaseCacheStore
from genflow.cache.models import CacheEntry

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: str | Path) -> None:
        self._root = Path(cache_root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    async def get(self, key: str) -> CacheEntry | None:
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to read cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Write the entry through a temp file so readers never see half a file."""
        path = self._entry_path(key)
        tmp = path.with_suffix(".json.tmp")
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(entry.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, path)

    async def delete(self, key: str) -> None:
        path = self._entry_path(key)
        if path.exists():
            path.unlink()

    async def clear(self) -> int:
        if not self._root.is_dir():
            return 0
        removed = 0
        for path in self._root.glob("*.json"):
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                logger.warning("Failed to remove cache file %s: %s", path, e)
        return removed

    async def list_keys(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(path.stem for path in self._root.glob("*.json"))

    async def size_bytes(self) -> int:
        if not self._root.is_dir():
            return 0
        return sum(path.stat().st_size for path in self._root.glob("*.json"))

    def _entry_path(self, key: str) -> Path:
        """Return file path for a cache key."""
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._root / f"{safe_key}.json"
