# src/cache/cache_factory.py — v1
"""Factory for ResponseCache instantiation from settings."""

from __future__ import annotations

from genflow.cache.cache import ResponseCache
from genflow.cache.json_store import JsonCacheStore
from genflow.config.settings import Settings


def create_cache(settings: Settings | None = None) -> ResponseCache | None:
    """Build the configured response cache.

    Args:
        settings: Application settings. Defaults to a JSON store under
            ``~/.genflow/cache``.

    Returns:
        A ResponseCache, or None when caching is disabled.
    """
    if settings is None:
        return ResponseCache(store=JsonCacheStore("~/.genflow/cache"))

    if not settings.cache_enabled:
        return None

    return ResponseCache(
        store=JsonCacheStore(settings.cache_dir),
        default_ttl_s=settings.cache_default_ttl_s,
        max_entries=settings.cache_max_entries,
    )
