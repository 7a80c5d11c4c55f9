# tests/integration/cache/test_int_response_cache.py — v1
"""Integration tests for the two-tier response cache on a real directory.

Covers: cache/cache.py, cache/json_store.py, cache/cache_factory.py,
        cache/fingerprint.py
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from genflow.cache.cache import ResponseCache
from genflow.cache.cache_factory import create_cache
from genflow.cache.fingerprint import generate_key
from genflow.cache.json_store import JsonCacheStore
from genflow.config.settings import Settings


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class TestTwoTierCache:
    @pytest.mark.asyncio
    async def test_disk_entry_survives_restart(self, tmp_path):
        key = generate_key("step-04-prd", "prompt text")
        first = ResponseCache(store=JsonCacheStore(tmp_path))
        await first.set(key, "# PRD", metadata={"step_id": "step-04-prd"})

        second = ResponseCache(store=JsonCacheStore(tmp_path))
        assert await second.get(key) == "# PRD"
        stats = await second.stats()
        assert stats.disk_entries == 1
        assert stats.memory_entries == 1

    @pytest.mark.asyncio
    async def test_ttl_expiry_forces_recompute(self, tmp_path):
        clock = Clock()
        cache = ResponseCache(store=JsonCacheStore(tmp_path), default_ttl_s=60, clock=clock)
        calls = 0

        async def compute() -> str:
            nonlocal calls
            calls += 1
            return f"v{calls}"

        assert await cache.get_or_compute("k", compute) == "v1"
        clock.advance(59)
        assert await cache.get_or_compute("k", compute) == "v1"
        clock.advance(2)
        assert await cache.get_or_compute("k", compute) == "v2"
        assert calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_compute(self, tmp_path):
        cache = ResponseCache(store=JsonCacheStore(tmp_path))
        release = asyncio.Event()
        calls = 0

        async def compute() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "shared"

        tasks = [asyncio.create_task(cache.get_or_compute("k", compute)) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        assert await asyncio.gather(*tasks) == ["shared"] * 5
        assert calls == 1
        assert (await cache.stats()).computes == 1

    @pytest.mark.asyncio
    async def test_clear_empties_both_tiers(self, tmp_path):
        cache = ResponseCache(store=JsonCacheStore(tmp_path))
        await cache.set("a", "1")
        await cache.set("b", "2")
        assert await cache.clear() == 2
        assert await cache.get("a") is None
        assert list(tmp_path.glob("*.json")) == []


class TestFactory:
    @pytest.mark.asyncio
    async def test_settings_driven_cache(self, tmp_path):
        settings = Settings(_env_file=None, cache_dir=tmp_path, cache_default_ttl_s=5)
        cache = create_cache(settings)
        await cache.set("k", "v")
        assert (tmp_path / "k.json").exists()

    def test_disabled(self, tmp_path):
        settings = Settings(_env_file=None, cache_dir=tmp_path, cache_enabled=False)
        assert create_cache(settings) is None
