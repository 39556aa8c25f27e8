"""
Unit tests for CacheManager.
"""

import asyncio
from datetime import timedelta

from marketfeed.services.cache import CacheManager


class TestCacheManager:
    def test_set_then_get(self, cache, clock):
        async def scenario():
            await cache.set("prices:PETR4", {"close": "38.45"}, ttl_seconds=60, source="gemini-api")
            return await cache.get("prices:PETR4")

        entry = asyncio.run(scenario())
        assert entry.data == {"close": "38.45"}
        assert entry.metadata.source == "gemini-api"
        assert entry.metadata.cached_at == clock.now
        assert entry.metadata.expires_at == clock.now + timedelta(seconds=60)
        assert entry.is_fresh(timedelta(seconds=60), now=clock.now)

    def test_miss(self, cache):
        assert asyncio.run(cache.get("nope")) is None
        assert cache.get_stats().misses == 1

    def test_expired_entry_is_retained_as_stale(self, cache, clock):
        async def scenario():
            await cache.set("k", "v", ttl_seconds=60)
            clock.advance(seconds=90)
            return await cache.get("k")

        entry = asyncio.run(scenario())
        assert entry is not None
        assert not entry.is_fresh(timedelta(seconds=60), now=clock.now)
        assert cache.get_stats().stale_hits == 1

    def test_entry_dropped_after_retention(self, clock):
        cache = CacheManager(stale_retention=timedelta(seconds=30), clock=clock)

        async def scenario():
            await cache.set("k", "v", ttl_seconds=60)
            clock.advance(seconds=91)
            return await cache.get("k")

        assert asyncio.run(scenario()) is None

    def test_disabled_cache_is_a_miss_and_ignores_writes(self, clock):
        cache = CacheManager(enabled=False, clock=clock)

        async def scenario():
            await cache.set("k", "v", ttl_seconds=60)
            return await cache.get("k")

        assert not cache.is_enabled()
        assert asyncio.run(scenario()) is None

    def test_evicts_oldest_at_capacity(self, clock):
        cache = CacheManager(max_size=2, clock=clock)

        async def scenario():
            await cache.set("a", 1, ttl_seconds=60)
            clock.advance(seconds=1)
            await cache.set("b", 2, ttl_seconds=60)
            clock.advance(seconds=1)
            await cache.set("c", 3, ttl_seconds=60)
            return [await cache.get(k) for k in ("a", "b", "c")]

        a, b, c = asyncio.run(scenario())
        assert a is None
        assert b.data == 2
        assert c.data == 3
        assert cache.get_stats().evictions == 1

    def test_invalidate_delete_and_clear(self, cache):
        async def scenario():
            await cache.set("rates:USD:BRL", 1, ttl_seconds=60)
            await cache.set("rates:USD:EUR", 2, ttl_seconds=60)
            await cache.set("prices:PETR4", 3, ttl_seconds=60)

            invalidated = await cache.invalidate("rates:USD")
            deleted = await cache.delete("prices:PETR4")
            missing = await cache.delete("prices:PETR4")
            await cache.set("x", 4, ttl_seconds=60)
            await cache.clear()
            return invalidated, deleted, missing

        assert asyncio.run(scenario()) == (2, True, False)
        assert cache.get_stats().size == 0

    def test_stats_to_dict(self, cache):
        async def scenario():
            await cache.set("k", "v", ttl_seconds=60)
            await cache.get("k")
            await cache.get("other")

        asyncio.run(scenario())
        stats = cache.get_stats().to_dict()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.00%"
