"""
Unit tests for insight_engine/core/cache.py
"""
import asyncio

import pytest

from insight_engine.core.cache import ResponseCache, make_cache_key


class TestCacheKey:

    @pytest.mark.unit
    def test_param_order_does_not_matter(self):
        a = make_cache_key("listings", "GET", "/search", {"a": 1, "b": 2})
        b = make_cache_key("listings", "get", "/search", {"b": 2, "a": 1})
        assert a == b

    @pytest.mark.unit
    def test_service_endpoint_and_params_distinguish(self):
        base = make_cache_key("listings", "GET", "/search", {"a": 1})
        assert base != make_cache_key("valuation", "GET", "/search", {"a": 1})
        assert base != make_cache_key("listings", "GET", "/other", {"a": 1})
        assert base != make_cache_key("listings", "GET", "/search", {"a": 2})
        assert base != make_cache_key("listings", "POST", "/search", {"a": 1})

    @pytest.mark.unit
    def test_none_params_equal_empty(self):
        assert make_cache_key("fred", "GET", "/x") == make_cache_key("fred", "GET", "/x", {})


class TestExpiry:
    """Entries expire lazily on read."""

    @pytest.mark.unit
    def test_hit_before_ttl(self, cache, clock):
        cache.set("k", {"price": 1}, ttl_seconds=300)
        clock.advance(299)
        assert cache.get("k") == {"price": 1}

    @pytest.mark.unit
    def test_hit_at_exact_expiry(self, cache, clock):
        cache.set("k", "v", ttl_seconds=300)
        clock.advance(300)
        assert cache.get("k") == "v"

    @pytest.mark.unit
    def test_miss_after_ttl_removes_entry(self, cache, clock):
        cache.set("k", "v", ttl_seconds=300)
        clock.advance(301)
        assert cache.get("k") is None
        assert len(cache) == 0

    @pytest.mark.unit
    def test_missing_key(self, cache):
        assert cache.get("nope") is None

    @pytest.mark.unit
    def test_set_replaces_and_restarts_ttl(self, cache, clock):
        cache.set("k", "old", ttl_seconds=10)
        clock.advance(8)
        cache.set("k", "new", ttl_seconds=10)
        clock.advance(8)
        assert cache.get("k") == "new"


class TestMaintenance:

    @pytest.mark.unit
    def test_cleanup_removes_only_expired(self, cache, clock):
        cache.set("short", 1, ttl_seconds=10)
        cache.set("long", 2, ttl_seconds=1000)
        clock.advance(11)

        assert cache.cleanup() == 1
        assert len(cache) == 1
        assert cache.get("long") == 2

    @pytest.mark.unit
    def test_delete_and_clear(self, cache):
        cache.set("a", 1, ttl_seconds=10)
        cache.set("b", 2, ttl_seconds=10)
        cache.delete("a")
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0

    @pytest.mark.unit
    def test_stats_track_hits_and_misses(self, cache):
        cache.set("a", 1, ttl_seconds=10)
        cache.get("a")
        cache.get("a")
        cache.get("b")

        stats = cache.stats()
        assert stats["size"] == 1
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["entries"][0]["key"] == "a"


class TestSweeper:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sweeper_removes_expired_entries(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("k", "v", ttl_seconds=1)
        clock.advance(5)

        cache.start_sweeper(interval=0.01)
        await asyncio.sleep(0.05)
        await cache.stop_sweeper()

        assert len(cache) == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self):
        await ResponseCache().stop_sweeper()
