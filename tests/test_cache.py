from __future__ import annotations

import asyncio

import pytest

from compote.core.cache import ResolutionCache, build_cache_key


def test_build_cache_key():
    assert build_cache_key("config", ["key"]) == "config:key"
    assert build_cache_key("network", ["vpc", "subnets", "0"]) == "network:vpc/subnets/0"
    assert build_cache_key("root", []) == "root:"


class TestResolutionCache:
    """Test the single-flight cache."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self):
        """Test that concurrent callers for one key share a single load."""
        cache = ResolutionCache()
        calls = 0

        async def loader():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return {"v": 1}

        results = await asyncio.gather(*(cache.get_or_load("a:b", loader) for _ in range(5)))
        assert calls == 1
        assert results == [{"v": 1}] * 5
        assert cache.stats.misses == 1
        assert cache.stats.hits == 4
        assert "a:b" in cache
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self):
        """Test that a failed load is dropped and retried by the next caller."""
        cache = ResolutionCache()
        attempts = 0

        async def flaky():
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("first try fails")
            return "ok"

        with pytest.raises(RuntimeError):
            await cache.get_or_load("k:", flaky)
        assert "k:" not in cache
        assert await cache.get_or_load("k:", flaky) == "ok"
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_waiters_see_the_loader_error(self):
        """Test that callers waiting on a failing load receive its error."""
        cache = ResolutionCache()

        async def failing():
            await asyncio.sleep(0.01)
            raise RuntimeError("boom")

        results = await asyncio.gather(
            cache.get_or_load("k:", failing),
            cache.get_or_load("k:", failing),
            return_exceptions=True,
        )
        assert all(isinstance(r, RuntimeError) for r in results)
