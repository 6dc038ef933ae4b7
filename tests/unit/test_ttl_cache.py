"""Unit tests for the TTL cache. Time is driven by a fake clock."""

import pytest
from libs.common.ttl_cache import TTLCache
from tests.factories import FakeClock


@pytest.mark.unit
def test_entry_fresh_until_ttl_elapses():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=300, clock=clock)
    cache.set("summary", {"users": 1})

    clock.advance(299.5)
    assert cache.get("summary") == {"users": 1}
    assert cache.age("summary") == pytest.approx(299.5)

    clock.advance(0.5)
    assert cache.get("summary") is None
    assert cache.age("summary") is None
    assert len(cache) == 0


@pytest.mark.unit
def test_get_default_and_invalidate():
    cache = TTLCache(ttl_seconds=10, clock=FakeClock())
    assert cache.get("missing", "fallback") == "fallback"

    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.invalidate()
    assert len(cache) == 0


@pytest.mark.unit
def test_set_refreshes_timestamp():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("k", "old")
    clock.advance(8)
    cache.set("k", "new")
    clock.advance(8)

    assert cache.get("k") == "new"


@pytest.mark.unit
@pytest.mark.parametrize("ttl", [0, -1])
def test_rejects_non_positive_ttl(ttl):
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=ttl)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_or_set_computes_once_per_expiry():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    calls = []

    async def _factory():
        calls.append(clock())
        return len(calls)

    assert await cache.get_or_set("k", _factory) == 1
    assert await cache.get_or_set("k", _factory) == 1

    clock.advance(60)
    assert await cache.get_or_set("k", _factory) == 2
    assert len(calls) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_or_set_does_not_cache_failures():
    cache = TTLCache(ttl_seconds=60, clock=FakeClock())

    async def _boom():
        raise RuntimeError("db down")

    with pytest.raises(RuntimeError):
        await cache.get_or_set("k", _boom)
    assert cache.get("k") is None
