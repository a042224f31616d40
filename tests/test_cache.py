import pytest

from alphabot.shared.cache import MISSING, AsyncTTLCache, cached


class Source:
    def __init__(self):
        self.calls = 0
        self.fail = False
        self._cache = AsyncTTLCache(maxsize=8, ttl=60)

    @cached(cache="_cache", key_func=lambda self, key: f"item:{key}", retry=2, retry_delay=0)
    async def get(self, key):
        self.calls += 1
        if self.fail:
            raise ConnectionError("store down")
        return {"key": key, "call": self.calls}


@pytest.mark.asyncio
async def test_second_read_is_served_from_cache():
    source = Source()

    first = await source.get("a")
    second = await source.get("a")

    assert first is second
    assert source.calls == 1


@pytest.mark.asyncio
async def test_stale_value_is_returned_when_store_fails():
    source = Source()
    await source.get("a")
    source._cache._cache.clear()
    source.fail = True

    value = await source.get("a")

    assert value == {"key": "a", "call": 1}
    assert source.calls == 3


@pytest.mark.asyncio
async def test_failure_without_stale_value_raises():
    source = Source()
    source.fail = True

    with pytest.raises(ConnectionError):
        await source.get("a")


def test_invalidate_drops_both_tiers():
    cache = AsyncTTLCache()
    cache.set("k", 1)

    cache.invalidate("k")

    assert cache.get("k") is MISSING
    assert cache.get_stale("k") is MISSING


def test_stale_store_is_bounded():
    cache = AsyncTTLCache(maxsize=2)
    for key in "abc":
        cache.set(key, key)

    assert cache.stale_size == 2
    assert cache.get_stale("a") is MISSING
