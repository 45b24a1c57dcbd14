from ridehail.core.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(60, clock=clock)
    cache.set("categories", ["economy"])

    clock.now += 59
    assert cache.get("categories") == ["economy"]

    clock.now += 1
    assert cache.get("categories") is None
    assert len(cache) == 0


def test_invalidate_one_key_or_everything():
    cache = TTLCache(60)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.invalidate("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.invalidate()
    assert len(cache) == 0


async def test_get_or_load_calls_loader_once_until_expiry():
    clock = FakeClock()
    cache = TTLCache(10, clock=clock)
    calls = []

    async def loader():
        calls.append(clock.now)
        return []

    assert await cache.get_or_load("rider", loader) == []
    assert await cache.get_or_load("rider", loader) == []
    assert len(calls) == 1

    clock.now += 10
    await cache.get_or_load("rider", loader)
    assert len(calls) == 2
