from findash.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_set_get_and_expiry():
    clock = FakeClock()
    cache = TTLCache(default_ttl=60, clock=clock)
    cache.set("a", {"x": 1})
    assert cache.get("a") == {"x": 1}
    assert cache.has("a")

    clock.now += 61
    assert cache.get("a") is None
    assert not cache.has("a")
    assert cache.stats()["entries"] == 0


def test_custom_ttl_overrides_default():
    clock = FakeClock()
    cache = TTLCache(default_ttl=86400, clock=clock)
    cache.set("quote", 1, ttl=300)
    clock.now += 299
    assert cache.get("quote") == 1
    clock.now += 2
    assert cache.get("quote") is None


def test_delete_clear_and_stats():
    cache = TTLCache(clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.stats() == {"entries": 2, "keys": ["a", "b"]}

    cache.delete("a")
    cache.delete("missing")
    assert cache.get("a") is None
    assert cache.stats()["keys"] == ["b"]

    cache.clear()
    assert cache.stats() == {"entries": 0, "keys": []}


def test_replacing_a_key_keeps_latest_value():
    cache = TTLCache(clock=FakeClock())
    cache.set("k", "old")
    cache.set("k", "new")
    assert cache.get("k") == "new"


def test_zero_ttl_is_not_replaced_by_default():
    clock = FakeClock()
    cache = TTLCache(default_ttl=86400, clock=clock)
    cache.set("now", 1, ttl=0)
    assert cache.get("now") == 1
    clock.now += 1
    assert cache.get("now") is None
