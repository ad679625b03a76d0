from omnia.services.cache import DEFAULT_TTL, Cache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_put_then_get_returns_value() -> None:
    clock = FakeClock()
    c = Cache(clock=clock)
    c.put("k", {"a": 1}, ttl=10)
    assert c.get("k") == {"a": 1}


def test_get_after_ttl_returns_none() -> None:
    clock = FakeClock()
    c = Cache(clock=clock)
    c.put("k", "v", ttl=10)
    clock.advance(10.5)
    assert c.get("k") is None


def test_entry_is_live_exactly_at_ttl() -> None:
    clock = FakeClock()
    c = Cache(clock=clock)
    c.put("k", "v", ttl=10)
    clock.advance(10)
    assert c.get("k") == "v"


def test_ttl_boundary_scenario() -> None:
    clock = FakeClock()
    c = Cache(clock=clock)
    c.put("x", 42, ttl=0.1)
    clock.advance(0.05)
    assert c.get("x") == 42
    clock.advance(0.1)
    assert c.get("x") is None


def test_default_ttl_is_five_minutes() -> None:
    clock = FakeClock()
    c = Cache(clock=clock)
    c.put("k", "v")
    assert DEFAULT_TTL == 300
    clock.advance(299)
    assert c.get("k") == "v"
    clock.advance(2)
    assert c.get("k") is None


def test_overwrite_returns_latest_value() -> None:
    c = Cache(clock=FakeClock())
    c.put("k", "v1")
    c.put("k", "v2")
    assert c.get("k") == "v2"


def test_overwrite_refreshes_timestamp() -> None:
    clock = FakeClock()
    c = Cache(clock=clock)
    c.put("k", "v1", ttl=10)
    clock.advance(8)
    c.put("k", "v2", ttl=10)
    clock.advance(8)
    assert c.get("k") == "v2"


def test_invalidate_all_clears_every_key() -> None:
    c = Cache(clock=FakeClock())
    for key in ("a", "b", "c"):
        c.put(key, key)
    c.invalidate()
    assert not any(c.has(key) for key in ("a", "b", "c"))
    assert len(c) == 0


def test_invalidate_single_key() -> None:
    c = Cache(clock=FakeClock())
    c.put("a", 1)
    c.put("b", 2)
    c.invalidate("a")
    assert c.get("a") is None
    assert c.get("b") == 2


def test_invalidate_missing_key_is_noop() -> None:
    c = Cache(clock=FakeClock())
    c.put("a", 1)
    c.invalidate("missing")
    assert len(c) == 1


def test_stale_get_purges_entry() -> None:
    clock = FakeClock()
    c = Cache(clock=clock)
    c.put("old", 1, ttl=1)
    c.put("fresh", 2, ttl=100)
    clock.advance(5)
    assert len(c) == 2
    assert c.get("old") is None
    assert len(c) == 1


def test_has_does_not_purge() -> None:
    clock = FakeClock()
    c = Cache(clock=clock)
    c.put("k", "v", ttl=1)
    assert c.has("k")
    clock.advance(2)
    assert not c.has("k")
    assert len(c) == 1


def test_missing_key_is_none_not_error() -> None:
    c = Cache()
    assert c.get("nope") is None
    assert not c.has("nope")


def test_falsy_values_are_cached() -> None:
    c = Cache(clock=FakeClock())
    c.put("empty", [], ttl=10)
    assert c.get("empty") == []
    assert c.has("empty")
