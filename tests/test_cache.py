from __future__ import annotations

import pytest

from services.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_get_returns_value_within_ttl() -> None:
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(ttl_seconds=60, clock=clock)

    cache.set("key", "value")
    clock.now += 60

    assert cache.get("key") == "value"


def test_expired_entry_is_evicted_on_read() -> None:
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(ttl_seconds=60, clock=clock)

    cache.set("key", "value")
    clock.now += 60.001

    assert cache.get("key") is None
    assert len(cache) == 0


def test_set_after_expiry_repopulates_entry() -> None:
    clock = FakeClock()
    cache: TTLCache[int] = TTLCache(ttl_seconds=10, clock=clock)

    cache.set("key", 1)
    clock.now += 11
    assert cache.get("key") is None

    cache.set("key", 2)
    assert cache.get("key") == 2


def test_entries_expire_independently() -> None:
    clock = FakeClock()
    cache: TTLCache[int] = TTLCache(ttl_seconds=10, clock=clock)

    cache.set("old", 1)
    clock.now += 6
    cache.set("new", 2)
    clock.now += 6

    assert cache.get("old") is None
    assert cache.get("new") == 2


def test_clear_drops_everything() -> None:
    cache: TTLCache[int] = TTLCache(ttl_seconds=10)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.clear()

    assert cache.get("a") is None
    assert len(cache) == 0


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=0)
