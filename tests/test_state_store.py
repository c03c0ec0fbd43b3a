from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pyfleet.models import LocationSample, PositionSource
from pyfleet.state.store import PositionCache


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 5, 7, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


def _sample(lat: float, lng: float, ts: float | None = None) -> LocationSample:
    return LocationSample(vehicle_id="bus_no_1", lat=lat, lng=lng, timestamp=ts)


def test_last_received_wins_regardless_of_device_timestamp() -> None:
    cache = PositionCache()
    cache.put("bus_no_1", _sample(1.0, 1.0, ts=200.0))
    cache.put("bus_no_1", _sample(2.0, 2.0, ts=100.0))

    position = cache.get("bus_no_1")
    assert position is not None
    assert (position.lat, position.lng) == (2.0, 2.0)
    assert position.source == PositionSource.FEED


def test_put_replaces_the_object_instead_of_mutating_it() -> None:
    cache = PositionCache()
    first = cache.put("bus_no_1", _sample(1.0, 1.0))
    cache.put("bus_no_1", _sample(2.0, 2.0))
    assert (first.lat, first.lng) == (1.0, 1.0)


def test_max_age_hides_stale_entries_without_dropping_them() -> None:
    clock = _Clock()
    cache = PositionCache(clock=clock)
    cache.put("bus_no_1", _sample(1.0, 1.0))

    clock.now += timedelta(seconds=120)
    assert cache.get("bus_no_1", max_age=60) is None
    assert cache.get("bus_no_1", max_age=300) is not None
    assert "bus_no_1" in cache


def test_discard_and_snapshot() -> None:
    cache = PositionCache()
    cache.put("a", _sample(1.0, 1.0))
    cache.put("b", _sample(2.0, 2.0))
    snapshot = cache.snapshot()
    cache.discard("a")
    cache.discard("missing")

    assert set(snapshot) == {"a", "b"}
    assert len(cache) == 1
    assert cache.get("a") is None
