from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from pyfleet.exceptions import FeedUnavailableError
from pyfleet.hub import LiveLocationHub, SubscriptionState
from pyfleet.models import PositionSource, Vehicle
from pyfleet.state.store import PositionCache


@dataclass
class FakeFeed:
    subscribed: list[str] = field(default_factory=list)
    unsubscribed: list[str] = field(default_factory=list)
    fail_channels: set[str] = field(default_factory=set)
    gate: asyncio.Event | None = None

    async def subscribe(self, channel: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if channel in self.fail_channels:
            raise ConnectionError("broker refused")
        self.subscribed.append(channel)

    async def unsubscribe(self, channel: str) -> None:
        self.unsubscribed.append(channel)


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 5, 7, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


@pytest.mark.asyncio
async def test_malformed_sample_keeps_last_good_position() -> None:
    hub = LiveLocationHub(FakeFeed())
    await hub.subscribe("bus_no_1", "1")

    assert hub.on_sample("bus_no_1", 10, 20, 100) is True
    assert hub.on_sample("bus_no_1", None, 20, 101) is False

    position = hub.current_position("bus_no_1")
    assert position is not None
    assert (position.lat, position.lng, position.timestamp) == (10.0, 20.0, 100.0)


@pytest.mark.asyncio
async def test_subscribe_moves_to_active_on_first_sample() -> None:
    feed = FakeFeed()
    hub = LiveLocationHub(feed)
    assert hub.state("bus_no_1") == SubscriptionState.UNSUBSCRIBED

    await hub.subscribe("bus_no_1", "1")
    assert feed.subscribed == ["vehicle_location/1"]
    assert hub.state("bus_no_1") == SubscriptionState.SUBSCRIBING
    assert hub.current_position("bus_no_1") is None

    hub.handle_feed_message("vehicle_location/1", {"latitude": 12.9, "longitude": 80.1})
    assert hub.state("bus_no_1") == SubscriptionState.ACTIVE


@pytest.mark.asyncio
async def test_no_data_signal_activates_without_position() -> None:
    hub = LiveLocationHub(FakeFeed())
    await hub.subscribe("bus_no_1", "1")

    assert hub.handle_feed_message("vehicle_location/1", None) is False
    assert hub.state("bus_no_1") == SubscriptionState.ACTIVE
    assert hub.current_position("bus_no_1") is None


@pytest.mark.asyncio
async def test_subscribe_twice_is_a_noop() -> None:
    feed = FakeFeed()
    hub = LiveLocationHub(feed)
    await hub.subscribe("bus_no_1", "1")
    hub.on_sample("bus_no_1", 1.0, 2.0)
    await hub.subscribe("bus_no_1", "1")

    assert feed.subscribed == ["vehicle_location/1"]
    assert hub.state("bus_no_1") == SubscriptionState.ACTIVE
    assert hub.current_position("bus_no_1") is not None


@pytest.mark.asyncio
async def test_unsubscribe_then_resubscribe_starts_from_unknown() -> None:
    feed = FakeFeed()
    hub = LiveLocationHub(feed)
    await hub.subscribe("bus_no_1", "1")
    hub.on_sample("bus_no_1", 1.0, 2.0)

    await hub.unsubscribe("bus_no_1")
    await hub.unsubscribe("bus_no_1")
    assert hub.state("bus_no_1") == SubscriptionState.UNSUBSCRIBED
    assert feed.unsubscribed == ["vehicle_location/1"]

    await hub.subscribe("bus_no_1", "1")
    assert hub.current_position("bus_no_1") is None


@pytest.mark.asyncio
async def test_feed_failure_reverts_to_unsubscribed() -> None:
    feed = FakeFeed(fail_channels={"vehicle_location/2"})
    hub = LiveLocationHub(feed)
    await hub.subscribe("bus_no_1", "1")

    with pytest.raises(FeedUnavailableError):
        await hub.subscribe("bus_no_2", "2")

    assert hub.state("bus_no_2") == SubscriptionState.UNSUBSCRIBED
    assert hub.state("bus_no_1") == SubscriptionState.SUBSCRIBING
    assert hub.handle_feed_message("vehicle_location/2", {"lat": 1, "lng": 1}) is False


@pytest.mark.asyncio
async def test_unsubscribe_during_pending_subscribe() -> None:
    feed = FakeFeed(gate=asyncio.Event())
    hub = LiveLocationHub(feed)

    task = asyncio.create_task(hub.subscribe("bus_no_1", "1"))
    await asyncio.sleep(0)
    assert hub.state("bus_no_1") == SubscriptionState.SUBSCRIBING

    await hub.unsubscribe("bus_no_1")
    feed.gate.set()  # type: ignore[union-attr]
    await task

    assert hub.state("bus_no_1") == SubscriptionState.UNSUBSCRIBED
    assert hub.subscribed() == []
    assert feed.unsubscribed[-1] == "vehicle_location/1"


@pytest.mark.asyncio
async def test_concurrent_subscriptions_are_independent() -> None:
    feed = FakeFeed()
    hub = LiveLocationHub(feed)
    await asyncio.gather(*(hub.subscribe(f"bus_no_{n}", str(n)) for n in range(1, 21)))
    assert len(hub.subscribed()) == 20

    for n in range(1, 21):
        hub.handle_feed_message(f"vehicle_location/{n}", {"lat": n, "lng": n * 2})
    await asyncio.gather(*(hub.unsubscribe(f"bus_no_{n}") for n in range(1, 21, 2)))

    for n in range(2, 21, 2):
        position = hub.current_position(f"bus_no_{n}")
        assert position is not None
        assert (position.lat, position.lng) == (float(n), float(n * 2))
    assert hub.current_position("bus_no_1") is None


@pytest.mark.asyncio
async def test_disconnect_retains_last_known_position() -> None:
    hub = LiveLocationHub(FakeFeed())
    await hub.subscribe("bus_no_1", "1")
    hub.on_sample("bus_no_1", 1.0, 2.0)

    hub.handle_feed_disconnect()
    assert not hub.is_connected("bus_no_1")
    assert hub.current_position("bus_no_1") is not None

    hub.on_sample("bus_no_1", 3.0, 4.0)
    assert hub.is_connected("bus_no_1")


def test_never_sampled_vehicle_is_unknown() -> None:
    hub = LiveLocationHub()
    assert hub.current_position("bus_no_404") is None


def test_messages_on_unknown_channels_are_dropped() -> None:
    hub = LiveLocationHub()
    assert hub.handle_feed_message("vehicle_location/99", {"lat": 1, "lng": 1}) is False
    assert hub.positions() == {}


def test_max_age_makes_stale_positions_unknown() -> None:
    clock = _Clock()
    hub = LiveLocationHub(cache=PositionCache(clock=clock), max_age=60)
    hub.on_sample("bus_no_1", 1.0, 2.0)

    clock.now += timedelta(seconds=90)
    assert hub.current_position("bus_no_1") is None
    assert hub.current_position("bus_no_1", max_age=120) is not None


def test_resolve_position_falls_back_to_static_location() -> None:
    hub = LiveLocationHub()
    vehicle = Vehicle.model_validate(
        {"id": "bus_no_1", "current_location": {"latitude": 12.9, "longitude": 80.1}}
    )

    static = hub.resolve_position(vehicle)
    assert static is not None
    assert static.source == PositionSource.STATIC

    hub.on_sample("bus_no_1", 13.0, 80.0)
    live = hub.resolve_position(vehicle)
    assert live is not None
    assert live.source == PositionSource.FEED
    assert (live.lat, live.lng) == (13.0, 80.0)

    assert hub.resolve_position(Vehicle.model_validate({"id": "bus_no_2"})) is None


def test_on_position_callback_errors_do_not_break_ingestion() -> None:
    seen: list[str] = []

    def _callback(vehicle_id: str, _position: object) -> None:
        seen.append(vehicle_id)
        raise RuntimeError("consumer bug")

    hub = LiveLocationHub(on_position=_callback)
    assert hub.on_sample("bus_no_1", 1.0, 2.0) is True
    assert seen == ["bus_no_1"]
    assert hub.current_position("bus_no_1") is not None


@pytest.mark.asyncio
async def test_wait_for_position_resolves_on_next_sample() -> None:
    hub = LiveLocationHub()
    waiter = asyncio.create_task(hub.wait_for_position("bus_no_1", timeout=1.0))
    await asyncio.sleep(0)

    hub.on_sample("bus_no_1", 5.0, 6.0)
    position = await waiter
    assert position is not None
    assert (position.lat, position.lng) == (5.0, 6.0)

    assert await hub.wait_for_position("bus_no_1", timeout=0.01) is None
