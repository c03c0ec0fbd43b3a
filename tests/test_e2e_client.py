from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from pyfleet import FleetClient, FleetConfig, InMemoryDocumentStore
from pyfleet.exceptions import FleetError, PositionUnknownError, ProviderError, VehicleNotFoundError
from pyfleet.models import Coordinate, EtaSource, PositionSource, RouteSummary

pytestmark = pytest.mark.e2e

NOW = datetime(2026, 1, 5, 7, 0, tzinfo=UTC)

ADMIN_DUMP = {
    "buses": [
        {"id": "bus_no_1", "bus_no": "1", "current_route_no": "R1", "isDefault": True},
        {"id": "bus_no_2", "bus_no": "2", "current_route_no": "R1", "isDefault": True},
        {
            "id": "bus_no_10",
            "bus_no": "10",
            "current_route_no": "R1",
            "current_location": {"latitude": 0.0, "longitude": 0.5},
        },
    ],
    "default_routes": {"R1": {"stops": ["X", "Y", "Z"]}},
    "stops": {"X": [0.0, 0.0], "Y": [0.0, 1.0], "Z": [0.0, 2.0]},
}


@dataclass
class FakeFeed:
    subscribed: list[str] = field(default_factory=list)
    unsubscribed: list[str] = field(default_factory=list)

    async def subscribe(self, channel: str) -> None:
        self.subscribed.append(channel)

    async def unsubscribe(self, channel: str) -> None:
        self.unsubscribed.append(channel)


@dataclass
class FakeRoutingBackend:
    available: bool = True
    failure: type[Exception] = ProviderError
    calls: dict[str, int] = field(default_factory=dict)

    def _record_call(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if not self.available:
            raise self.failure("provider down")

    async def route(self, origin: Coordinate, destination: Coordinate) -> RouteSummary:
        self._record_call("route")
        return RouteSummary(distance_meters=3000.0, duration_seconds=600.0, polyline=[origin, destination])

    async def directions(self, coordinates: Sequence[Coordinate]) -> RouteSummary:
        self._record_call("directions")
        polyline = [coordinates[0], Coordinate(lat=0.1, lng=0.5), *coordinates[1:]]
        return RouteSummary(distance_meters=250000.0, duration_seconds=9000.0, polyline=polyline)

    async def optimize(self, start: Coordinate, jobs: Sequence[tuple[int, Coordinate]], end: Coordinate) -> list[int]:
        self._record_call("optimize")
        return [job_id for job_id, _ in reversed(jobs)]


def _client(provider: FakeRoutingBackend, feed: FakeFeed) -> FleetClient:
    config = FleetConfig(mqtt_enabled=False, destination=(0.0, 2.0))
    return FleetClient(
        config,
        store=InMemoryDocumentStore.from_dict(ADMIN_DUMP),
        provider=provider,
        feed=feed,
        clock=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_search_track_and_live_eta_with_provider_down() -> None:
    feed = FakeFeed()
    provider = FakeRoutingBackend(available=False)

    async with _client(provider, feed) as client:
        results = await client.search("x", "Z", track=True)
        assert [result.vehicle.number for result in results] == ["1", "2", "10"]
        assert feed.subscribed == ["vehicle_location/1", "vehicle_location/2", "vehicle_location/10"]
        assert client.current_position("bus_no_1") is None

        assert client.hub.handle_feed_message("vehicle_location/1", {"latitude": 0.0, "longitude": 1.0})
        position = client.current_position("bus_no_1")
        assert position is not None
        assert position.source == PositionSource.FEED

        eta = await client.estimate_eta("bus_no_1")
        assert eta.source == EtaSource.FALLBACK
        assert eta.distance_km == pytest.approx(111.0)
        assert eta.display_minutes == 222
        assert eta.delayed

        static_eta = await client.estimate_eta("bus_no_10")
        assert static_eta.distance_km == pytest.approx(166.5)

        with pytest.raises(PositionUnknownError):
            await client.estimate_eta("bus_no_2")
        with pytest.raises(VehicleNotFoundError):
            await client.estimate_eta("bus_no_99")

        line = await client.route_line("bus_no_1")
        assert [waypoint.id for waypoint in line.waypoints] == ["X", "Y", "Z"]
        assert line.geometry == [waypoint.coordinate for waypoint in line.waypoints]
        assert line.source == EtaSource.FALLBACK

        await client.untrack("bus_no_1")
        assert client.current_position("bus_no_1") is None
        assert feed.unsubscribed == ["vehicle_location/1"]

    assert provider.calls["route"] == 2
    assert provider.calls["directions"] == 1


@pytest.mark.asyncio
async def test_provider_backed_eta_and_route_line() -> None:
    feed = FakeFeed()
    provider = FakeRoutingBackend()

    async with _client(provider, feed) as client:
        vehicle = await client.track("bus_no_2")
        assert vehicle.number == "2"
        client.hub.on_sample("bus_no_2", 0.0, 1.9)

        eta = await client.estimate_eta("bus_no_2")
        assert eta.source == EtaSource.PROVIDER
        assert eta.distance_km == pytest.approx(3.0)
        assert eta.duration_min == pytest.approx(10.0)
        assert not eta.delayed

        line = await client.route_line("bus_no_2")
        assert [waypoint.id for waypoint in line.waypoints] == ["X", "Y", "Z"]
        assert line.source == EtaSource.PROVIDER
        assert Coordinate(lat=0.1, lng=0.5) in line.geometry

    assert provider.calls["optimize"] == 1
    assert feed.subscribed == ["vehicle_location/2"]


@pytest.mark.asyncio
async def test_client_methods_require_context_manager() -> None:
    client = FleetClient(FleetConfig(mqtt_enabled=False))
    with pytest.raises(FleetError, match="not initialized"):
        await client.search("X", "Z")


@pytest.mark.asyncio
async def test_unexpected_provider_exceptions_fall_back() -> None:
    provider = FakeRoutingBackend(available=False, failure=RuntimeError)

    async with _client(provider, FakeFeed()) as client:
        client.hub.on_sample("bus_no_1", 0.0, 1.0)
        eta = await client.estimate_eta("bus_no_1")
        line = await client.route_line("bus_no_1")

    assert eta.is_fallback
    assert [waypoint.id for waypoint in line.waypoints] == ["X", "Y", "Z"]
    assert line.source == EtaSource.FALLBACK
    assert provider.calls == {"route": 1, "optimize": 1, "directions": 1}
