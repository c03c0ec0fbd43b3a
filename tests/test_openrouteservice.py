from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from pyfleet._providers.openrouteservice import OpenRouteServiceClient
from pyfleet.eta import EtaEstimator
from pyfleet.exceptions import ProviderError
from pyfleet.models import Coordinate, EtaSource, Waypoint
from pyfleet.optimizer import RouteOptimizer


@dataclass
class FakeTransport:
    responses: dict[str, Any] = field(default_factory=dict)
    requests: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    async def post_json(self, endpoint: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        self.requests.append((endpoint, dict(payload)))
        response = self.responses[endpoint]
        if isinstance(response, Exception):
            raise response
        return response


DIRECTIONS = "/v2/directions/driving-car/geojson"

A = Coordinate(lat=12.90, lng=80.10)
B = Coordinate(lat=12.80, lng=80.15)
C = Coordinate(lat=12.75, lng=80.20)


def _directions_body(distance: float, duration: float, coords: list[list[float]]) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "properties": {"summary": {"distance": distance, "duration": duration}},
                "geometry": {"type": "LineString", "coordinates": coords},
            }
        ],
    }


@pytest.mark.asyncio
async def test_route_sends_lnglat_pairs_and_parses_summary() -> None:
    transport = FakeTransport(responses={DIRECTIONS: _directions_body(8400.0, 1230.0, [[80.10, 12.90], [80.20, 12.75]])})
    summary = await OpenRouteServiceClient(transport).route(A, C)

    assert transport.requests == [(DIRECTIONS, {"coordinates": [[80.10, 12.90], [80.20, 12.75]]})]
    assert summary.distance_meters == 8400.0
    assert summary.duration_seconds == 1230.0
    assert summary.polyline == [A, C]


@pytest.mark.asyncio
async def test_same_point_route_without_distance_is_zero() -> None:
    body = {"features": [{"properties": {"summary": {}}, "geometry": {"coordinates": []}}]}
    summary = await OpenRouteServiceClient(FakeTransport(responses={DIRECTIONS: body})).route(A, A)
    assert summary.distance_meters == 0.0
    assert summary.duration_seconds == 0.0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {},
        {"features": []},
        {"features": [{"properties": {}}]},
        {"features": [{"properties": {"summary": {"distance": -5, "duration": 1}}}]},
        {"features": [{"properties": {"summary": {"distance": 1, "duration": 1}}, "geometry": {"coordinates": [[500, 1]]}}]},
        {"features": [{"properties": ["x"]}]},
        {"features": [{"properties": {"summary": "fast"}}]},
        {"features": [{"properties": {"summary": {"distance": 1, "duration": 1}}, "geometry": {"coordinates": 7}}]},
        {"features": [{"properties": {"summary": {"distance": 1, "duration": 1}}, "geometry": {"coordinates": [5]}}]},
    ],
)
async def test_malformed_directions_raise_provider_error(body: dict[str, Any]) -> None:
    with pytest.raises(ProviderError):
        await OpenRouteServiceClient(FakeTransport(responses={DIRECTIONS: body})).route(A, C)


@pytest.mark.asyncio
async def test_directions_waypoint_bounds() -> None:
    client = OpenRouteServiceClient(FakeTransport())
    with pytest.raises(ValueError):
        await client.directions([A])
    with pytest.raises(ValueError):
        await client.directions([A] * 51)


@pytest.mark.asyncio
async def test_optimize_payload_and_job_order() -> None:
    transport = FakeTransport(
        responses={
            "/optimization": {
                "routes": [
                    {
                        "steps": [
                            {"type": "start"},
                            {"type": "job", "job": 2},
                            {"type": "job", "id": 1},
                            {"type": "end"},
                        ]
                    }
                ]
            }
        }
    )
    order = await OpenRouteServiceClient(transport, profile="driving-hgv").optimize(A, [(1, B), (2, C)], A)

    assert order == [2, 1]
    endpoint, payload = transport.requests[0]
    assert endpoint == "/optimization"
    assert payload["jobs"] == [{"id": 1, "location": [80.15, 12.80]}, {"id": 2, "location": [80.20, 12.75]}]
    assert payload["vehicles"] == [{"id": 1, "profile": "driving-hgv", "start": [80.10, 12.90], "end": [80.10, 12.90]}]


@pytest.mark.asyncio
async def test_optimize_without_routes_is_provider_error() -> None:
    transport = FakeTransport(responses={"/optimization": {"routes": []}})
    with pytest.raises(ProviderError):
        await OpenRouteServiceClient(transport).optimize(A, [(1, B)], C)


@pytest.mark.asyncio
async def test_optimize_without_jobs_makes_no_request() -> None:
    transport = FakeTransport()
    assert await OpenRouteServiceClient(transport).optimize(A, [], C) == []
    assert transport.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("steps", [5, "job", {"type": "job"}])
async def test_optimization_steps_that_are_not_a_list_raise_provider_error(steps: object) -> None:
    transport = FakeTransport(responses={"/optimization": {"routes": [{"steps": steps}]}})
    with pytest.raises(ProviderError):
        await OpenRouteServiceClient(transport).optimize(A, [(1, B)], C)


@pytest.mark.asyncio
async def test_malformed_directions_fall_back_to_estimate() -> None:
    transport = FakeTransport(responses={DIRECTIONS: {"features": [{"properties": ["x"]}]}})
    eta = await EtaEstimator(OpenRouteServiceClient(transport)).estimate(A, C)
    assert eta.source == EtaSource.FALLBACK


@pytest.mark.asyncio
async def test_malformed_optimization_keeps_input_order() -> None:
    transport = FakeTransport(responses={"/optimization": {"routes": [{"steps": 5}]}})
    waypoints = [Waypoint(id=f"W{i}", coordinate=coord) for i, coord in enumerate([A, B, C, A])]
    assert await RouteOptimizer(OpenRouteServiceClient(transport)).optimize(waypoints) == waypoints
