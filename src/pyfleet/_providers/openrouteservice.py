"""OpenRouteService adapter.

Endpoints:
  - /v2/directions/{profile}/geojson (route summary + road geometry)
  - /optimization (visiting order of jobs between a fixed start and end)

ORS works in ``[lng, lat]`` order; everything crossing this module's
boundary uses :class:`~pyfleet.models.geo.Coordinate`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from pyfleet._constants import MAX_DIRECTIONS_WAYPOINTS, MAX_OPTIMIZATION_JOBS
from pyfleet._transport import Transport
from pyfleet.exceptions import ProviderError
from pyfleet.models.eta import RouteSummary
from pyfleet.models.geo import Coordinate

_logger = logging.getLogger(__name__)

_OPTIMIZATION_ENDPOINT = "/optimization"


def _directions_endpoint(profile: str) -> str:
    return f"/v2/directions/{profile}/geojson"


def _parse_directions(data: dict[str, Any], endpoint: str) -> RouteSummary:
    """Parse a GeoJSON directions response into a :class:`RouteSummary`."""
    features = data.get("features")
    if not isinstance(features, list) or not features or not isinstance(features[0], dict):
        raise ProviderError("Directions response has no features", endpoint=endpoint)
    feature = features[0]
    properties = feature.get("properties")
    summary = properties.get("summary") if isinstance(properties, dict) else None
    if not isinstance(summary, dict):
        raise ProviderError("Directions response has no summary", endpoint=endpoint)

    geometry = feature.get("geometry")
    raw_coords = geometry.get("coordinates") if isinstance(geometry, dict) else None
    if raw_coords is not None and not isinstance(raw_coords, list):
        raise ProviderError("Directions geometry is not a coordinate list", endpoint=endpoint)
    try:
        polyline = [Coordinate.from_lnglat(pair) for pair in raw_coords or []]
        # ORS omits distance/duration when origin and destination coincide.
        return RouteSummary(
            distance_meters=summary.get("distance", 0.0),
            duration_seconds=summary.get("duration", 0.0),
            polyline=polyline,
        )
    except (ValidationError, TypeError, ValueError, AttributeError, KeyError) as exc:
        raise ProviderError(f"Malformed directions response: {exc}", endpoint=endpoint) from exc


def _parse_job_order(data: dict[str, Any]) -> list[int]:
    """Job ids of the first route, in visiting order."""
    routes = data.get("routes")
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        raise ProviderError("Optimization response has no routes", endpoint=_OPTIMIZATION_ENDPOINT)
    steps = routes[0].get("steps")
    if steps is None:
        steps = []
    if not isinstance(steps, list):
        raise ProviderError("Optimization route steps are not a list", endpoint=_OPTIMIZATION_ENDPOINT)
    order: list[int] = []
    for step in steps:
        if not isinstance(step, dict) or step.get("type") != "job":
            continue
        job_id = step.get("job", step.get("id"))
        if isinstance(job_id, bool) or not isinstance(job_id, int):
            raise ProviderError(f"Optimization step without job id: {step!r}", endpoint=_OPTIMIZATION_ENDPOINT)
        order.append(job_id)
    return order


class OpenRouteServiceClient:
    """Routing provider backed by the OpenRouteService HTTP API."""

    def __init__(self, transport: Transport, *, profile: str = "driving-car") -> None:
        self._transport = transport
        self._profile = profile

    async def directions(self, coordinates: Sequence[Coordinate]) -> RouteSummary:
        """Road route through *coordinates* in the given order.

        Raises
        ------
        ValueError
            Fewer than 2 or more than the provider's waypoint limit.
        ProviderError
            Transport failure or an unusable response.
        """
        if len(coordinates) < 2:
            raise ValueError("directions need at least 2 coordinates")
        if len(coordinates) > MAX_DIRECTIONS_WAYPOINTS:
            raise ValueError(f"directions accept at most {MAX_DIRECTIONS_WAYPOINTS} coordinates")
        endpoint = _directions_endpoint(self._profile)
        payload = {"coordinates": [coord.as_lnglat() for coord in coordinates]}
        data = await self._transport.post_json(endpoint, payload)
        return _parse_directions(data, endpoint)

    async def route(self, origin: Coordinate, destination: Coordinate) -> RouteSummary:
        return await self.directions([origin, destination])

    async def optimize(
        self,
        start: Coordinate,
        jobs: Sequence[tuple[int, Coordinate]],
        end: Coordinate,
    ) -> list[int]:
        """Visiting order of *jobs* for one vehicle going from *start* to *end*.

        Returns the job ids as the provider ordered them. The caller is
        responsible for checking that the reply is a permutation.
        """
        if not jobs:
            return []
        if len(jobs) > MAX_OPTIMIZATION_JOBS:
            raise ValueError(f"optimization accepts at most {MAX_OPTIMIZATION_JOBS} jobs")
        payload = {
            "jobs": [{"id": job_id, "location": coord.as_lnglat()} for job_id, coord in jobs],
            "vehicles": [
                {
                    "id": 1,
                    "profile": self._profile,
                    "start": start.as_lnglat(),
                    "end": end.as_lnglat(),
                }
            ],
        }
        data = await self._transport.post_json(_OPTIMIZATION_ENDPOINT, payload)
        order = _parse_job_order(data)
        _logger.debug("Optimization returned %d of %d jobs", len(order), len(jobs))
        return order
