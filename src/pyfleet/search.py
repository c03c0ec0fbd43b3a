"""Vehicle search by source/destination stop pair."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from typing import TypeVar

from pyfleet._constants import DEFAULT_PROVIDER_TIMEOUT
from pyfleet.documents import DocumentStore
from pyfleet.eta import EtaEstimator
from pyfleet.exceptions import InvalidQueryError, StoreUnavailableError
from pyfleet.hub import LiveLocationHub
from pyfleet.ingestion.normalize import normalize_stop_name
from pyfleet.matching import RouteMatcher
from pyfleet.models.geo import Coordinate
from pyfleet.models.search import SearchResult
from pyfleet.models.stop import Stop
from pyfleet.models.vehicle import Vehicle
from pyfleet.stops import StopIndex

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def sort_results(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Results ordered by vehicle number, numerically where it is a number."""
    return sorted(results, key=lambda result: result.vehicle.sort_key)


class FleetSearchOrchestrator:
    """Answers "which vehicles connect stop A to stop B, and where are they now".

    Vehicles are evaluated concurrently; a vehicle whose route cannot be
    fetched is left out without affecting the others. Failing to load
    the vehicle or stop lists fails the whole query with
    :class:`~pyfleet.exceptions.StoreUnavailableError`.
    """

    def __init__(
        self,
        store: DocumentStore,
        hub: LiveLocationHub,
        *,
        matcher: RouteMatcher | None = None,
        eta: EtaEstimator | None = None,
        timeout: float = DEFAULT_PROVIDER_TIMEOUT,
    ) -> None:
        self._store = store
        self._hub = hub
        self._matcher = matcher or RouteMatcher()
        self._eta = eta
        self._timeout = timeout

    async def search(self, source: str, dest: str, *, include_eta: bool = False) -> list[SearchResult]:
        """Vehicles whose assigned route serves both stops.

        Result order is unspecified; see :func:`sort_results`.

        Raises
        ------
        InvalidQueryError
            Either name is blank, or both name the same stop.
        StoreUnavailableError
            The vehicle or stop list could not be loaded.
        """
        source_key = normalize_stop_name(source)
        dest_key = normalize_stop_name(dest)
        if not source_key or not dest_key:
            raise InvalidQueryError("source and destination stops are required")
        if source_key == dest_key:
            raise InvalidQueryError("source and destination must be different stops")

        vehicles = await self._bulk(self._store.get_vehicles(), "/api/buses")
        stops = await self._bulk(self._store.get_all_stops(), "/api/stops")
        index = await self._stop_index(stops, (source, dest))
        source_coord = index.coordinate(source)
        dest_coord = index.coordinate(dest)

        candidates = [vehicle for vehicle in vehicles if vehicle.has_route]
        _logger.debug(
            "Searching %s -> %s across %d vehicles (%d with routes)",
            source_key,
            dest_key,
            len(vehicles),
            len(candidates),
        )
        outcomes = await asyncio.gather(
            *(
                self._evaluate(vehicle, source, dest, index, source_coord, dest_coord, include_eta)
                for vehicle in candidates
            ),
            return_exceptions=True,
        )

        results: list[SearchResult] = []
        for vehicle, outcome in zip(candidates, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                _logger.warning("Excluding vehicle=%s: %s", vehicle.id, outcome, exc_info=outcome)
                continue
            if outcome is not None:
                results.append(outcome)
        return results

    async def _bulk(self, call: Awaitable[_T], endpoint: str) -> _T:
        try:
            return await asyncio.wait_for(call, self._timeout)
        except TimeoutError as exc:
            raise StoreUnavailableError(f"Document store timed out after {self._timeout}s", endpoint=endpoint) from exc

    async def _stop_index(self, stops: list[Stop], names: tuple[str, ...]) -> StopIndex:
        """Index of *stops*, with query stops missing a location fetched individually."""
        index = StopIndex(stops)
        refetched: list[Stop] = []
        for name in names:
            if index.coordinate(name) is not None:
                continue
            try:
                stop = await asyncio.wait_for(self._store.get_stop(name), self._timeout)
            except (StoreUnavailableError, TimeoutError) as exc:
                _logger.warning("Stop lookup for %r failed: %s", name, exc)
                continue
            if stop is not None and stop.coordinate is not None:
                refetched.append(stop)
        if not refetched:
            return index
        return StopIndex([*refetched, *index.all()])

    async def _evaluate(
        self,
        vehicle: Vehicle,
        source: str,
        dest: str,
        index: StopIndex,
        source_coord: Coordinate | None,
        dest_coord: Coordinate | None,
        include_eta: bool,
    ) -> SearchResult | None:
        route_id = vehicle.assigned_route_id
        if route_id is None:
            return None
        try:
            route = await asyncio.wait_for(self._store.get_route(route_id, vehicle.route_variant), self._timeout)
        except TimeoutError:
            _logger.warning("Excluding vehicle=%s: route %s timed out", vehicle.id, route_id)
            return None
        except StoreUnavailableError as exc:
            _logger.warning("Excluding vehicle=%s: route %s unavailable: %s", vehicle.id, route_id, exc)
            return None

        if route is None or not self._matcher.matches(route.stops, source, dest):
            return None

        route_coords = self._matcher.coordinates_for(route.stops, index)
        if not route_coords:
            _logger.warning("Excluding vehicle=%s: no stop of route %s has a location", vehicle.id, route_id)
            return None

        position = self._hub.resolve_position(vehicle)
        eta = None
        if include_eta and self._eta is not None and position is not None and dest_coord is not None:
            eta = await self._eta.estimate(position.coordinate, dest_coord)

        return SearchResult(
            vehicle=vehicle,
            matched_route_stops=route.stops,
            source_coord=source_coord,
            dest_coord=dest_coord,
            route_coords=route_coords,
            position=position,
            eta=eta,
        )
