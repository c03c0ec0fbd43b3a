"""High-level async client tying the fleet components together."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

import aiohttp

from pyfleet._mqtt import MqttLocationFeed
from pyfleet._providers import RoutingProvider
from pyfleet._providers.openrouteservice import OpenRouteServiceClient
from pyfleet._transport import ProviderTransport
from pyfleet.config import FleetConfig
from pyfleet.documents import DocumentStore, HttpDocumentStore
from pyfleet.eta import EtaEstimator
from pyfleet.exceptions import (
    FeedUnavailableError,
    FleetConfigError,
    FleetError,
    PositionUnknownError,
    ProviderError,
    StoreUnavailableError,
    VehicleNotFoundError,
)
from pyfleet.hub import LiveLocationHub, LocationFeed
from pyfleet.matching import RouteMatcher
from pyfleet.models.eta import EtaResult, EtaSource, RouteLine
from pyfleet.models.geo import Coordinate, Waypoint
from pyfleet.models.position import Position
from pyfleet.models.search import SearchResult
from pyfleet.models.vehicle import Vehicle
from pyfleet.optimizer import RouteOptimizer
from pyfleet.search import FleetSearchOrchestrator, sort_results
from pyfleet.stops import StopIndex

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class FleetClient:
    """Async client for fleet search, live positions and ETAs.

    Usage::

        async with FleetClient(FleetConfig.from_env()) as client:
            results = await client.search("Central", "Campus", track=True)
            eta = await client.estimate_eta(results[0].vehicle.id)

    The document store, routing provider and location feed default to the
    HTTP, OpenRouteService and MQTT adapters built from *config*; pass
    your own to run against other backends.
    """

    def __init__(
        self,
        config: FleetConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        store: DocumentStore | None = None,
        provider: RoutingProvider | None = None,
        feed: LocationFeed | None = None,
        on_position: Callable[[str, Position], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._store = store
        self._provider = provider
        self._feed = feed
        self._on_position = on_position
        self._clock = clock
        self._loop: asyncio.AbstractEventLoop | None = None
        self._mqtt_runtime: MqttLocationFeed | None = None
        self._hub: LiveLocationHub | None = None
        self._eta: EtaEstimator | None = None
        self._optimizer: RouteOptimizer | None = None
        self._search: FleetSearchOrchestrator | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetClient:
        config = self._config
        self._loop = asyncio.get_running_loop()
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._store is None:
            self._store = HttpDocumentStore(config, self._http_session)
        if self._provider is None:
            transport = ProviderTransport(config, self._http_session)
            self._provider = OpenRouteServiceClient(transport, profile=config.routing_profile)

        eta_kwargs: dict[str, Any] = {}
        if self._clock is not None:
            eta_kwargs["clock"] = self._clock
        self._eta = EtaEstimator(
            self._provider,
            target_arrival=config.target_arrival,
            time_zone=config.time_zone,
            timeout=config.provider_timeout,
            **eta_kwargs,
        )
        self._optimizer = RouteOptimizer(self._provider, timeout=config.provider_timeout)
        self._hub = LiveLocationHub(
            self._feed,
            channel_prefix=config.channel_prefix,
            max_age=config.position_max_age,
            on_position=self._on_position,
        )
        self._search = FleetSearchOrchestrator(
            self._store,
            self._hub,
            matcher=RouteMatcher(strict_order=config.strict_stop_order),
            eta=self._eta,
            timeout=config.provider_timeout,
        )
        if self._feed is None:
            self._ensure_mqtt_started()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._hub is not None:
            await self._hub.close()
        self._stop_mqtt()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._hub = None
        self._search = None
        self._loop = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_hub(self) -> LiveLocationHub:
        if self._hub is None:
            raise FleetError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        return self._hub

    def _require_store(self) -> DocumentStore:
        if self._store is None or self._hub is None:
            raise FleetError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        return self._store

    async def _store_call(self, call: Awaitable[T], endpoint: str) -> T:
        try:
            return await asyncio.wait_for(call, self._config.provider_timeout)
        except TimeoutError as exc:
            raise StoreUnavailableError(f"Document store timed out on {endpoint}", endpoint=endpoint) from exc

    def _ensure_mqtt_started(self) -> None:
        """Best-effort MQTT startup (the hub keeps serving cached and static positions without it)."""
        if not self._config.mqtt_enabled:
            return
        if self._mqtt_runtime is not None and self._mqtt_runtime.is_running:
            return
        hub = self._require_hub()
        loop = self._loop or asyncio.get_running_loop()
        try:
            runtime = MqttLocationFeed(
                self._config,
                loop=loop,
                on_message=hub.handle_feed_message,
                on_connection_lost=hub.handle_feed_disconnect,
                logger=_logger,
            )
            runtime.start()
        except FeedUnavailableError:
            _logger.warning("MQTT startup failed; live positions unavailable", exc_info=True)
            return
        self._mqtt_runtime = runtime
        hub.attach_feed(runtime)

    def _stop_mqtt(self) -> None:
        runtime = self._mqtt_runtime
        self._mqtt_runtime = None
        if self._hub is not None and runtime is not None:
            self._hub.attach_feed(None)
        if runtime is not None:
            runtime.stop()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def config(self) -> FleetConfig:
        return self._config

    @property
    def hub(self) -> LiveLocationHub:
        return self._require_hub()

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        """Fetch one vehicle record.

        Raises
        ------
        VehicleNotFoundError
            No vehicle with this id exists.
        """
        store = self._require_store()
        vehicle = await self._store_call(store.get_vehicle(vehicle_id), "get_vehicle")
        if vehicle is None:
            raise VehicleNotFoundError(f"vehicle {vehicle_id!r} not found")
        return vehicle

    async def search(
        self,
        source: str,
        dest: str,
        *,
        track: bool = False,
        include_eta: bool = False,
    ) -> list[SearchResult]:
        """Vehicles serving *source* and *dest*, sorted by vehicle number.

        With ``track=True`` every matched vehicle is also subscribed on the
        live feed.
        """
        if self._search is None:
            raise FleetError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        results = sort_results(await self._search.search(source, dest, include_eta=include_eta))
        if track:
            hub = self._require_hub()
            for result in results:
                try:
                    await hub.subscribe(result.vehicle.id, result.vehicle.number)
                except FeedUnavailableError as exc:
                    _logger.warning("Could not track vehicle=%s: %s", result.vehicle.id, exc)
        return results

    def current_position(self, vehicle_id: str) -> Position | None:
        """Last live position of a vehicle, without any I/O."""
        return self._require_hub().current_position(vehicle_id)

    async def track(self, vehicle_id: str) -> Vehicle:
        """Subscribe a vehicle on the live feed and return its record."""
        vehicle = await self.get_vehicle(vehicle_id)
        await self._require_hub().subscribe(vehicle.id, vehicle.number)
        return vehicle

    async def untrack(self, vehicle_id: str) -> None:
        await self._require_hub().unsubscribe(vehicle_id)

    async def estimate_eta(self, vehicle_id: str, destination: Coordinate | None = None) -> EtaResult:
        """ETA of a vehicle to *destination* (default: the configured destination).

        Raises
        ------
        FleetConfigError
            No destination passed and none configured.
        VehicleNotFoundError
            Unknown vehicle.
        PositionUnknownError
            Neither the live feed nor the vehicle record has a position.
        """
        if destination is None:
            if self._config.destination is None:
                raise FleetConfigError("no destination configured (set FLEET_DESTINATION)")
            lat, lng = self._config.destination
            destination = Coordinate(lat=lat, lng=lng)
        vehicle = await self.get_vehicle(vehicle_id)
        position = self._require_hub().resolve_position(vehicle)
        if position is None:
            raise PositionUnknownError(f"no known position for vehicle {vehicle_id!r}")
        assert self._eta is not None  # noqa: S101
        return await self._eta.estimate(position.coordinate, destination)

    async def route_line(self, vehicle_id: str) -> RouteLine:
        """Stops of a vehicle's route in optimized visiting order, plus the line through them.

        The road geometry comes from the routing provider; when it is
        unavailable the line is the straight segments between stops.
        """
        store = self._require_store()
        vehicle = await self.get_vehicle(vehicle_id)
        if vehicle.assigned_route_id is None:
            return RouteLine()
        timeout = self._config.provider_timeout
        route = await self._store_call(
            store.get_route(vehicle.assigned_route_id, vehicle.route_variant), "get_route"
        )
        if route is None:
            return RouteLine()
        index = StopIndex(await self._store_call(store.get_all_stops(), "get_all_stops"))

        waypoints: list[Waypoint] = []
        for name in route.stops:
            stop = index.lookup(name)
            if stop is None or stop.coordinate is None:
                continue
            waypoints.append(Waypoint(id=stop.name, coordinate=stop.coordinate))
        if not waypoints:
            return RouteLine()

        assert self._optimizer is not None  # noqa: S101
        ordered = await self._optimizer.optimize(waypoints)
        straight = [waypoint.coordinate for waypoint in ordered]
        if len(straight) < 2 or self._provider is None:
            return RouteLine(waypoints=ordered, geometry=straight, source=EtaSource.FALLBACK)
        try:
            summary = await asyncio.wait_for(self._provider.directions(straight), timeout)
        except TimeoutError:
            _logger.warning("Route geometry timed out for vehicle=%s", vehicle_id)
        except (ProviderError, ValueError) as exc:
            _logger.warning("Route geometry unavailable for vehicle=%s: %s", vehicle_id, exc)
        except Exception:
            _logger.warning("Route geometry failed for vehicle=%s", vehicle_id, exc_info=True)
        else:
            if summary.polyline:
                return RouteLine(waypoints=ordered, geometry=summary.polyline, source=EtaSource.PROVIDER)
        return RouteLine(waypoints=ordered, geometry=straight, source=EtaSource.FALLBACK)
