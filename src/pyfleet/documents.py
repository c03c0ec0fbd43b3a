"""Admin document store adapters.

The store owns vehicles, routes (default and modified variants) and
stops. The core only ever reads from it, one query at a time.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol
from urllib.parse import quote

import aiohttp
from pydantic import ValidationError

from pyfleet._constants import USER_AGENT
from pyfleet._redact import redact_for_log
from pyfleet.config import FleetConfig
from pyfleet.exceptions import StoreUnavailableError
from pyfleet.models.route import Route, RouteVariant
from pyfleet.models.stop import Stop
from pyfleet.models.vehicle import Vehicle

_logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Read interface of the admin document store.

    Every method raises :class:`~pyfleet.exceptions.StoreUnavailableError`
    when the store cannot answer.
    """

    async def get_vehicles(self) -> list[Vehicle]: ...

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None: ...

    async def get_route(self, route_id: str, variant: RouteVariant) -> Route | None: ...

    async def get_stop(self, name: str) -> Stop | None: ...

    async def get_all_stops(self) -> list[Stop]: ...


def _parse_many(model: type[Any], items: Iterable[Any], *, kind: str) -> list[Any]:
    """Validate store documents, skipping the ones that do not parse."""
    parsed: list[Any] = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as exc:
            _logger.debug("Skipping unparseable %s document: %s", kind, exc.errors(include_url=False))
    return parsed


def _stops_from_mapping(data: Mapping[str, Any]) -> list[dict[str, Any]]:
    """``{name: [lat, lng]}`` (the store's single ``lat_lng`` document) to stop dicts."""
    return [{"name": name, "coords": value} for name, value in data.items()]


class InMemoryDocumentStore:
    """Document store backed by plain Python objects.

    Used by tests and by the CLI's ``--data`` option.
    """

    def __init__(
        self,
        *,
        vehicles: Iterable[Vehicle] = (),
        routes: Iterable[Route] = (),
        stops: Iterable[Stop] = (),
    ) -> None:
        self._vehicles: dict[str, Vehicle] = {vehicle.id: vehicle for vehicle in vehicles}
        self._routes: dict[tuple[str, RouteVariant], Route] = {
            (route.id, route.variant): route for route in routes
        }
        self._stops: list[Stop] = list(stops)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InMemoryDocumentStore:
        """Build from a JSON dump of the admin store.

        Expected keys: ``buses`` (list of vehicle documents),
        ``default_routes`` and ``copy_routes`` (``{route_id: {"stops": [...]}}``
        or ``{route_id: [...]}``) and ``stops`` (a list of stop documents or a
        ``{name: [lat, lng]}`` mapping).
        """
        vehicles = _parse_many(Vehicle, data.get("buses") or data.get("vehicles") or [], kind="vehicle")

        routes: list[Route] = []
        for key, variant in (("default_routes", RouteVariant.DEFAULT), ("copy_routes", RouteVariant.MODIFIED)):
            for route_id, doc in (data.get(key) or {}).items():
                stops = doc.get("stops") if isinstance(doc, Mapping) else doc
                routes.extend(
                    _parse_many(Route, [{"id": route_id, "stops": stops, "variant": variant}], kind="route")
                )

        raw_stops = data.get("stops") or []
        if isinstance(raw_stops, Mapping):
            raw_stops = _stops_from_mapping(raw_stops)
        stops = _parse_many(Stop, raw_stops, kind="stop")
        return cls(vehicles=vehicles, routes=routes, stops=stops)

    @classmethod
    def from_json_file(cls, path: str) -> InMemoryDocumentStore:
        with open(path, encoding="utf-8") as fh:
            return cls.from_dict(json.load(fh))

    async def get_vehicles(self) -> list[Vehicle]:
        return list(self._vehicles.values())

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        return self._vehicles.get(vehicle_id)

    async def get_route(self, route_id: str, variant: RouteVariant) -> Route | None:
        return self._routes.get((route_id, variant))

    async def get_stop(self, name: str) -> Stop | None:
        key = name.strip().lower()
        for stop in self._stops:
            if stop.name.lower() == key:
                return stop
        return None

    async def get_all_stops(self) -> list[Stop]:
        return list(self._stops)


class HttpDocumentStore:
    """Document store reached through the admin REST API.

    Endpoints:
      - GET /api/buses
      - GET /api/buses/{id}
      - GET /api/routes/{id}/stops?source=default|copy
      - GET /api/stops/{name}
      - GET /api/stops
    """

    def __init__(self, config: FleetConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.provider_timeout)

    async def _get_json(self, endpoint: str, *, params: Mapping[str, str] | None = None) -> Any:
        """GET *endpoint*; ``None`` on 404, decoded JSON otherwise."""
        url = f"{self._config.store_base_url}{endpoint}"
        headers = {"accept": "application/json", "user-agent": USER_AGENT}
        _logger.debug("GET %s params=%s", url, params)
        try:
            async with self._http.get(url, params=params, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status == 404:
                    return None
                if resp.status != 200:
                    raise StoreUnavailableError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except StoreUnavailableError:
            raise
        except TimeoutError as exc:
            raise StoreUnavailableError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc
        except aiohttp.ClientError as exc:
            raise StoreUnavailableError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StoreUnavailableError(f"Invalid JSON from {endpoint}: {text[:200]}", endpoint=endpoint) from exc
        _logger.debug("Response from %s: %s", endpoint, redact_for_log(body))
        return body

    async def get_vehicles(self) -> list[Vehicle]:
        body = await self._get_json("/api/buses")
        if not isinstance(body, list):
            raise StoreUnavailableError("Expected a list of vehicles", endpoint="/api/buses")
        return _parse_many(Vehicle, body, kind="vehicle")

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        endpoint = f"/api/buses/{quote(vehicle_id, safe='')}"
        body = await self._get_json(endpoint)
        if body is None:
            return None
        try:
            return Vehicle.model_validate(body)
        except ValidationError as exc:
            raise StoreUnavailableError(f"Malformed vehicle document: {exc}", endpoint=endpoint) from exc

    async def get_route(self, route_id: str, variant: RouteVariant) -> Route | None:
        endpoint = f"/api/routes/{quote(route_id, safe='')}/stops"
        body = await self._get_json(endpoint, params={"source": variant.store_source})
        if body is None:
            return None
        if not isinstance(body, Mapping):
            raise StoreUnavailableError("Expected a route object", endpoint=endpoint)
        return Route(id=route_id, stops=body.get("stops") or [], variant=variant)

    async def get_stop(self, name: str) -> Stop | None:
        endpoint = f"/api/stops/{quote(name.strip().lower(), safe='')}"
        body = await self._get_json(endpoint)
        if body is None:
            return None
        try:
            return Stop.model_validate(body)
        except ValidationError as exc:
            raise StoreUnavailableError(f"Malformed stop document: {exc}", endpoint=endpoint) from exc

    async def get_all_stops(self) -> list[Stop]:
        body = await self._get_json("/api/stops")
        if isinstance(body, Mapping):
            body = _stops_from_mapping(body)
        if not isinstance(body, list):
            raise StoreUnavailableError("Expected a list of stops", endpoint="/api/stops")
        return _parse_many(Stop, body, kind="stop")
