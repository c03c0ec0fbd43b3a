"""Route/stop-pair matching."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pyfleet.ingestion.normalize import normalize_stop_name
from pyfleet.models.geo import Coordinate
from pyfleet.stops import StopIndex

_logger = logging.getLogger(__name__)


class RouteMatcher:
    """Decides whether a route serves a source/destination pair.

    By default any route that contains both stops matches, in either
    order. With ``strict_order=True`` the source must come first.
    """

    def __init__(self, *, strict_order: bool = False) -> None:
        self._strict_order = strict_order

    @property
    def strict_order(self) -> bool:
        return self._strict_order

    def matches(self, route_stops: Sequence[str], source: str, dest: str) -> bool:
        keys = [normalize_stop_name(name) for name in route_stops]
        source_key = normalize_stop_name(source)
        dest_key = normalize_stop_name(dest)
        if not source_key or not dest_key:
            return False
        if source_key not in keys or dest_key not in keys:
            return False
        if not self._strict_order:
            return True
        first_source = keys.index(source_key)
        return dest_key in keys[first_source + 1 :]

    def coordinates_for(self, route_stops: Sequence[str], stop_index: StopIndex) -> list[Coordinate]:
        """Coordinates of the route's stops, in route order.

        Stops that are unknown or have no location are skipped, so the
        result can be shorter than *route_stops*.
        """
        coords: list[Coordinate] = []
        for name in route_stops:
            coord = stop_index.coordinate(name)
            if coord is None:
                _logger.debug("Stop %r has no known location", name)
                continue
            coords.append(coord)
        return coords
