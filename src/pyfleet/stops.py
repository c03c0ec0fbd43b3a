"""Stop name index."""

from __future__ import annotations

import logging
from collections.abc import Iterable, ValuesView

from pyfleet.ingestion.normalize import normalize_stop_name
from pyfleet.models.geo import Coordinate
from pyfleet.models.stop import Stop

_logger = logging.getLogger(__name__)


class StopIndex:
    """Case- and whitespace-insensitive lookup of stops by name.

    Names that collide after normalization keep the first stop
    registered; later ones are ignored.
    """

    def __init__(self, stops: Iterable[Stop] = ()) -> None:
        self._stops: dict[str, Stop] = {}
        for stop in stops:
            self.add(stop)

    def add(self, stop: Stop) -> bool:
        """Register *stop*. Returns ``False`` if the name was already taken."""
        key = normalize_stop_name(stop.name)
        if not key:
            return False
        existing = self._stops.get(key)
        if existing is not None:
            _logger.debug("Duplicate stop %r ignored (keeping %r)", stop.name, existing.name)
            return False
        self._stops[key] = stop
        return True

    def lookup(self, name: str) -> Stop | None:
        return self._stops.get(normalize_stop_name(name))

    def coordinate(self, name: str) -> Coordinate | None:
        stop = self.lookup(name)
        return stop.coordinate if stop is not None else None

    def all(self) -> ValuesView[Stop]:
        """Every registered stop, in registration order."""
        return self._stops.values()

    def __len__(self) -> int:
        return len(self._stops)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_stop_name(name) in self._stops
