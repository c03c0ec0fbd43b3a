"""Routing provider adapters."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from pyfleet.models.eta import RouteSummary
from pyfleet.models.geo import Coordinate


class RoutingProvider(Protocol):
    """Structural interface of a road routing/optimization service."""

    async def route(self, origin: Coordinate, destination: Coordinate) -> RouteSummary: ...

    async def directions(self, coordinates: Sequence[Coordinate]) -> RouteSummary: ...

    async def optimize(
        self,
        start: Coordinate,
        jobs: Sequence[tuple[int, Coordinate]],
        end: Coordinate,
    ) -> list[int]: ...


__all__ = ["RoutingProvider"]
