"""Search result model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from pyfleet.models.eta import EtaResult
from pyfleet.models.geo import Coordinate
from pyfleet.models.position import Position, PositionSource
from pyfleet.models.vehicle import Vehicle


class SearchResult(BaseModel):
    """A vehicle whose route serves the requested stop pair.

    Derived per query and never cached. ``route_coords`` may be shorter
    than ``matched_route_stops`` because stops without a known location
    are skipped.
    """

    model_config = ConfigDict(frozen=True)

    vehicle: Vehicle
    matched_route_stops: list[str] = Field(default_factory=list)
    source_coord: Coordinate | None = None
    dest_coord: Coordinate | None = None
    route_coords: list[Coordinate] = Field(default_factory=list)
    position: Position | None = None
    eta: EtaResult | None = None

    @property
    def is_live(self) -> bool:
        return self.position is not None and self.position.source == PositionSource.FEED
