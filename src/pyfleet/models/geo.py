"""Coordinates and waypoints."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """A WGS84 point in the internal ``(lat, lng)`` convention."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    lng: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)

    def as_lnglat(self) -> list[float]:
        """Provider order (GeoJSON / ORS): ``[lng, lat]``."""
        return [self.lng, self.lat]

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lng)

    @classmethod
    def from_lnglat(cls, pair: Sequence[Any]) -> Coordinate:
        """Build from a provider ``[lng, lat]`` pair (extra elevation ignored)."""
        if len(pair) < 2:
            raise ValueError(f"expected [lng, lat], got {pair!r}")
        return cls(lat=pair[1], lng=pair[0])


class Waypoint(BaseModel):
    """A named point on a route, as handed to the optimizer."""

    model_config = ConfigDict(frozen=True)

    id: str
    coordinate: Coordinate
