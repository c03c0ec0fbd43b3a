"""Routing, ETA and route-line models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from pyfleet.models._base import FleetEnum
from pyfleet.models.geo import Coordinate, Waypoint


class EtaSource(FleetEnum):
    PROVIDER = "provider"
    FALLBACK = "fallback"


class RouteSummary(BaseModel):
    """What the routing provider returns for a directions request."""

    model_config = ConfigDict(frozen=True)

    distance_meters: float = Field(ge=0.0, allow_inf_nan=False)
    duration_seconds: float = Field(ge=0.0, allow_inf_nan=False)
    polyline: list[Coordinate] = Field(default_factory=list)


class EtaResult(BaseModel):
    """Live ETA for one vehicle towards a fixed destination.

    Parameters
    ----------
    distance_km : float
        Road distance (provider) or straight-line estimate (fallback).
    duration_min : float
        Travel time in minutes, unrounded.
    arrival_time : datetime
        ``now + duration_min``, timezone-aware.
    delayed : bool
        ``arrival_time`` is strictly after the daily deadline.
    source : EtaSource
        Whether the routing provider or the local fallback produced this.
    """

    model_config = ConfigDict(frozen=True)

    distance_km: float
    duration_min: float
    arrival_time: datetime
    delayed: bool
    source: EtaSource

    @property
    def display_minutes(self) -> int:
        return int(round(self.duration_min))

    @property
    def is_fallback(self) -> bool:
        return self.source == EtaSource.FALLBACK


class RouteLine(BaseModel):
    """Visiting order of a route's stops plus the line to draw through them."""

    model_config = ConfigDict(frozen=True)

    waypoints: list[Waypoint] = Field(default_factory=list)
    geometry: list[Coordinate] = Field(default_factory=list)
    source: EtaSource = EtaSource.FALLBACK
