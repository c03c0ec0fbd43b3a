"""Local geometry and clock helpers used when the provider is unavailable."""

from __future__ import annotations

import math
from datetime import datetime, time, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pyfleet._constants import KM_PER_DEGREE, MINUTES_PER_KM
from pyfleet.exceptions import FleetConfigError
from pyfleet.models.geo import Coordinate


def equirectangular_km(origin: Coordinate, destination: Coordinate) -> float:
    """Flat-earth distance, treating one degree on either axis as 111 km.

    Simple and deterministic; it overestimates east-west distances away
    from the equator.
    """
    d_lat = (destination.lat - origin.lat) * KM_PER_DEGREE
    d_lng = (destination.lng - origin.lng) * KM_PER_DEGREE
    return math.sqrt(d_lat * d_lat + d_lng * d_lng)


def fallback_minutes(distance_km: float) -> float:
    return distance_km * MINUTES_PER_KM


def resolve_zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise FleetConfigError(f"unknown time zone {name!r}") from exc


def deadline_for(now: datetime, target: time, zone: tzinfo) -> datetime:
    """Today's *target* time in *zone*, "today" being *now*'s date there."""
    local_now = now.astimezone(zone)
    return datetime.combine(local_now.date(), target, tzinfo=zone)
