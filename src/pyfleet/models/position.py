"""Location samples and cached positions."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pyfleet.models._base import FleetEnum
from pyfleet.models.geo import Coordinate


class PositionSource(FleetEnum):
    FEED = "feed"
    STATIC = "static"


class LocationFix(BaseModel):
    """A ``(lat, lng, timestamp)`` triple.

    ``timestamp`` is epoch seconds as reported by the device, if any. It
    is informational only: ordering is by arrival, never by timestamp.
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    lng: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)
    timestamp: float | None = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lng=self.lng)


class LocationSample(LocationFix):
    """One report from a vehicle's feed."""

    vehicle_id: str

    @field_validator("vehicle_id")
    @classmethod
    def _normalize_vehicle_id(cls, value: str) -> str:
        vehicle_id = value.strip()
        if not vehicle_id:
            raise ValueError("vehicle_id must be non-empty")
        return vehicle_id


class Position(LocationFix):
    """The hub's view of where a vehicle is."""

    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: PositionSource = PositionSource.FEED

    def age_seconds(self, now: datetime) -> float:
        return (now - self.received_at).total_seconds()
