"""Stop model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from pyfleet.ingestion.normalize import valid_lat, valid_lng
from pyfleet.models._base import FleetBaseModel
from pyfleet.models.geo import Coordinate


class Stop(FleetBaseModel):
    """A named stop, optionally with a location.

    A stop without coordinates is valid: it can still be matched by name,
    it is only left out of route geometry.

    The admin store sends several shapes for the same thing; all of
    ``{"name", "lat", "lng"}``, ``{"name", "latitude", "longitude"}`` and
    ``{"name", "coords": [lat, lng]}`` (also ``"map"``, or a
    ``{"0": lat, "1": lng}`` map) are accepted.
    """

    name: str = Field(validation_alias=AliasChoices("name", "stop_name", "stopName"))
    lat: float | None = Field(default=None, validation_alias=AliasChoices("lat", "latitude"))
    lng: float | None = Field(default=None, validation_alias=AliasChoices("lng", "lon", "longitude"))

    @model_validator(mode="before")
    @classmethod
    def _unpack_pair(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        for key in ("coords", "map", "coordinates"):
            pair = values.get(key)
            if isinstance(pair, dict):
                pair = [pair.get("0", pair.get(0)), pair.get("1", pair.get(1))]
            if isinstance(pair, (list, tuple)) and len(pair) >= 2:
                merged = dict(values)
                if merged.get("lat") is None and merged.get("latitude") is None:
                    merged["lat"] = pair[0]
                if merged.get("lng") is None and merged.get("longitude") is None:
                    merged["lng"] = pair[1]
                return merged
        return values

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        text = str(value).strip()
        if not text:
            raise ValueError("stop name must be non-empty")
        return text

    @field_validator("lat", mode="before")
    @classmethod
    def _coerce_lat(cls, value: Any) -> float | None:
        return valid_lat(value)

    @field_validator("lng", mode="before")
    @classmethod
    def _coerce_lng(cls, value: Any) -> float | None:
        return valid_lng(value)

    @property
    def coordinate(self) -> Coordinate | None:
        """Location of the stop, or ``None`` when either axis is unknown."""
        if self.lat is None or self.lng is None:
            return None
        return Coordinate(lat=self.lat, lng=self.lng)
