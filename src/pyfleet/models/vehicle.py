"""Vehicle model."""

from __future__ import annotations

import re
from typing import Any, ClassVar

from pydantic import AliasChoices, Field, field_validator, model_validator

from pyfleet.ingestion.normalize import normalize_timestamp_seconds, safe_str, valid_lat, valid_lng
from pyfleet.models._base import FleetBaseModel, FleetEnum
from pyfleet.models.position import LocationFix
from pyfleet.models.route import RouteVariant, parse_is_default

_DIGITS = re.compile(r"(\d+)")
_BUS_DOC_ID = re.compile(r"^bus_no_(.+)$")


def natural_sort_key(text: str) -> tuple[tuple[int, int | str], ...]:
    """Sort key that orders embedded numbers numerically (``"2" < "10"``)."""
    parts: list[tuple[int, int | str]] = []
    for chunk in _DIGITS.split(text.strip().lower()):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk)))
        else:
            parts.append((1, chunk))
    return tuple(parts)


class VehicleStatus(FleetEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"

    @classmethod
    def _missing_(cls, value: object) -> VehicleStatus:
        # Records without a recognizable status are treated as in service.
        member = super()._missing_(value)
        return member if isinstance(member, VehicleStatus) else cls.ACTIVE


def _parse_location(value: Any) -> LocationFix | None:
    if isinstance(value, LocationFix):
        return value
    if not isinstance(value, dict):
        return None
    lat = valid_lat(value.get("lat", value.get("latitude")))
    lng = valid_lng(value.get("lng", value.get("longitude")))
    if lat is None or lng is None:
        return None
    ts = normalize_timestamp_seconds(value.get("timestamp", value.get("time")))
    return LocationFix(lat=lat, lng=lng, timestamp=ts)


class Vehicle(FleetBaseModel):
    """A tracked vehicle as recorded by the admin workflow.

    Only ``last_known_location`` is ever refreshed outside admin edits,
    and that happens in the hub, never on this model.
    """

    _KEY_ALIASES: ClassVar[dict[str, str]] = {
        "bus_no": "number",
        "current_route_no": "assigned_route_id",
        "current_location": "last_known_location",
    }

    id: str = Field(validation_alias=AliasChoices("id", "vehicle_id", "vehicleId"))
    """Document id (e.g. ``"bus_no_12"``)."""
    number: str = Field(default="", validation_alias=AliasChoices("number", "busNo"))
    """Human label; sorts naturally (see :attr:`sort_key`)."""
    assigned_route_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("assigned_route_id", "assignedRouteId", "route_id"),
    )
    route_variant: RouteVariant = Field(
        default=RouteVariant.DEFAULT,
        validation_alias=AliasChoices("route_variant", "routeVariant"),
    )
    status: VehicleStatus = VehicleStatus.ACTIVE
    last_known_location: LocationFix | None = Field(
        default=None,
        validation_alias=AliasChoices("last_known_location", "lastKnownLocation"),
    )
    raw: dict[str, Any] = Field(default_factory=dict)
    """Original store document."""

    @model_validator(mode="before")
    @classmethod
    def _derive_fields(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        merged.setdefault("raw", values)
        if "route_variant" not in merged and "routeVariant" not in merged:
            flag = merged.get("isDefault", merged.get("is_default"))
            merged["route_variant"] = parse_is_default(flag)
        if not merged.get("number") and not merged.get("bus_no") and not merged.get("busNo"):
            match = _BUS_DOC_ID.match(str(merged.get("id", "")))
            if match:
                merged["number"] = match.group(1)
        return merged

    @field_validator("id", "number", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return str(value).strip()

    @field_validator("assigned_route_id", mode="before")
    @classmethod
    def _coerce_route_id(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> VehicleStatus:
        return VehicleStatus(str(value))

    @field_validator("last_known_location", mode="before")
    @classmethod
    def _coerce_location(cls, value: Any) -> LocationFix | None:
        return _parse_location(value)

    @property
    def sort_key(self) -> tuple[tuple[int, int | str], ...]:
        return natural_sort_key(self.number or self.id)

    @property
    def has_route(self) -> bool:
        return self.assigned_route_id is not None
