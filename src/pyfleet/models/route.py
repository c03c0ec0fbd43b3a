"""Route model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from pyfleet.models._base import FleetBaseModel, FleetEnum


class RouteVariant(FleetEnum):
    """Which stop sequence a vehicle follows.

    ``DEFAULT`` is the canonical sequence; ``MODIFIED`` is the locally
    edited copy (the admin store's ``copy_routes`` collection).
    """

    DEFAULT = "default"
    MODIFIED = "modified"

    @property
    def store_source(self) -> str:
        """Value of the admin store's ``source`` query parameter."""
        return "default" if self is RouteVariant.DEFAULT else "copy"


def parse_is_default(value: Any) -> RouteVariant:
    """Map the admin store's ``isDefault`` flag onto a variant.

    The flag shows up as a bool, as ``{"value": bool}``, or as any other
    truthy/falsy value. A missing flag means the default variant.
    """
    if value is None:
        return RouteVariant.DEFAULT
    if isinstance(value, dict):
        value = value.get("value")
    if isinstance(value, str):
        value = value.strip().lower() not in {"", "0", "false", "no", "off"}
    return RouteVariant.DEFAULT if bool(value) else RouteVariant.MODIFIED


class Route(FleetBaseModel):
    """An ordered stop sequence. Order encodes physical visiting order."""

    id: str = Field(validation_alias=AliasChoices("id", "route_id", "routeId"))
    stops: list[str] = Field(default_factory=list)
    variant: RouteVariant = RouteVariant.DEFAULT

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value).strip()

    @field_validator("stops", mode="before")
    @classmethod
    def _clean_stops(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        # Keep duplicates and order; drop blank entries.
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
