"""Data models for fleet documents, positions and derived results."""

from pyfleet.models._base import FleetBaseModel, FleetEnum
from pyfleet.models.eta import EtaResult, EtaSource, RouteLine, RouteSummary
from pyfleet.models.geo import Coordinate, Waypoint
from pyfleet.models.position import LocationFix, LocationSample, Position, PositionSource
from pyfleet.models.route import Route, RouteVariant, parse_is_default
from pyfleet.models.search import SearchResult
from pyfleet.models.stop import Stop
from pyfleet.models.vehicle import Vehicle, VehicleStatus, natural_sort_key

__all__ = [
    "Coordinate",
    "EtaResult",
    "EtaSource",
    "FleetBaseModel",
    "FleetEnum",
    "LocationFix",
    "LocationSample",
    "Position",
    "PositionSource",
    "Route",
    "RouteLine",
    "RouteSummary",
    "RouteVariant",
    "SearchResult",
    "Stop",
    "Vehicle",
    "VehicleStatus",
    "Waypoint",
    "natural_sort_key",
    "parse_is_default",
]
