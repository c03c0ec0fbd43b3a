"""pyfleet - Async fleet location, route matching and ETA core."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyfleet")
except PackageNotFoundError:
    __version__ = "0+local"
from pyfleet.client import FleetClient
from pyfleet.config import FleetConfig
from pyfleet.documents import DocumentStore, HttpDocumentStore, InMemoryDocumentStore
from pyfleet.eta import EtaEstimator
from pyfleet.exceptions import (
    FeedUnavailableError,
    FleetConfigError,
    FleetError,
    InvalidQueryError,
    MalformedSampleError,
    PositionUnknownError,
    ProviderError,
    ProviderTimeoutError,
    StoreUnavailableError,
    VehicleNotFoundError,
)
from pyfleet.hub import LiveLocationHub, SubscriptionState
from pyfleet.matching import RouteMatcher
from pyfleet.models import (
    Coordinate,
    EtaResult,
    EtaSource,
    LocationSample,
    Position,
    PositionSource,
    Route,
    RouteLine,
    RouteSummary,
    RouteVariant,
    SearchResult,
    Stop,
    Vehicle,
    VehicleStatus,
    Waypoint,
)
from pyfleet.optimizer import RouteOptimizer
from pyfleet.search import FleetSearchOrchestrator, sort_results
from pyfleet.stops import StopIndex

__all__ = [
    "__version__",
    "Coordinate",
    "DocumentStore",
    "EtaEstimator",
    "EtaResult",
    "EtaSource",
    "FeedUnavailableError",
    "FleetClient",
    "FleetConfig",
    "FleetConfigError",
    "FleetError",
    "FleetSearchOrchestrator",
    "HttpDocumentStore",
    "InMemoryDocumentStore",
    "InvalidQueryError",
    "LiveLocationHub",
    "LocationSample",
    "MalformedSampleError",
    "Position",
    "PositionSource",
    "PositionUnknownError",
    "ProviderError",
    "ProviderTimeoutError",
    "Route",
    "RouteLine",
    "RouteMatcher",
    "RouteOptimizer",
    "RouteSummary",
    "RouteVariant",
    "SearchResult",
    "Stop",
    "StopIndex",
    "StoreUnavailableError",
    "SubscriptionState",
    "Vehicle",
    "VehicleNotFoundError",
    "VehicleStatus",
    "Waypoint",
    "sort_results",
]
