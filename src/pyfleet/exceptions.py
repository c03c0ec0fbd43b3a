"""Custom exception hierarchy for pyfleet."""

from __future__ import annotations


class FleetError(Exception):
    """Base exception for all pyfleet errors."""


class FleetConfigError(FleetError):
    """Invalid or missing configuration."""


class StoreUnavailableError(FleetError):
    """The document store could not be reached or returned garbage.

    Surfaced to callers as a failed query, never retried inside the core.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class FeedUnavailableError(FleetError):
    """The push location feed rejected a subscribe/unsubscribe request."""


class ProviderError(FleetError):
    """Routing or optimization provider failure (network, non-200, bad body)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ProviderTimeoutError(ProviderError):
    """Provider call exceeded its timeout."""


class MalformedSampleError(FleetError):
    """A location sample without usable coordinates.

    Raised by sample parsing; the hub drops the sample and keeps the
    previously cached position.
    """

    def __init__(self, message: str, *, vehicle_id: str = "") -> None:
        self.vehicle_id = vehicle_id
        super().__init__(message)


class InvalidQueryError(FleetError, ValueError):
    """User-facing validation error raised before any I/O happens."""


class VehicleNotFoundError(FleetError):
    """No vehicle with the requested id exists in the document store."""


class PositionUnknownError(FleetError):
    """Neither the live feed nor the admin record has a position for a vehicle."""
