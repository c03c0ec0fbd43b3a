"""Live ETA and delay estimation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, time, timedelta

from pyfleet._constants import DEFAULT_PROVIDER_TIMEOUT
from pyfleet._geo import deadline_for, equirectangular_km, fallback_minutes, resolve_zone
from pyfleet._providers import RoutingProvider
from pyfleet.exceptions import ProviderError
from pyfleet.models.eta import EtaResult, EtaSource
from pyfleet.models.geo import Coordinate

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EtaEstimator:
    """Distance, duration and delay of a vehicle towards a destination.

    The routing provider is asked first. Any provider failure (error,
    timeout, unusable summary, or no provider at all) falls back to the
    equirectangular estimate, so :meth:`estimate` never raises.

    Parameters
    ----------
    provider : RoutingProvider or None
        Road routing service; ``None`` always uses the fallback.
    target_arrival : datetime.time
        Daily deadline. A vehicle is delayed when its arrival is strictly
        after it.
    time_zone : str
        IANA zone the deadline is expressed in.
    timeout : float
        Seconds allowed for the provider call.
    clock : callable
        Returns the current timezone-aware time.
    """

    def __init__(
        self,
        provider: RoutingProvider | None = None,
        *,
        target_arrival: time = time(7, 50),
        time_zone: str = "UTC",
        timeout: float = DEFAULT_PROVIDER_TIMEOUT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._provider = provider
        self._target_arrival = target_arrival
        self._zone = resolve_zone(time_zone)
        self._timeout = timeout
        self._clock = clock

    def deadline(self, now: datetime | None = None) -> datetime:
        return deadline_for(now or self._clock(), self._target_arrival, self._zone)

    def is_delayed(self, arrival: datetime, now: datetime | None = None) -> bool:
        return arrival > self.deadline(now)

    async def estimate(self, origin: Coordinate, destination: Coordinate) -> EtaResult:
        now = self._clock()
        if self._provider is not None:
            try:
                summary = await asyncio.wait_for(self._provider.route(origin, destination), self._timeout)
            except TimeoutError:
                _logger.warning("Routing provider timed out after %ss, using fallback ETA", self._timeout)
            except (ProviderError, ValueError) as exc:
                _logger.warning("Routing provider failed, using fallback ETA: %s", exc)
            except Exception:
                _logger.warning("Routing provider raised unexpectedly, using fallback ETA", exc_info=True)
            else:
                return self._result(
                    now,
                    distance_km=summary.distance_meters / 1000.0,
                    duration_min=summary.duration_seconds / 60.0,
                    source=EtaSource.PROVIDER,
                )
        return self.fallback(origin, destination, now=now)

    def fallback(self, origin: Coordinate, destination: Coordinate, *, now: datetime | None = None) -> EtaResult:
        """Straight-line estimate at a fixed 2 minutes per km."""
        distance_km = equirectangular_km(origin, destination)
        return self._result(
            now or self._clock(),
            distance_km=distance_km,
            duration_min=fallback_minutes(distance_km),
            source=EtaSource.FALLBACK,
        )

    def _result(self, now: datetime, *, distance_km: float, duration_min: float, source: EtaSource) -> EtaResult:
        arrival = now + timedelta(minutes=duration_min)
        return EtaResult(
            distance_km=distance_km,
            duration_min=duration_min,
            arrival_time=arrival,
            delayed=self.is_delayed(arrival, now),
            source=source,
        )
