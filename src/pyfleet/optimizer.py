"""Waypoint visiting-order optimization."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from pyfleet._constants import DEFAULT_PROVIDER_TIMEOUT, MAX_OPTIMIZATION_JOBS
from pyfleet._providers import RoutingProvider
from pyfleet.exceptions import ProviderError
from pyfleet.models.geo import Waypoint

_logger = logging.getLogger(__name__)


def _is_permutation(order: object, size: int) -> bool:
    if not isinstance(order, list) or not all(type(job_id) is int for job_id in order):
        return False
    return sorted(order) == list(range(1, size + 1))


class RouteOptimizer:
    """Reorders the interior waypoints of a route; first and last stay put.

    Whenever the provider cannot produce a usable order the input order
    is returned unchanged.
    """

    def __init__(self, provider: RoutingProvider | None = None, *, timeout: float = DEFAULT_PROVIDER_TIMEOUT) -> None:
        self._provider = provider
        self._timeout = timeout

    async def optimize(self, waypoints: Sequence[Waypoint]) -> list[Waypoint]:
        original = list(waypoints)
        if len(original) < 3 or self._provider is None:
            return original
        interior = original[1:-1]
        if len(interior) > MAX_OPTIMIZATION_JOBS:
            _logger.debug("Too many waypoints to optimize (%d), keeping order", len(original))
            return original

        # Job ids are 1-based positions within the interior.
        jobs = [(index, waypoint.coordinate) for index, waypoint in enumerate(interior, start=1)]
        try:
            order = await asyncio.wait_for(
                self._provider.optimize(original[0].coordinate, jobs, original[-1].coordinate),
                self._timeout,
            )
        except TimeoutError:
            _logger.warning("Route optimization timed out after %ss, keeping order", self._timeout)
            return original
        except (ProviderError, ValueError) as exc:
            _logger.warning("Route optimization failed, keeping order: %s", exc)
            return original
        except Exception:
            _logger.warning("Route optimization raised unexpectedly, keeping order", exc_info=True)
            return original

        if not _is_permutation(order, len(interior)):
            _logger.warning("Optimizer reply is not a permutation of %d jobs: %s", len(interior), order)
            return original
        return [original[0], *(interior[job_id - 1] for job_id in order), original[-1]]
