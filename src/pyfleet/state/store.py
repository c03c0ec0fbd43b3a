"""In-memory live-position cache.

Entries are frozen :class:`~pyfleet.models.position.Position` objects
replaced wholesale under their vehicle key, so a reader either sees the
previous position or the new one, never a mix of both.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from pyfleet.models.position import LocationFix, Position, PositionSource


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PositionCache:
    """Latest position per vehicle, last-received-wins.

    Arrival order is the only ordering: a sample carrying an older device
    timestamp still replaces a newer one if it arrives later.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._positions: dict[str, Position] = {}

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    def put(self, vehicle_id: str, fix: LocationFix, *, source: PositionSource = PositionSource.FEED) -> Position:
        """Replace the cached entry for *vehicle_id*."""
        position = Position(
            lat=fix.lat,
            lng=fix.lng,
            timestamp=fix.timestamp,
            received_at=self._clock(),
            source=source,
        )
        self._positions[vehicle_id] = position
        return position

    def get(self, vehicle_id: str, *, max_age: float | None = None) -> Position | None:
        position = self._positions.get(vehicle_id)
        if position is None:
            return None
        if max_age is not None and position.age_seconds(self._clock()) > max_age:
            return None
        return position

    def discard(self, vehicle_id: str) -> None:
        self._positions.pop(vehicle_id, None)

    def snapshot(self) -> dict[str, Position]:
        return dict(self._positions)

    def __contains__(self, vehicle_id: object) -> bool:
        return vehicle_id in self._positions

    def __len__(self) -> int:
        return len(self._positions)
