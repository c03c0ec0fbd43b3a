"""Live location hub.

Owns:
- one logical feed subscription per tracked vehicle
- the live-position cache (sole writer)
- waiters for callers that want the next position of a vehicle

All methods run on the event loop thread. Feed runtimes that receive
data on their own threads hand it over with ``loop.call_soon_threadsafe``
(see :class:`pyfleet._mqtt.MqttLocationFeed`).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from pyfleet._constants import DEFAULT_CHANNEL_PREFIX
from pyfleet.exceptions import FeedUnavailableError, MalformedSampleError
from pyfleet.ingestion.samples import build_sample, parse_feed_payload
from pyfleet.models.position import LocationSample, Position, PositionSource
from pyfleet.models.vehicle import Vehicle
from pyfleet.state.store import PositionCache

_logger = logging.getLogger(__name__)


class SubscriptionState(StrEnum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"


class LocationFeed(Protocol):
    """Structural interface of a push location feed.

    Production code uses :class:`pyfleet._mqtt.MqttLocationFeed`; tests
    pass lightweight doubles.
    """

    async def subscribe(self, channel: str) -> None: ...

    async def unsubscribe(self, channel: str) -> None: ...


@dataclass(slots=True)
class _Subscription:
    vehicle_id: str
    channel: str
    state: SubscriptionState = SubscriptionState.SUBSCRIBING
    connected: bool = True


def channel_for(vehicle_number: str, prefix: str = DEFAULT_CHANNEL_PREFIX) -> str:
    """Feed channel carrying samples for the vehicle labelled *vehicle_number*."""
    return f"{prefix}{str(vehicle_number).strip()}"


class LiveLocationHub:
    """Latest-known position per vehicle, fed by concurrent subscriptions.

    Usage::

        hub = LiveLocationHub(feed)
        await hub.subscribe("bus_no_12", "12")
        position = hub.current_position("bus_no_12")  # never suspends
    """

    def __init__(
        self,
        feed: LocationFeed | None = None,
        *,
        cache: PositionCache | None = None,
        channel_prefix: str = DEFAULT_CHANNEL_PREFIX,
        max_age: float | None = None,
        on_position: Callable[[str, Position], None] | None = None,
    ) -> None:
        self._feed = feed
        self._cache = cache if cache is not None else PositionCache()
        self._channel_prefix = channel_prefix
        self._max_age = max_age
        self._on_position = on_position
        self._subscriptions: dict[str, _Subscription] = {}
        self._channels: dict[str, str] = {}
        self._waiters: dict[str, list[asyncio.Future[Position | None]]] = {}

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    def attach_feed(self, feed: LocationFeed | None) -> None:
        """Use *feed* for subsequent subscribe/unsubscribe calls."""
        self._feed = feed

    def channel_for(self, vehicle_number: str) -> str:
        return channel_for(vehicle_number, self._channel_prefix)

    async def subscribe(self, vehicle_id: str, vehicle_number: str) -> None:
        """Start receiving samples for a vehicle.

        The subscription is ``SUBSCRIBING`` until the first sample or an
        explicit "no data" signal arrives. Subscribing twice is a no-op.

        Raises
        ------
        FeedUnavailableError
            The feed refused the subscription; the vehicle stays
            unsubscribed.
        ValueError
            Another vehicle already owns the channel.
        """
        if vehicle_id in self._subscriptions:
            return
        channel = self.channel_for(vehicle_number)
        owner = self._channels.get(channel)
        if owner is not None and owner != vehicle_id:
            raise ValueError(f"channel {channel} already used by vehicle {owner}")

        subscription = _Subscription(vehicle_id=vehicle_id, channel=channel)
        self._subscriptions[vehicle_id] = subscription
        self._channels[channel] = vehicle_id
        _logger.debug("Subscribing vehicle=%s channel=%s", vehicle_id, channel)

        feed = self._feed
        if feed is None:
            return
        try:
            await feed.subscribe(channel)
        except Exception as exc:
            self._release(subscription)
            if isinstance(exc, FeedUnavailableError):
                raise
            raise FeedUnavailableError(f"subscribe to {channel} failed: {exc}") from exc

        if self._subscriptions.get(vehicle_id) is not subscription:
            # Unsubscribed while the feed request was in flight.
            _logger.debug("Subscription to %s cancelled before it completed", channel)
            if channel not in self._channels:
                await feed.unsubscribe(channel)

    async def unsubscribe(self, vehicle_id: str) -> None:
        """Stop tracking a vehicle. Idempotent.

        The cached position is dropped as well, so a later subscription
        starts from Unknown until a new sample arrives. Feeds that queue
        messages across threads must drop the ones received before this
        call (see :meth:`pyfleet._mqtt.MqttLocationFeed.subscribe`).
        """
        subscription = self._subscriptions.get(vehicle_id)
        self._cache.discard(vehicle_id)
        self._release_waiters(vehicle_id)
        if subscription is None:
            return
        self._release(subscription)
        _logger.debug("Unsubscribed vehicle=%s channel=%s", vehicle_id, subscription.channel)

        if self._feed is None:
            return
        try:
            await self._feed.unsubscribe(subscription.channel)
        except Exception:
            # Local state is already released; the feed drops the channel on reconnect.
            _logger.warning("Feed unsubscribe failed channel=%s", subscription.channel, exc_info=True)

    def _release(self, subscription: _Subscription) -> None:
        if self._subscriptions.get(subscription.vehicle_id) is subscription:
            self._subscriptions.pop(subscription.vehicle_id, None)
        if self._channels.get(subscription.channel) == subscription.vehicle_id:
            self._channels.pop(subscription.channel, None)

    async def close(self) -> None:
        """Unsubscribe every vehicle."""
        for vehicle_id in list(self._subscriptions):
            await self.unsubscribe(vehicle_id)

    def state(self, vehicle_id: str) -> SubscriptionState:
        subscription = self._subscriptions.get(vehicle_id)
        if subscription is None:
            return SubscriptionState.UNSUBSCRIBED
        return subscription.state

    def is_connected(self, vehicle_id: str) -> bool:
        subscription = self._subscriptions.get(vehicle_id)
        return subscription is not None and subscription.connected

    def subscribed(self) -> list[str]:
        return list(self._subscriptions)

    def channels(self) -> list[str]:
        """Channels with an active subscription (used by feeds to resubscribe)."""
        return list(self._channels)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_position(self, vehicle_id: str, *, max_age: float | None = None) -> Position | None:
        """Last cached position, or ``None`` if nothing usable is known.

        *max_age* (seconds) overrides the hub default; entries older than
        the threshold read as unknown but are kept in the cache.
        """
        effective_max_age = max_age if max_age is not None else self._max_age
        return self._cache.get(vehicle_id, max_age=effective_max_age)

    def resolve_position(self, vehicle: Vehicle, *, max_age: float | None = None) -> Position | None:
        """Live position if the feed ever reported one, else the admin record's."""
        live = self.current_position(vehicle.id, max_age=max_age)
        if live is not None:
            return live
        fix = vehicle.last_known_location
        if fix is None:
            return None
        return Position(
            lat=fix.lat,
            lng=fix.lng,
            timestamp=fix.timestamp,
            received_at=self._cache.clock(),
            source=PositionSource.STATIC,
        )

    def positions(self) -> dict[str, Position]:
        return self._cache.snapshot()

    async def wait_for_position(self, vehicle_id: str, timeout: float) -> Position | None:
        """Wait for the next accepted sample of a vehicle.

        Returns ``None`` on timeout or when the vehicle is unsubscribed
        while waiting.
        """
        if timeout <= 0:
            return None
        future: asyncio.Future[Position | None] = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(vehicle_id, []).append(future)
        try:
            return await asyncio.wait_for(future, timeout)
        except TimeoutError:
            return None
        finally:
            pending = self._waiters.get(vehicle_id)
            if pending is not None:
                remaining = [cand for cand in pending if cand is not future]
                if remaining:
                    self._waiters[vehicle_id] = remaining
                else:
                    self._waiters.pop(vehicle_id, None)

    def _release_waiters(self, vehicle_id: str) -> None:
        for waiter in self._waiters.pop(vehicle_id, []):
            if not waiter.done():
                waiter.set_result(None)

    # ------------------------------------------------------------------
    # Feed-side updates
    # ------------------------------------------------------------------

    def on_sample(self, vehicle_id: str, lat: Any, lng: Any, timestamp: Any = None) -> bool:
        """Record a sample, replacing the cached entry.

        Malformed samples are logged and dropped; the previously cached
        position stays. Returns whether the sample was accepted.
        """
        try:
            sample = build_sample(vehicle_id, lat, lng, timestamp)
        except MalformedSampleError as exc:
            _logger.warning("Dropping malformed sample vehicle=%s: %s", vehicle_id, exc)
            return False
        self._accept(sample)
        return True

    def on_no_data(self, vehicle_id: str) -> None:
        """The feed confirmed the subscription but has nothing to report yet."""
        subscription = self._subscriptions.get(vehicle_id)
        if subscription is not None and subscription.state == SubscriptionState.SUBSCRIBING:
            subscription.state = SubscriptionState.ACTIVE

    def on_disconnect(self, vehicle_id: str) -> None:
        """The feed lost this vehicle. The cached position is kept (stale but last known)."""
        subscription = self._subscriptions.get(vehicle_id)
        if subscription is not None and subscription.connected:
            subscription.connected = False
            _logger.debug("Feed disconnected vehicle=%s", vehicle_id)

    def handle_feed_disconnect(self) -> None:
        """The whole feed connection dropped."""
        for vehicle_id in list(self._subscriptions):
            self.on_disconnect(vehicle_id)

    def handle_feed_message(self, channel: str, payload: Any) -> bool:
        """Route a decoded feed message to its vehicle.

        ``None`` payloads are the feed's "no data" signal. Messages on
        channels nobody subscribed to are ignored.
        """
        vehicle_id = self._channels.get(channel)
        if vehicle_id is None:
            _logger.debug("Ignoring message on unsubscribed channel=%s", channel)
            return False
        if payload is None:
            self.on_no_data(vehicle_id)
            return False
        try:
            sample = parse_feed_payload(vehicle_id, payload)
        except MalformedSampleError as exc:
            _logger.warning("Dropping malformed sample vehicle=%s: %s", vehicle_id, exc)
            return False
        self._accept(sample)
        return True

    def _accept(self, sample: LocationSample) -> None:
        position = self._cache.put(sample.vehicle_id, sample)
        subscription = self._subscriptions.get(sample.vehicle_id)
        if subscription is not None:
            subscription.state = SubscriptionState.ACTIVE
            subscription.connected = True

        for waiter in self._waiters.pop(sample.vehicle_id, []):
            if not waiter.done():
                waiter.set_result(position)

        if self._on_position is not None:
            try:
                self._on_position(sample.vehicle_id, position)
            except Exception:
                _logger.debug("on_position callback failed", exc_info=True)
