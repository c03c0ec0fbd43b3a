"""Internal MQTT location feed runtime."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import threading
from collections.abc import Callable
from typing import Any, cast

import paho.mqtt.client as mqtt

from pyfleet.config import FleetConfig
from pyfleet.exceptions import FeedUnavailableError

_NO_DATA_TOKENS = frozenset({"", "null"})


def decode_location_payload(payload: bytes) -> Any:
    """Decode a feed message body.

    Returns ``None`` for the feed's "no data" marker (empty body or JSON
    ``null``). Raises ``ValueError`` when the body is not JSON.
    """
    text = payload.decode("utf-8", errors="replace").strip()
    if text in _NO_DATA_TOKENS:
        return None
    return json.loads(text)


def _build_client_id() -> str:
    return f"pyfleet_{secrets.token_hex(6)}"


class MqttLocationFeed:
    """Threaded paho-mqtt runtime that hands location messages to an asyncio loop.

    One broker connection carries every per-vehicle channel. Channels are
    remembered locally and re-subscribed whenever the connection comes
    back, so the hub never has to replay its subscriptions.
    """

    def __init__(
        self,
        config: FleetConfig,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[str, Any], None],
        on_connection_lost: Callable[[], None] | None = None,
        client_id: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._loop = loop
        self._on_message = on_message
        self._on_connection_lost = on_connection_lost
        self._client_id = client_id or _build_client_id()
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        # channel -> generation of the subscription that owns it
        self._channels: dict[str, int] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def channels(self) -> list[str]:
        with self._lock:
            return sorted(self._channels)

    def start(self) -> None:
        """Connect to the broker and start the network thread."""
        self.stop()
        config = self._config
        self._logger.debug(
            "Starting MQTT location feed %s:%s tls=%s client_id=%s",
            config.mqtt_host,
            config.mqtt_port,
            config.mqtt_tls,
            self._client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if config.mqtt_username:
            client.username_pw_set(config.mqtt_username, config.mqtt_password)
        if config.mqtt_tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            channels = self.channels
            self._logger.debug("MQTT connected reason=%s resubscribing=%d", reason_code, len(channels))
            for channel in channels:
                c.subscribe(channel, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._handle_publish(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if not self._running:
                return
            self._logger.debug("MQTT disconnected: %s", reason_code)
            if self._on_connection_lost is not None:
                try:
                    self._loop.call_soon_threadsafe(self._on_connection_lost)
                except RuntimeError:
                    self._logger.debug("MQTT disconnect after loop close", exc_info=True)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(config.mqtt_host, config.mqtt_port, keepalive=config.mqtt_keepalive)
        except OSError as exc:
            raise FeedUnavailableError(f"MQTT connect to {config.mqtt_host}:{config.mqtt_port} failed: {exc}") from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT location feed running")

    def _handle_publish(self, topic: str, raw: bytes) -> None:
        """Network-thread side of a PUBLISH: decode and queue it on the loop."""
        with self._lock:
            generation = self._channels.get(topic)
        if generation is None:
            self._logger.debug("Dropping message on unknown topic=%s", topic)
            return
        try:
            payload = decode_location_payload(raw)
        except ValueError:
            self._logger.warning("Dropping undecodable message topic=%s", topic)
            return
        self._logger.debug("Received PUBLISH topic=%s payload=%s", topic, payload)
        try:
            self._loop.call_soon_threadsafe(self._deliver, topic, generation, payload)
        except RuntimeError:
            # Loop already closed during shutdown.
            self._logger.debug("MQTT message after loop close", exc_info=True)

    def _deliver(self, topic: str, generation: int, payload: Any) -> None:
        with self._lock:
            current = self._channels.get(topic)
        if current != generation:
            # Queued under a subscription that has since been dropped or replaced.
            self._logger.debug("Dropping stale message topic=%s", topic)
            return
        self._on_message(topic, payload)

    def stop(self) -> None:
        """Disconnect and join the network thread. Remembered channels are kept."""
        client, self._client = self._client, None
        connected, self._running = self._running, False
        if client is None:
            return
        try:
            if connected:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT feed stopped channels=%d", len(self.channels))

    async def subscribe(self, channel: str) -> None:
        """Subscribe to *channel*, now if connected or on the next connect.

        Each new subscription of a channel gets a fresh generation. Messages
        still queued on the loop from an earlier generation are dropped.
        """
        client = self._client
        if client is None or not self._running:
            raise FeedUnavailableError("MQTT feed is not running")
        with self._lock:
            if channel not in self._channels:
                self._generation += 1
                self._channels[channel] = self._generation
        if not client.is_connected():
            self._logger.debug("MQTT not connected yet, deferring subscribe channel=%s", channel)
            return
        result, _mid = client.subscribe(channel, qos=0)
        if result != mqtt.MQTT_ERR_SUCCESS:
            with self._lock:
                self._channels.pop(channel, None)
            raise FeedUnavailableError(f"MQTT subscribe {channel} failed: {mqtt.error_string(result)}")

    async def unsubscribe(self, channel: str) -> None:
        with self._lock:
            known = channel in self._channels
            self._channels.pop(channel, None)
        client = self._client
        if not known or client is None or not client.is_connected():
            return
        result, _mid = client.unsubscribe(channel)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise FeedUnavailableError(f"MQTT unsubscribe {channel} failed: {mqtt.error_string(result)}")
