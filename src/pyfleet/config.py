"""Client configuration for pyfleet."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from datetime import time
from typing import Any

from pyfleet._constants import (
    DEFAULT_CHANNEL_PREFIX,
    DEFAULT_PROVIDER_TIMEOUT,
    ORS_BASE_URL,
    ORS_PROFILE,
    STORE_BASE_URL,
)
from pyfleet.exceptions import FleetConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_deadline(value: str) -> time:
    """Parse an ``HH:MM`` deadline (24-hour clock)."""
    text = value.strip()
    hour_text, sep, minute_text = text.partition(":")
    if not sep or not hour_text.isdigit() or not minute_text.isdigit():
        raise FleetConfigError(f"deadline must look like HH:MM, got {value!r}")
    hour, minute = int(hour_text), int(minute_text)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise FleetConfigError(f"deadline out of range: {value!r}")
    return time(hour, minute)


def parse_lat_lng(value: str) -> tuple[float, float]:
    """Parse a ``lat,lng`` pair."""
    lat_text, sep, lng_text = value.partition(",")
    if not sep:
        raise FleetConfigError(f"expected 'lat,lng', got {value!r}")
    try:
        lat, lng = float(lat_text), float(lng_text)
    except ValueError as exc:
        raise FleetConfigError(f"expected 'lat,lng', got {value!r}") from exc
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        raise FleetConfigError(f"coordinate out of range: {value!r}")
    return lat, lng


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise FleetConfigError(f"{key} must be a {cast.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class FleetConfig:
    """Client configuration.

    Parameters
    ----------
    routing_api_key : str or None
        OpenRouteService API credential. Without it every provider call
        fails fast and the local fallbacks are used.
    routing_base_url : str
        Routing provider base URL.
    routing_profile : str
        ORS routing profile (e.g. ``"driving-car"``).
    store_base_url : str
        Base URL of the admin document store REST API.
    provider_timeout : float
        Seconds allowed for every external call (store, routing,
        optimization) before it resolves to a typed failure.
    target_arrival : datetime.time
        Daily arrival deadline used for the ``delayed`` flag.
    time_zone : str
        IANA time zone the deadline is expressed in.
    destination : tuple of float or None
        ``(lat, lng)`` of the fixed destination used by
        :meth:`pyfleet.FleetClient.estimate_eta`.
    strict_stop_order : bool
        Require the source stop to precede the destination stop on a
        route. Off by default (any route containing both stops matches).
    position_max_age : float or None
        Default staleness threshold in seconds for live positions.
        ``None`` keeps cached positions forever.
    mqtt_enabled : bool
        Connect the push location feed on client start.
    mqtt_host, mqtt_port, mqtt_tls, mqtt_username, mqtt_password
        Broker connection details.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    channel_prefix : str
        Per-vehicle channel prefix; the vehicle number is appended.
    """

    routing_api_key: str | None = None
    routing_base_url: str = ORS_BASE_URL
    routing_profile: str = ORS_PROFILE
    store_base_url: str = STORE_BASE_URL
    provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT
    target_arrival: time = time(7, 50)
    time_zone: str = "UTC"
    destination: tuple[float, float] | None = None
    strict_stop_order: bool = False
    position_max_age: float | None = None
    mqtt_enabled: bool = True
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_tls: bool = False
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_keepalive: int = 120
    channel_prefix: str = DEFAULT_CHANNEL_PREFIX

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetConfig:
        """Create configuration from ``FLEET_*`` environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        FleetConfigError
            If a variable cannot be parsed.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "FLEET_ROUTING_API_KEY": "routing_api_key",
            "FLEET_ROUTING_BASE_URL": "routing_base_url",
            "FLEET_ROUTING_PROFILE": "routing_profile",
            "FLEET_STORE_BASE_URL": "store_base_url",
            "FLEET_TIME_ZONE": "time_zone",
            "FLEET_MQTT_HOST": "mqtt_host",
            "FLEET_MQTT_USERNAME": "mqtt_username",
            "FLEET_MQTT_PASSWORD": "mqtt_password",
            "FLEET_CHANNEL_PREFIX": "channel_prefix",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        timeout = _env_number(env, "FLEET_PROVIDER_TIMEOUT", float)
        if timeout is not None:
            config_kwargs["provider_timeout"] = timeout

        max_age = _env_number(env, "FLEET_POSITION_MAX_AGE", float)
        if max_age is not None:
            config_kwargs["position_max_age"] = max_age if max_age > 0 else None

        port = _env_number(env, "FLEET_MQTT_PORT", int)
        if port is not None:
            config_kwargs["mqtt_port"] = port

        keepalive = _env_number(env, "FLEET_MQTT_KEEPALIVE", int)
        if keepalive is not None:
            config_kwargs["mqtt_keepalive"] = keepalive

        deadline = env.get("FLEET_TARGET_ARRIVAL")
        if deadline is not None:
            config_kwargs["target_arrival"] = parse_deadline(deadline)

        destination = env.get("FLEET_DESTINATION")
        if destination is not None:
            config_kwargs["destination"] = parse_lat_lng(destination)

        config_kwargs["strict_stop_order"] = _env_bool(env.get("FLEET_STRICT_STOP_ORDER"), False)
        config_kwargs["mqtt_enabled"] = _env_bool(env.get("FLEET_MQTT_ENABLED"), True)
        config_kwargs["mqtt_tls"] = _env_bool(env.get("FLEET_MQTT_TLS"), False)

        # Strings are accepted for the parsed fields so callers can pass raw values.
        target_override = overrides.get("target_arrival")
        if isinstance(target_override, str):
            overrides["target_arrival"] = parse_deadline(target_override)
        destination_override = overrides.get("destination")
        if isinstance(destination_override, str):
            overrides["destination"] = parse_lat_lng(destination_override)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
