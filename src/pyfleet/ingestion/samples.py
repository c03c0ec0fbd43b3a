"""Location sample parsing.

Feed payloads arrive as loosely typed JSON objects. This module turns
them into :class:`~pyfleet.models.position.LocationSample` objects or
raises :class:`~pyfleet.exceptions.MalformedSampleError`. It never
touches the position cache.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from pyfleet.exceptions import MalformedSampleError
from pyfleet.ingestion.normalize import normalize_timestamp_seconds, valid_lat, valid_lng
from pyfleet.models.position import LocationSample

_LAT_KEYS = ("latitude", "lat")
_LNG_KEYS = ("longitude", "lng", "lon")
_TS_KEYS = ("timestamp", "time", "ts")


def _first(payload: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def build_sample(vehicle_id: str, lat: Any, lng: Any, timestamp: Any = None) -> LocationSample:
    """Validate one ``(lat, lng, timestamp)`` report.

    Raises
    ------
    MalformedSampleError
        When either coordinate is missing, non-numeric, non-finite or
        out of range.
    """
    parsed_lat = valid_lat(lat)
    parsed_lng = valid_lng(lng)
    if parsed_lat is None or parsed_lng is None:
        raise MalformedSampleError(
            f"unusable coordinates lat={lat!r} lng={lng!r}",
            vehicle_id=vehicle_id,
        )
    try:
        return LocationSample(
            vehicle_id=vehicle_id,
            lat=parsed_lat,
            lng=parsed_lng,
            timestamp=normalize_timestamp_seconds(timestamp),
        )
    except ValidationError as exc:
        raise MalformedSampleError(str(exc), vehicle_id=vehicle_id) from exc


def parse_feed_payload(vehicle_id: str, payload: Any) -> LocationSample:
    """Parse a feed message body.

    Accepts ``{"latitude", "longitude", "timestamp"}`` and the short
    ``lat``/``lng`` spellings, optionally nested under ``"location"``.
    """
    if not isinstance(payload, Mapping):
        raise MalformedSampleError(
            f"expected an object, got {type(payload).__name__}",
            vehicle_id=vehicle_id,
        )
    nested = payload.get("location")
    body: Mapping[str, Any] = nested if isinstance(nested, Mapping) else payload
    timestamp = _first(body, _TS_KEYS)
    if timestamp is None:
        timestamp = _first(payload, _TS_KEYS)
    return build_sample(vehicle_id, _first(body, _LAT_KEYS), _first(body, _LNG_KEYS), timestamp)
