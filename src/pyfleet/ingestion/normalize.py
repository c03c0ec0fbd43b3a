"""Normalization helpers.

Lenient parsing of coordinates, timestamps and stop names.
"""

from __future__ import annotations

import math
from typing import Any

# Placeholders the admin store and field devices send for "not available".
_PLACEHOLDERS = frozenset({"", "--", "null", "none", "nan"})


def safe_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().lower() in _PLACEHOLDERS:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def valid_lat(value: Any) -> float | None:
    """Return *value* as a latitude, or ``None`` when unusable."""
    parsed = safe_float(value)
    if parsed is None or not -90.0 <= parsed <= 90.0:
        return None
    return parsed


def valid_lng(value: Any) -> float | None:
    """Return *value* as a longitude, or ``None`` when unusable."""
    parsed = safe_float(value)
    if parsed is None or not -180.0 <= parsed <= 180.0:
        return None
    return parsed


# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1e11


def normalize_timestamp_seconds(value: Any) -> float | None:
    """Normalize an epoch timestamp (seconds or milliseconds) to seconds."""
    ts = safe_float(value)
    if ts is None or ts < 0:
        return None
    if ts > _MS_THRESHOLD:
        ts /= 1000.0
    return ts


def normalize_stop_name(name: Any) -> str:
    """Lookup key for a stop name: trimmed and case-folded."""
    if name is None:
        return ""
    return str(name).strip().lower()
