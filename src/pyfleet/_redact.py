"""Helpers for safe debug logging.

Provider and store requests carry API credentials in headers and bodies.
``redact_for_log`` masks those before anything reaches a DEBUG log line.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SECRET_KEYS: frozenset[str] = frozenset(
    {"api_key", "apikey", "authorization", "password", "token", "access_token", "cookie", "private_key"}
)
_REDACTED = "<redacted>"

# Coordinate lists can hold hundreds of pairs; only the head is logged.
_MAX_ITEMS = 20
_MAX_DEPTH = 12


def _redact_mapping(value: Mapping[Any, Any], max_string: int, depth: int) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for raw_key, item in value.items():
        key = str(raw_key)
        out[key] = _REDACTED if key.lower() in _SECRET_KEYS else redact_for_log(item, max_string=max_string, _depth=depth)
    return out


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Copy of *value* with secrets masked, long strings cut and long lists shortened."""
    if _depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, Mapping):
        return _redact_mapping(value, max_string, _depth + 1)
    if isinstance(value, Sequence):
        head = [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value[:_MAX_ITEMS]]
        if len(value) > _MAX_ITEMS:
            head.append(f"<+{len(value) - _MAX_ITEMS} more>")
        return head
    return repr(value)
