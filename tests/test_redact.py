from __future__ import annotations

from pyfleet._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "coordinates": [[80.2, 12.75]],
        "Authorization": "secret-key",
        "api_key": "secret-key",
        "password": "pw",
        "nested": {"token": "tok"},
    }

    redacted = redact_for_log(payload)
    assert redacted["Authorization"] == "<redacted>"
    assert redacted["api_key"] == "<redacted>"
    assert redacted["password"] == "<redacted>"
    assert redacted["nested"]["token"] == "<redacted>"
    assert redacted["coordinates"] == [[80.2, 12.75]]


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_truncates_long_coordinate_lists() -> None:
    coords = [[80.0 + i / 100, 12.0] for i in range(45)]
    redacted = redact_for_log({"coordinates": coords})
    assert len(redacted["coordinates"]) == 21
    assert redacted["coordinates"][-1] == "<+25 more>"
