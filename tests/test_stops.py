from __future__ import annotations

import pytest

from pyfleet.models import Coordinate, Stop
from pyfleet.stops import StopIndex


def _index() -> StopIndex:
    return StopIndex(
        [
            Stop(name="Central Station", lat=12.90, lng=80.10),
            Stop(name="Campus", lat=12.75, lng=80.20),
            Stop(name="Market"),
        ]
    )


@pytest.mark.parametrize("query", ["Central Station", "central station", "  CENTRAL STATION  ", "cEnTrAl StAtIoN\t"])
def test_lookup_ignores_case_and_surrounding_whitespace(query: str) -> None:
    stop = _index().lookup(query)
    assert stop is not None
    assert stop.name == "Central Station"


def test_lookup_unknown_returns_none() -> None:
    assert _index().lookup("Harbour") is None
    assert _index().lookup("") is None


def test_stop_without_coordinates_is_found_but_has_no_coordinate() -> None:
    index = _index()
    assert index.lookup("market") is not None
    assert index.coordinate("market") is None
    assert index.coordinate("campus") == Coordinate(lat=12.75, lng=80.20)


def test_first_registration_wins_on_collision() -> None:
    index = StopIndex(
        [
            Stop(name="Campus", lat=1.0, lng=1.0),
            Stop(name=" campus ", lat=2.0, lng=2.0),
        ]
    )
    assert len(index) == 1
    assert index.coordinate("CAMPUS") == Coordinate(lat=1.0, lng=1.0)
    assert index.add(Stop(name="CAMPUS", lat=3.0, lng=3.0)) is False


def test_all_is_restartable_and_in_insertion_order() -> None:
    index = _index()
    view = index.all()
    first = [stop.name for stop in view]
    second = [stop.name for stop in view]
    assert first == second == ["Central Station", "Campus", "Market"]


def test_contains_uses_normalized_names() -> None:
    index = _index()
    assert "  market" in index
    assert "harbour" not in index
    assert 42 not in index
