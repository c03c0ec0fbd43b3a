from __future__ import annotations

import pytest

from pyfleet.matching import RouteMatcher
from pyfleet.models import Coordinate, Stop
from pyfleet.stops import StopIndex

ROUTE = ["Depot", "Central Station", "Market", "Campus"]


@pytest.mark.parametrize(
    ("source", "dest"),
    [
        ("Central Station", "Campus"),
        ("Campus", "Central Station"),
        ("  market ", "DEPOT"),
    ],
)
def test_permissive_matching_ignores_order(source: str, dest: str) -> None:
    assert RouteMatcher().matches(ROUTE, source, dest)


def test_missing_stop_does_not_match() -> None:
    matcher = RouteMatcher()
    assert not matcher.matches(ROUTE, "Central Station", "Harbour")
    assert not matcher.matches([], "Central Station", "Campus")
    assert not matcher.matches(ROUTE, "", "Campus")


def test_strict_order_requires_source_first() -> None:
    matcher = RouteMatcher(strict_order=True)
    assert matcher.matches(ROUTE, "Central Station", "Campus")
    assert not matcher.matches(ROUTE, "Campus", "Central Station")


def test_strict_order_with_repeated_stops() -> None:
    loop = ["Depot", "Campus", "Market", "Depot"]
    matcher = RouteMatcher(strict_order=True)
    assert matcher.matches(loop, "Campus", "Depot")
    assert matcher.matches(loop, "Depot", "Market")
    assert not matcher.matches(loop, "Market", "Campus")


def test_coordinates_for_skips_unresolved_stops_and_keeps_order() -> None:
    index = StopIndex(
        [
            Stop(name="Depot", lat=1.0, lng=1.0),
            Stop(name="Central Station"),
            Stop(name="Campus", lat=3.0, lng=3.0),
        ]
    )
    coords = RouteMatcher().coordinates_for(ROUTE, index)
    assert coords == [Coordinate(lat=1.0, lng=1.0), Coordinate(lat=3.0, lng=3.0)]


def test_coordinates_for_route_without_known_stops_is_empty() -> None:
    assert RouteMatcher().coordinates_for(ROUTE, StopIndex()) == []
