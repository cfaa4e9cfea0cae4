from __future__ import annotations

import pytest

from charge_planner.services.geo import (
    haversine_km,
    min_distance_to_route_km,
    point_at_distance_along_route,
)
from charge_planner.services.types import GeoPoint

BENGALURU = GeoPoint(latitude=12.9716, longitude=77.5946)
CHENNAI = GeoPoint(latitude=13.0827, longitude=80.2707)


def _equator_route(points: int, step_degrees: float = 0.1) -> list[GeoPoint]:
    return [GeoPoint(latitude=0.0, longitude=index * step_degrees) for index in range(points)]


def test_haversine_is_zero_for_same_point_and_symmetric() -> None:
    assert haversine_km(BENGALURU, BENGALURU) == 0
    assert haversine_km(BENGALURU, CHENNAI) == pytest.approx(haversine_km(CHENNAI, BENGALURU))


def test_haversine_one_degree_of_latitude() -> None:
    distance = haversine_km(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0))

    assert distance == pytest.approx(111.195, rel=1e-4)


def test_haversine_between_cities() -> None:
    assert haversine_km(BENGALURU, CHENNAI) == pytest.approx(290.2, abs=1.0)


def test_point_at_distance_clamps_to_route_ends() -> None:
    route = _equator_route(5)

    assert point_at_distance_along_route(route, 0) == route[0]
    assert point_at_distance_along_route(route, -10) == route[0]
    assert point_at_distance_along_route(route, 10_000) == route[-1]


def test_point_at_distance_interpolates_inside_segment() -> None:
    route = _equator_route(3)
    half_segment = haversine_km(route[0], route[1]) / 2

    point = point_at_distance_along_route(route, half_segment)

    assert point.latitude == pytest.approx(0.0)
    assert point.longitude == pytest.approx(0.05)


def test_point_at_distance_on_empty_route_returns_origin() -> None:
    assert point_at_distance_along_route([], 50) == GeoPoint(0.0, 0.0)


def test_min_distance_to_route() -> None:
    route = _equator_route(11)

    assert min_distance_to_route_km(GeoPoint(0.0, 0.5), route) == 0
    assert min_distance_to_route_km(GeoPoint(1.0, 0.5), route) == 111.19
    assert min_distance_to_route_km(GeoPoint(1.0, 0.5), []) == 0


def test_min_distance_samples_long_routes() -> None:
    route = _equator_route(1200, step_degrees=0.001)
    # Stride is 10, so vertex 5 is skipped and the nearest sampled vertex is 0 or 10.
    off_sample = GeoPoint(0.0, 0.005)

    distance = min_distance_to_route_km(off_sample, route)

    assert distance == pytest.approx(0.56, abs=0.01)
