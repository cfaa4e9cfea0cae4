from __future__ import annotations

import math

from charge_planner.services.types import GeoPoint

EARTH_RADIUS_KM = 6371.0
MAX_ROUTE_SAMPLES = 120


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)

    dlat = lat2_rad - lat1_rad
    dlon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2.0) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def point_at_distance_along_route(route: list[GeoPoint], target_km: float) -> GeoPoint:
    """Return the point ``target_km`` along ``route``, interpolating inside a segment.

    Targets past the end clamp to the last point. An empty route yields
    ``GeoPoint(0, 0)``, so callers must not pass one.
    """
    if not route:
        return GeoPoint(latitude=0.0, longitude=0.0)
    if target_km <= 0:
        return route[0]

    covered = 0.0
    for seg_start, seg_end in zip(route, route[1:]):
        seg_km = haversine_km(seg_start, seg_end)
        if covered + seg_km >= target_km:
            ratio = 0.0 if seg_km == 0 else (target_km - covered) / seg_km
            return GeoPoint(
                latitude=seg_start.latitude + (seg_end.latitude - seg_start.latitude) * ratio,
                longitude=seg_start.longitude + (seg_end.longitude - seg_start.longitude) * ratio,
            )
        covered += seg_km

    return route[-1]


def min_distance_to_route_km(point: GeoPoint, route: list[GeoPoint]) -> float:
    """Approximate distance from ``point`` to ``route`` in km.

    Only every n-th vertex is measured (about ``MAX_ROUTE_SAMPLES`` of them),
    so the error is bounded by the spacing between sampled vertices. This is
    accurate enough for ranking chargers a few km off the road.
    """
    if not route:
        return 0.0

    step = max(1, len(route) // MAX_ROUTE_SAMPLES)
    nearest = min(haversine_km(point, route[index]) for index in range(0, len(route), step))
    return round(nearest, 2)
