from __future__ import annotations

import logging
import time
from typing import Any

import httpx
from django.conf import settings

from charge_planner.exceptions import ErrorCode, TripPlannerError
from charge_planner.services.cache import get_or_load, make_cache_key
from charge_planner.services.types import GeoPoint, RouteData

logger = logging.getLogger(__name__)

METERS_TO_KM = 0.001


class OpenRouteServiceClient:
    def __init__(self) -> None:
        self.geocode_url = settings.ORS_GEOCODE_URL
        self.directions_url = settings.ORS_DIRECTIONS_URL
        self.api_key = settings.ORS_API_KEY
        self.timeout = settings.ORS_TIMEOUT_SECONDS
        self.retry_count = settings.ORS_RETRY_COUNT

    def geocode(self, place_name: str) -> GeoPoint:
        query = place_name.strip()
        if not query:
            raise TripPlannerError(
                ErrorCode.INVALID_LOCATION, "Please enter both start and destination locations."
            )

        cache_key = make_cache_key("geocode", query.lower())
        payload = get_or_load(
            cache_key,
            lambda: self._request_geocode(query),
            timeout=settings.GEOCODE_CACHE_TTL_SECONDS,
        )
        return GeoPoint(latitude=payload["latitude"], longitude=payload["longitude"])

    def fetch_route(self, start: GeoPoint, destination: GeoPoint) -> RouteData:
        cache_key = make_cache_key(
            "route",
            f"{start.latitude:.5f},{start.longitude:.5f}"
            f"->{destination.latitude:.5f},{destination.longitude:.5f}",
        )
        payload = get_or_load(
            cache_key,
            lambda: self._request_route(start, destination),
            timeout=settings.ROUTE_CACHE_TTL_SECONDS,
        )
        return RouteData(
            geometry=[GeoPoint(latitude=lat, longitude=lon) for lon, lat in payload["geometry"]],
            distance_km=payload["distance_km"],
        )

    def _request_geocode(self, query: str) -> dict[str, float]:
        self._require_api_key()
        payload = self._send(
            "GET",
            self.geocode_url,
            params={"api_key": self.api_key, "text": query, "size": 1},
            headers={"Accept": "application/json"},
        )
        coordinate = (_first_feature(payload).get("geometry") or {}).get("coordinates")
        if not coordinate or len(coordinate) < 2:
            raise TripPlannerError(
                ErrorCode.INVALID_LOCATION,
                f'Could not find coordinates for "{query}". Try a more specific city name.',
            )

        longitude, latitude = float(coordinate[0]), float(coordinate[1])
        logger.debug("Geocoded %r to %.5f,%.5f", query, latitude, longitude)
        return {"latitude": latitude, "longitude": longitude}

    def _request_route(self, start: GeoPoint, destination: GeoPoint) -> dict[str, Any]:
        self._require_api_key()
        body = {
            "coordinates": [
                [start.longitude, start.latitude],
                [destination.longitude, destination.latitude],
            ]
        }
        payload = self._send(
            "POST",
            self.directions_url,
            json=body,
            headers={"Authorization": self.api_key, "Content-Type": "application/json"},
        )

        feature = _first_feature(payload)
        geometry = (feature.get("geometry") or {}).get("coordinates") or []
        segments = (feature.get("properties") or {}).get("segments") or [{}]
        distance_meters = segments[0].get("distance")
        if len(geometry) < 2 or not distance_meters:
            raise TripPlannerError(
                ErrorCode.ROUTE_NOT_FOUND, "OpenRouteService returned an invalid route payload."
            )

        distance_km = round(float(distance_meters) * METERS_TO_KM, 2)
        logger.info("Fetched %.2f km route with %d points", distance_km, len(geometry))
        return {
            "geometry": [(float(point[0]), float(point[1])) for point in geometry],
            "distance_km": distance_km,
        }

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise TripPlannerError(
                ErrorCode.MISSING_CREDENTIALS,
                "OpenRouteService API key is missing. Set ORS_API_KEY in your environment.",
            )

    def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        request = httpx.get if method == "GET" else httpx.post
        for attempt in range(self.retry_count + 1):
            try:
                response = request(url, timeout=self.timeout, **kwargs)
                break
            except httpx.TransportError as exc:
                if attempt >= self.retry_count:
                    raise TripPlannerError(
                        ErrorCode.NETWORK_ERROR, f"Routing provider request failed: {exc}"
                    ) from exc
                time.sleep(0.3 * (attempt + 1))

        if response.is_error:
            logger.error(
                "OpenRouteService %s %s failed: %s %s",
                method,
                url,
                response.status_code,
                response.text,
            )
            raise TripPlannerError(
                ErrorCode.NETWORK_ERROR,
                "Routing provider request failed "
                f"({response.status_code} {response.reason_phrase}).",
            )

        try:
            return response.json()
        except ValueError as exc:
            raise TripPlannerError(
                ErrorCode.NETWORK_ERROR, "OpenRouteService returned invalid JSON"
            ) from exc


def _first_feature(payload: Any) -> dict[str, Any]:
    features = payload.get("features") if isinstance(payload, dict) else None
    if not features or not isinstance(features[0], dict):
        return {}
    return features[0]
