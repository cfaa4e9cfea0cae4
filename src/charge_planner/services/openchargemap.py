from __future__ import annotations

import logging
import math
import time
from collections.abc import Mapping
from typing import Any

import httpx
from django.conf import settings

from charge_planner.exceptions import ErrorCode, StationDirectoryError, TripPlannerError
from charge_planner.services.cache import get_or_load, make_cache_key
from charge_planner.services.community_energy import infer_energy_source
from charge_planner.services.energy_tags import get_manual_energy_tags
from charge_planner.services.types import ChargingStation, Connector, EnergySource

logger = logging.getLogger(__name__)

DEFAULT_DISTANCE_KM = 8
MAX_DISTANCE_KM = 500
DEFAULT_MAX_RESULTS = 40
MAX_RESULTS = 100

ATTRIBUTION = "Charging data (c) OpenChargeMap contributors (CC BY 4.0)"


class OpenChargeMapClient:
    def __init__(self, manual_tags: Mapping[str, EnergySource] | None = None) -> None:
        self.base_url = settings.OCM_BASE_URL.rstrip("/")
        self.api_key = settings.OCM_API_KEY
        self.user_agent = settings.OCM_USER_AGENT
        self.timeout = settings.OCM_TIMEOUT_SECONDS
        self.retry_count = settings.OCM_RETRY_COUNT
        self.manual_tags = get_manual_energy_tags() if manual_tags is None else manual_tags

    def fetch_nearby_stations(
        self,
        latitude: float,
        longitude: float,
        distance_km: float = DEFAULT_DISTANCE_KM,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> list[ChargingStation]:
        """Stations around a point, nearest first.

        Identical queries (coordinates rounded to 3 decimals) are served from
        the charger cache.
        """
        params = self._build_params(latitude, longitude, distance_km, max_results)
        cache_key = make_cache_key(
            "chargers",
            f"{latitude:.3f}:{longitude:.3f}:{params['distance']}:{params['maxresults']}",
        )
        payload = get_or_load(
            cache_key,
            lambda: [station.to_cache() for station in self._request_stations(params)],
            timeout=settings.CHARGER_CACHE_TTL_SECONDS,
        )
        return [ChargingStation.from_cache(item) for item in payload]

    def _request_stations(self, params: dict[str, str]) -> list[ChargingStation]:
        if not self.api_key:
            raise TripPlannerError(
                ErrorCode.MISSING_CREDENTIALS,
                "Open Charge Map API key is missing. Set OCM_API_KEY in your environment.",
            )

        headers = {
            "Accept": "application/json",
            "X-API-Key": self.api_key,
            "User-Agent": self.user_agent,
        }

        for attempt in range(self.retry_count + 1):
            try:
                response = httpx.get(
                    f"{self.base_url}/poi/", params=params, headers=headers, timeout=self.timeout
                )
                break
            except httpx.TransportError as exc:
                if attempt >= self.retry_count:
                    raise StationDirectoryError(
                        f"Open Charge Map request failed: {exc}"
                    ) from exc
                time.sleep(0.3 * (attempt + 1))

        if response.is_error:
            raise StationDirectoryError(
                "Open Charge Map request failed: "
                f"{response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise StationDirectoryError("Open Charge Map returned invalid JSON") from exc

        if not isinstance(payload, list):
            raise StationDirectoryError("Open Charge Map returned unexpected response format")

        stations = [
            station
            for station in (self._normalize_station(item) for item in payload)
            if station is not None
        ]
        logger.info(
            "Open Charge Map returned %d stations (%d usable) near %s,%s",
            len(payload),
            len(stations),
            params["latitude"],
            params["longitude"],
        )
        return sorted(stations, key=lambda station: station.distance_km)

    @staticmethod
    def _build_params(
        latitude: float, longitude: float, distance_km: float, max_results: int
    ) -> dict[str, str]:
        return {
            "output": "json",
            "latitude": str(latitude),
            "longitude": str(longitude),
            "distance": str(_clamp(distance_km, DEFAULT_DISTANCE_KM, MAX_DISTANCE_KM)),
            "distanceunit": "KM",
            "maxresults": str(_clamp(max_results, DEFAULT_MAX_RESULTS, MAX_RESULTS)),
            "compact": "true",
            "verbose": "false",
        }

    def _normalize_station(self, poi: Any) -> ChargingStation | None:
        if not isinstance(poi, dict):
            return None
        info = poi.get("AddressInfo")
        station_id = poi.get("ID")
        if not isinstance(info, dict) or station_id is None:
            return None
        latitude = info.get("Latitude")
        longitude = info.get("Longitude")
        if latitude is None or longitude is None:
            return None

        connectors = tuple(
            Connector(
                type=(connection.get("ConnectionType") or {}).get("Title")
                or "Unknown connector",
                power_kw=float(connection.get("PowerKW") or 0.0),
            )
            for connection in poi.get("Connections") or []
        )
        operator_name = ((poi.get("OperatorInfo") or {}).get("Title") or "").strip()

        return ChargingStation(
            id=str(station_id),
            name=(info.get("Title") or "").strip() or "Unnamed Charging Station",
            address=_build_address(info),
            latitude=float(latitude),
            longitude=float(longitude),
            connectors=connectors,
            max_power_kw=max((c.power_kw for c in connectors), default=0.0),
            energy_source=self._energy_source(poi, info),
            distance_km=round(float(info.get("Distance") or 0.0), 2),
            operator_name=operator_name or None,
        )

    def _energy_source(self, poi: dict[str, Any], info: dict[str, Any]) -> EnergySource:
        manual = self.manual_tags.get(str(poi["ID"]))
        if manual:
            return manual
        operator = (poi.get("OperatorInfo") or {}).get("Title") or ""
        return infer_energy_source(
            f"{info.get('Title') or ''} {operator} {poi.get('GeneralComments') or ''}"
        )


def _clamp(value: float, default: int, upper: int) -> int:
    if value is None or not math.isfinite(value):
        return default
    return min(max(1, math.floor(value)), upper)


def _build_address(info: dict[str, Any]) -> str:
    fields = [
        info.get("AddressLine1"),
        info.get("Town"),
        info.get("StateOrProvince"),
        info.get("Postcode"),
        (info.get("Country") or {}).get("Title"),
    ]
    present = [str(value) for value in fields if value]
    return ", ".join(present) if present else "Address unavailable"
