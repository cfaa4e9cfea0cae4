from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from charge_planner.services.community_energy import calculate_charging_cost, detect_solar_stations
from charge_planner.services.geo import min_distance_to_route_km
from charge_planner.services.openchargemap import OpenChargeMapClient
from charge_planner.services.types import ChargingStation, GeoPoint, PlannedChargingStop

MIN_FAST_CHARGER_KW = 50.0
CHARGER_SEARCH_RADIUS_KM = 20
CHARGER_SEARCH_LIMIT = 40
SOLAR_DETOUR_WINDOW_KM = 2.0


@dataclass(slots=True, frozen=True)
class _Candidate:
    station: ChargingStation
    distance_from_route_km: float
    solar_with_minimal_detour: bool = False


class StopSelector:
    def __init__(self, directory_client: OpenChargeMapClient | None = None) -> None:
        self.directory_client = directory_client or OpenChargeMapClient()

    def stations_near(self, point: GeoPoint) -> list[ChargingStation]:
        stations = self.directory_client.fetch_nearby_stations(
            latitude=point.latitude,
            longitude=point.longitude,
            distance_km=CHARGER_SEARCH_RADIUS_KM,
            max_results=CHARGER_SEARCH_LIMIT,
        )
        return detect_solar_stations(stations, self.directory_client.manual_tags)

    def choose_best_stop(
        self,
        point: GeoPoint,
        route: list[GeoPoint],
        distance_from_start_km: float,
        energy_required_kwh: float,
        selected_ids: set[str],
    ) -> PlannedChargingStop | None:
        """Pick one charger near ``point`` and record its id in ``selected_ids``.

        Fast chargers are preferred when any exist. Within that pool a solar
        or hybrid station wins if its detour from the route is at most
        ``SOLAR_DETOUR_WINDOW_KM`` longer than the closest candidate's;
        otherwise the closest station, then the most powerful, wins.
        """
        available = [
            _Candidate(
                station=station,
                distance_from_route_km=min_distance_to_route_km(station.point, route),
            )
            for station in self.stations_near(point)
            if station.id not in selected_ids
        ]
        if not available:
            return None

        fast = [c for c in available if c.station.max_power_kw >= MIN_FAST_CHARGER_KW]
        pool = fast or available
        closest_km = min(c.distance_from_route_km for c in pool)

        ranked = sorted(
            (
                _Candidate(
                    station=c.station,
                    distance_from_route_km=c.distance_from_route_km,
                    solar_with_minimal_detour=(
                        c.station.is_solar_powered
                        and c.distance_from_route_km <= closest_km + SOLAR_DETOUR_WINDOW_KM
                    ),
                )
                for c in pool
            ),
            key=lambda c: (
                not c.solar_with_minimal_detour,
                c.distance_from_route_km,
                -c.station.max_power_kw,
            ),
        )
        picked = ranked[0]

        selected_ids.add(picked.station.id)
        return PlannedChargingStop(
            station=picked.station,
            distance_from_route_km=picked.distance_from_route_km,
            distance_from_start_km=round(distance_from_start_km, 1),
            is_fast_charger=picked.station.max_power_kw >= MIN_FAST_CHARGER_KW,
            is_solar_preferred=picked.solar_with_minimal_detour,
            cost=calculate_charging_cost(
                energy_required_kwh,
                picked.station,
                base_price_per_kwh=float(settings.CHARGING_BASE_TARIFF_PER_KWH),
            ),
        )
