from __future__ import annotations

import logging
import math
from dataclasses import asdict

import httpx
from django.conf import settings

from charge_planner.exceptions import ErrorCode, StationDirectoryError, TripPlannerError
from charge_planner.schemas import (
    BatteryModelResponse,
    ChargingStopResponse,
    CommunityRescueResponse,
    Coordinate,
    EstimatedCostResponse,
    MapDataResponse,
    RoutePlanResponse,
    SustainabilityResponse,
    TripPlanRequest,
)
from charge_planner.services.community_energy import (
    DEFAULT_RECEIVER_KM_PER_KWH,
    detect_out_of_charge_scenario,
    find_nearby_rescue_vehicles,
    simulate_reverse_charging,
)
from charge_planner.services.geo import point_at_distance_along_route
from charge_planner.services.openrouteservice import OpenRouteServiceClient
from charge_planner.services.rescue_fleet import (
    RescueFleet,
    SimulatedRescueFleet,
    StaticRescueFleet,
)
from charge_planner.services.station_selection import CHARGER_SEARCH_RADIUS_KM, StopSelector
from charge_planner.services.types import (
    GeoPoint,
    PlannedChargingStop,
    RescueOutcome,
    RouteData,
)

logger = logging.getLogger(__name__)

RANGE_BUFFER_FACTOR = 0.9
CRITICAL_BATTERY_PERCENT = 5.0
DEFAULT_RECEIVER_BATTERY_KWH = 60.0
RESCUE_MAX_DISTANCE_KM = 10.0
RESCUE_MIN_DONOR_BATTERY_PERCENT = 40.0
CO2_SAVED_PER_GREEN_STOP_KG = 1.4


def calculate_usable_range_km(ev_max_range_km: float, current_battery_percent: float) -> float:
    battery = min(max(current_battery_percent, 0.0), 100.0)
    return round(battery / 100.0 * max(ev_max_range_km, 0.0), 2)


class TripPlannerService:
    def __init__(
        self,
        routing_client: OpenRouteServiceClient | None = None,
        stop_selector: StopSelector | None = None,
        rescue_fleet: RescueFleet | None = None,
    ) -> None:
        self.routing_client = routing_client or OpenRouteServiceClient()
        self.stop_selector = stop_selector or StopSelector()
        self.rescue_fleet = rescue_fleet or SimulatedRescueFleet()

    def plan(self, request: TripPlanRequest) -> RoutePlanResponse:
        try:
            return self._plan(request)
        except TripPlannerError:
            raise
        except (StationDirectoryError, httpx.HTTPError) as exc:
            raise TripPlannerError(ErrorCode.NETWORK_ERROR, str(exc)) from exc
        except Exception as exc:
            logger.exception("Trip planning failed unexpectedly")
            raise TripPlannerError(
                ErrorCode.UNKNOWN, "Trip planning failed due to an unknown error."
            ) from exc

    def _plan(self, request: TripPlanRequest) -> RoutePlanResponse:
        start = self.routing_client.geocode(request.start_location)
        destination = self.routing_client.geocode(request.destination)
        route = self.routing_client.fetch_route(start, destination)

        usable_range_km = calculate_usable_range_km(
            request.ev_max_range_km, request.current_battery_percent
        )
        leg_range_km = round(usable_range_km * RANGE_BUFFER_FACTOR, 2)
        rescue = RescueOutcome(enabled=request.enable_community_rescue)

        if route.distance_km <= usable_range_km:
            rescue.reason = "Trip can be completed without rescue support."
            return self._build_response(
                request, start, destination, route, usable_range_km, leg_range_km, [], rescue
            )

        if leg_range_km <= 0:
            raise TripPlannerError(
                ErrorCode.ROUTE_NOT_FOUND,
                "Battery percentage is too low to generate a safe charging plan.",
            )

        stops_needed = math.ceil(route.distance_km / leg_range_km) - 1
        consumption_kwh_per_km = round(1 / DEFAULT_RECEIVER_KM_PER_KWH, 3)
        leg_energy_kwh = round(leg_range_km * consumption_kwh_per_km, 2)
        logger.info(
            "Planning %.2f km trip: usable range %.2f km, %d stop(s) of %.2f km legs",
            route.distance_km,
            usable_range_km,
            stops_needed,
            leg_range_km,
        )

        stops: list[PlannedChargingStop] = []
        selected_ids: set[str] = set()

        for segment in range(1, stops_needed + 1):
            distance_from_start_km = leg_range_km * segment
            route_point = point_at_distance_along_route(route.geometry, distance_from_start_km)
            stop = self.stop_selector.choose_best_stop(
                route_point,
                route.geometry,
                distance_from_start_km,
                leg_energy_kwh,
                selected_ids,
            )
            if stop is not None:
                stops.append(stop)
                continue

            logger.warning("No charger available near segment %d at %s", segment, route_point)
            # A successful rescue ends segmenting, so at most one is attempted per trip.
            if self._attempt_rescue(request, route_point, rescue):
                break

            if rescue.triggered:
                hint = f"Community rescue status: {rescue.reason}"
            else:
                hint = "Try a different start/destination or higher battery level."
            raise TripPlannerError(
                ErrorCode.NO_CHARGERS_FOUND,
                f"No charging station found near segment {segment}. {hint}",
            )

        return self._build_response(
            request, start, destination, route, usable_range_km, leg_range_km, stops, rescue
        )

    def _attempt_rescue(
        self,
        request: TripPlanRequest,
        route_point: GeoPoint,
        rescue: RescueOutcome,
    ) -> bool:
        scenario = detect_out_of_charge_scenario(
            battery_percent=request.current_battery_percent,
            nearby_stations_count=0,
            station_radius_km=CHARGER_SEARCH_RADIUS_KM,
            critical_threshold_percent=CRITICAL_BATTERY_PERCENT,
        )
        if not (scenario.should_trigger_rescue and request.enable_community_rescue):
            return False

        if request.community_vehicles is not None:
            fleet: RescueFleet = StaticRescueFleet(
                [vehicle.to_vehicle() for vehicle in request.community_vehicles]
            )
        else:
            fleet = self.rescue_fleet

        candidates = find_nearby_rescue_vehicles(
            receiver_location=route_point,
            receiver_route_direction=f"{request.start_location}-{request.destination}",
            vehicles=fleet.vehicles_near(route_point),
            max_distance_km=RESCUE_MAX_DISTANCE_KM,
            minimum_donor_battery_percent=RESCUE_MIN_DONOR_BATTERY_PERCENT,
        )
        simulation = simulate_reverse_charging(
            receiver_current_battery_percent=request.current_battery_percent,
            receiver_battery_capacity_kwh=DEFAULT_RECEIVER_BATTERY_KWH,
            receiver_location=route_point,
            rescue_candidates=candidates,
            charging_stations=self.stop_selector.stations_near(route_point),
            receiver_km_per_kwh=DEFAULT_RECEIVER_KM_PER_KWH,
            one_rescue_per_trip=True,
            already_rescued_on_trip=False,
        )
        logger.info(
            "Community rescue at %s: found=%s (%s)",
            route_point,
            simulation.rescue_found,
            simulation.reason,
        )

        rescue.triggered = True
        rescue.rescue_found = simulation.rescue_found
        rescue.donor_vehicle_id = simulation.donor_vehicle_id
        rescue.transferred_energy_kwh = simulation.transferred_energy_kwh
        rescue.emergency_range_gained_km = simulation.emergency_range_gained_km
        rescue.nearest_charger_reachable = simulation.nearest_charger_reachable
        rescue.nearest_reachable_charger_name = simulation.nearest_reachable_charger_name
        rescue.reason = simulation.reason
        return simulation.rescue_found

    @staticmethod
    def _build_response(
        request: TripPlanRequest,
        start: GeoPoint,
        destination: GeoPoint,
        route: RouteData,
        usable_range_km: float,
        leg_range_km: float,
        stops: list[PlannedChargingStop],
        rescue: RescueOutcome,
    ) -> RoutePlanResponse:
        requires_charging = route.distance_km > usable_range_km
        geometry = [Coordinate.from_point(point) for point in route.geometry]
        currency = settings.CHARGING_CURRENCY

        green_stops = sum(1 for stop in stops if stop.station.energy_source != "grid")
        if requires_charging:
            green_ratio = green_stops / len(stops) if stops else 0.0
            sustainability = SustainabilityResponse(
                score=round(min(100.0, 50.0 + green_ratio * 50.0), 1),
                co2_savings_kg=round(green_stops * CO2_SAVED_PER_GREEN_STOP_KG, 2),
                note="Estimated from number of solar/hybrid charging stops (illustrative metric).",
            )
            estimated_cost = EstimatedCostResponse(
                currency=currency,
                estimated_total=round(sum(stop.cost.total_cost for stop in stops), 2),
                note=(
                    f"Estimated using base tariff {settings.CHARGING_BASE_TARIFF_PER_KWH:g} "
                    f"{currency}/kWh with solar/hybrid discounts when available."
                ),
            )
            if rescue.rescue_found:
                message = "Charging stops planned with community rescue support."
            else:
                message = "Charging stops planned successfully."
        else:
            sustainability = SustainabilityResponse(
                score=100.0,
                co2_savings_kg=0.0,
                note="No charging stop required for this route.",
            )
            estimated_cost = EstimatedCostResponse(
                currency=currency,
                estimated_total=0.0,
                note="No charging stop required for this trip.",
            )
            message = "You can reach your destination without charging."

        return RoutePlanResponse(
            start=request.start_location,
            destination=request.destination,
            start_coordinate=Coordinate.from_point(start),
            destination_coordinate=Coordinate.from_point(destination),
            total_distance_km=route.distance_km,
            usable_range_km=usable_range_km,
            planning_leg_range_km=leg_range_km,
            requires_charging=requires_charging,
            charging_stops_required=len(stops),
            charging_stops=[_stop_response(stop) for stop in stops],
            message=message,
            route_geometry=geometry,
            community_rescue=CommunityRescueResponse(**asdict(rescue)),
            estimated_cost=estimated_cost,
            battery_model=BatteryModelResponse(
                consumption_per_km=round(1 / max(request.ev_max_range_km, 1.0), 4),
                note="Default normalized consumption model (battery fraction per km).",
            ),
            map_data=MapDataResponse(
                route=geometry,
                stops=[Coordinate.from_point(stop.station.point) for stop in stops],
            ),
            sustainability=sustainability,
        )


def _stop_response(stop: PlannedChargingStop) -> ChargingStopResponse:
    station = stop.station
    return ChargingStopResponse(
        id=station.id,
        name=station.name,
        address=station.address,
        latitude=station.latitude,
        longitude=station.longitude,
        power_kw=station.max_power_kw,
        distance_from_route_km=stop.distance_from_route_km,
        distance_from_start_km=stop.distance_from_start_km,
        is_fast_charger=stop.is_fast_charger,
        is_solar_preferred=stop.is_solar_preferred,
        energy_source=station.energy_source or "grid",
        estimated_charging_cost=stop.cost.total_cost,
        estimated_unit_price=stop.cost.effective_price_per_kwh,
        discount_percent=stop.cost.discount_applied_percent,
    )
