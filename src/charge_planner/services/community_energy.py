from __future__ import annotations

import dataclasses
import math
import re
from collections.abc import Iterable, Mapping

from charge_planner.services.geo import haversine_km
from charge_planner.services.types import (
    ChargingCostBreakdown,
    ChargingStation,
    EnergySource,
    GeoPoint,
    OutOfChargeDetection,
    RescueSimulationResult,
    RescueVehicle,
)

SOLAR_KEYWORDS = ("solar", "renewable", "green", "clean energy", "sun")
HYBRID_KEYWORDS = ("hybrid", "mixed energy", "solar+grid", "solar + grid")

DEFAULT_BASE_PRICE_PER_KWH = 12.0
DEFAULT_SOLAR_DISCOUNT_PERCENT = 35.0
DEFAULT_HYBRID_DISCOUNT_PERCENT = 20.0

MIN_ROUTE_SIMILARITY = 0.35
DEFAULT_DONOR_CAPACITY_KWH = 70.0
DEFAULT_DONOR_SAFE_FLOOR_PERCENT = 25.0
DEFAULT_TRANSFER_WINDOW_KWH = (5.0, 10.0)
DEFAULT_RECEIVER_KM_PER_KWH = 4.5

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def infer_energy_source(text: str) -> EnergySource:
    haystack = text.lower()
    if any(keyword in haystack for keyword in HYBRID_KEYWORDS):
        return "hybrid"
    if any(keyword in haystack for keyword in SOLAR_KEYWORDS):
        return "solar"
    return "grid"


def detect_solar_stations(
    stations: Iterable[ChargingStation],
    manual_tags: Mapping[str, EnergySource] | None = None,
) -> list[ChargingStation]:
    """Resolve each station's energy source: manual tag, then its own, then text."""
    manual_tags = manual_tags or {}
    resolved: list[ChargingStation] = []
    for station in stations:
        energy_source = manual_tags.get(station.id) or station.energy_source
        if energy_source is None:
            energy_source = infer_energy_source(
                f"{station.name} {station.address} {station.operator_name or ''}"
            )
        if energy_source != station.energy_source:
            station = dataclasses.replace(station, energy_source=energy_source)
        resolved.append(station)
    return resolved


def calculate_charging_cost(
    energy_required_kwh: float,
    station: ChargingStation,
    *,
    base_price_per_kwh: float = DEFAULT_BASE_PRICE_PER_KWH,
    solar_discount_percent: float = DEFAULT_SOLAR_DISCOUNT_PERCENT,
    hybrid_discount_percent: float = DEFAULT_HYBRID_DISCOUNT_PERCENT,
) -> ChargingCostBreakdown:
    units = energy_required_kwh if math.isfinite(energy_required_kwh) else 0.0
    units = max(0.0, units)
    source = station.energy_source or "grid"

    if source == "solar":
        discount = solar_discount_percent
    elif source == "hybrid":
        discount = hybrid_discount_percent
    else:
        discount = 0.0

    effective_price = round(base_price_per_kwh * (1 - discount / 100.0), 2)
    return ChargingCostBreakdown(
        base_price_per_kwh=base_price_per_kwh,
        effective_price_per_kwh=effective_price,
        discount_applied_percent=discount,
        total_cost=round(units * effective_price, 2),
        note=f"{source} station discount applied" if discount > 0 else "Standard grid tariff",
    )


def detect_out_of_charge_scenario(
    battery_percent: float,
    nearby_stations_count: int,
    station_radius_km: float,
    critical_threshold_percent: float = 5.0,
) -> OutOfChargeDetection:
    is_critical = battery_percent <= critical_threshold_percent
    has_no_stations = nearby_stations_count <= 0
    should_rescue = is_critical and has_no_stations

    threshold = f"{critical_threshold_percent:g}"
    if should_rescue:
        reason = (
            f"Battery is critical (<={threshold}%) and no stations found "
            f"within {station_radius_km:g} km"
        )
    elif not is_critical:
        reason = f"Battery above critical threshold ({threshold}%)"
    else:
        reason = "Stations available nearby"

    return OutOfChargeDetection(
        is_critical_battery=is_critical,
        has_no_nearby_stations=has_no_stations,
        should_trigger_rescue=should_rescue,
        reason=reason,
    )


def route_similarity_score(route_a: str, route_b: str) -> float:
    a = route_a.strip().lower()
    b = route_b.strip().lower()
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.75

    a_tokens = {token for token in _TOKEN_SPLIT.split(a) if token}
    b_tokens = {token for token in _TOKEN_SPLIT.split(b) if token}
    if not a_tokens or not b_tokens:
        return 0.0
    return len(a_tokens & b_tokens) / max(len(a_tokens), len(b_tokens))


def find_nearby_rescue_vehicles(
    receiver_location: GeoPoint,
    receiver_route_direction: str,
    vehicles: Iterable[RescueVehicle],
    max_distance_km: float = 8.0,
    minimum_donor_battery_percent: float = 40.0,
) -> list[RescueVehicle]:
    """Rank donors that can reverse-charge, nearest first then fullest battery."""
    matches: list[tuple[float, RescueVehicle]] = []
    for vehicle in vehicles:
        if not vehicle.supports_reverse_charging:
            continue
        if vehicle.available_battery_percent < minimum_donor_battery_percent:
            continue

        distance_km = haversine_km(receiver_location, vehicle.current_location)
        if distance_km > max_distance_km:
            continue
        similarity = route_similarity_score(receiver_route_direction, vehicle.route_direction)
        if similarity < MIN_ROUTE_SIMILARITY:
            continue
        matches.append((distance_km, vehicle))

    matches.sort(key=lambda match: (match[0], -match[1].available_battery_percent))
    return [vehicle for _, vehicle in matches]


def simulate_reverse_charging(
    receiver_current_battery_percent: float,
    receiver_battery_capacity_kwh: float,
    receiver_location: GeoPoint,
    rescue_candidates: list[RescueVehicle],
    charging_stations: Iterable[ChargingStation],
    *,
    donor_battery_capacity_kwh: float = DEFAULT_DONOR_CAPACITY_KWH,
    transfer_kwh_range: tuple[float, float] = DEFAULT_TRANSFER_WINDOW_KWH,
    donor_safe_battery_floor_percent: float = DEFAULT_DONOR_SAFE_FLOOR_PERCENT,
    receiver_km_per_kwh: float = DEFAULT_RECEIVER_KM_PER_KWH,
    one_rescue_per_trip: bool = False,
    already_rescued_on_trip: bool = False,
) -> RescueSimulationResult:
    """Simulate the best-ranked donor topping up the stranded vehicle.

    The transfer is capped by the donor's energy above its safe floor and by
    the transfer window. Anything below the window minimum is refused
    outright. A rescue counts as reaching a charger when the nearest charger
    is within the range the transfer buys.
    """
    if one_rescue_per_trip and already_rescued_on_trip:
        return _no_rescue("One rescue per trip limit reached")

    if not rescue_candidates:
        return _no_rescue("No rescue vehicle available")
    donor = rescue_candidates[0]

    min_transfer_kwh, max_transfer_kwh = transfer_kwh_range
    donor_current_kwh = donor.available_battery_percent / 100.0 * donor_battery_capacity_kwh
    donor_floor_kwh = donor_safe_battery_floor_percent / 100.0 * donor_battery_capacity_kwh
    transferable_kwh = max(0.0, donor_current_kwh - donor_floor_kwh)

    transferred_kwh = min(max_transfer_kwh, transferable_kwh)
    if transferred_kwh < min_transfer_kwh or transferred_kwh <= 0:
        return _no_rescue("Donor battery is below safe transfer reserve")

    emergency_range_km = round(transferred_kwh * receiver_km_per_kwh, 1)
    receiver_added_percent = transferred_kwh / max(1.0, receiver_battery_capacity_kwh) * 100.0
    receiver_after = round(min(100.0, receiver_current_battery_percent + receiver_added_percent), 1)
    donor_after = round(
        (donor_current_kwh - transferred_kwh) / donor_battery_capacity_kwh * 100.0, 1
    )

    nearest = min(
        (
            (haversine_km(receiver_location, station.point), station)
            for station in charging_stations
        ),
        key=lambda pair: pair[0],
        default=None,
    )
    reachable = nearest is not None and nearest[0] <= emergency_range_km

    return RescueSimulationResult(
        rescue_found=True,
        donor_vehicle_id=donor.vehicle_id,
        transferred_energy_kwh=round(transferred_kwh, 2),
        emergency_range_gained_km=emergency_range_km,
        receiver_battery_after_percent=receiver_after,
        donor_battery_after_percent=donor_after,
        nearest_charger_reachable=reachable,
        nearest_reachable_charger_id=nearest[1].id if reachable else None,
        nearest_reachable_charger_name=nearest[1].name if reachable else None,
        reason=(
            "Rescue successful and a charger is reachable"
            if reachable
            else "Rescue provided emergency range, but nearest charger is still out of range"
        ),
    )


def _no_rescue(reason: str) -> RescueSimulationResult:
    return RescueSimulationResult(
        rescue_found=False,
        transferred_energy_kwh=0.0,
        emergency_range_gained_km=0.0,
        nearest_charger_reachable=False,
        reason=reason,
    )
