from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

EnergySource = Literal["solar", "grid", "hybrid"]
ENERGY_SOURCES: tuple[EnergySource, ...] = ("solar", "grid", "hybrid")


@dataclass(slots=True, frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(slots=True, frozen=True)
class RouteData:
    geometry: list[GeoPoint]
    distance_km: float


@dataclass(slots=True, frozen=True)
class Connector:
    type: str
    power_kw: float


@dataclass(slots=True, frozen=True)
class ChargingStation:
    id: str
    name: str
    address: str
    latitude: float
    longitude: float
    connectors: tuple[Connector, ...] = ()
    max_power_kw: float = 0.0
    energy_source: EnergySource | None = None
    distance_km: float = 0.0
    operator_name: str | None = None

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)

    @property
    def is_solar_powered(self) -> bool:
        return self.energy_source in ("solar", "hybrid")

    def to_cache(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "connectors": [[c.type, c.power_kw] for c in self.connectors],
            "max_power_kw": self.max_power_kw,
            "energy_source": self.energy_source,
            "distance_km": self.distance_km,
            "operator_name": self.operator_name,
        }

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> ChargingStation:
        return cls(
            id=data["id"],
            name=data["name"],
            address=data["address"],
            latitude=data["latitude"],
            longitude=data["longitude"],
            connectors=tuple(
                Connector(type=kind, power_kw=power) for kind, power in data["connectors"]
            ),
            max_power_kw=data["max_power_kw"],
            energy_source=data["energy_source"],
            distance_km=data["distance_km"],
            operator_name=data["operator_name"],
        )


@dataclass(slots=True, frozen=True)
class ChargingCostBreakdown:
    base_price_per_kwh: float
    effective_price_per_kwh: float
    discount_applied_percent: float
    total_cost: float
    note: str


@dataclass(slots=True, frozen=True)
class PlannedChargingStop:
    station: ChargingStation
    distance_from_route_km: float
    distance_from_start_km: float
    is_fast_charger: bool
    is_solar_preferred: bool
    cost: ChargingCostBreakdown


@dataclass(slots=True, frozen=True)
class RescueVehicle:
    vehicle_id: str
    current_location: GeoPoint
    route_direction: str
    available_battery_percent: float
    supports_reverse_charging: bool


@dataclass(slots=True, frozen=True)
class OutOfChargeDetection:
    is_critical_battery: bool
    has_no_nearby_stations: bool
    should_trigger_rescue: bool
    reason: str


@dataclass(slots=True, frozen=True)
class RescueSimulationResult:
    rescue_found: bool
    transferred_energy_kwh: float
    emergency_range_gained_km: float
    nearest_charger_reachable: bool
    reason: str
    donor_vehicle_id: str | None = None
    receiver_battery_after_percent: float | None = None
    donor_battery_after_percent: float | None = None
    nearest_reachable_charger_id: str | None = None
    nearest_reachable_charger_name: str | None = None


@dataclass(slots=True)
class RescueOutcome:
    """Community rescue state reported alongside a trip plan."""

    enabled: bool
    triggered: bool = False
    rescue_found: bool = False
    transferred_energy_kwh: float = 0.0
    emergency_range_gained_km: float = 0.0
    nearest_charger_reachable: bool = False
    reason: str = "Rescue mode not required."
    donor_vehicle_id: str | None = None
    nearest_reachable_charger_name: str | None = None
