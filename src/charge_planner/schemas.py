from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from charge_planner.services.types import GeoPoint, RescueVehicle


class Coordinate(BaseModel):
    lat: float
    lng: float

    @classmethod
    def from_point(cls, point: GeoPoint) -> Coordinate:
        return cls(lat=point.latitude, lng=point.longitude)

    def to_point(self) -> GeoPoint:
        return GeoPoint(latitude=self.lat, longitude=self.lng)


class RescueVehicleSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vehicle_id: str = Field(min_length=1, max_length=100)
    current_location: Coordinate
    route_direction: str = Field(default="", max_length=300)
    available_battery_percent: float = Field(ge=0.0, le=100.0)
    supports_reverse_charging: bool = False

    def to_vehicle(self) -> RescueVehicle:
        return RescueVehicle(
            vehicle_id=self.vehicle_id,
            current_location=self.current_location.to_point(),
            route_direction=self.route_direction,
            available_battery_percent=self.available_battery_percent,
            supports_reverse_charging=self.supports_reverse_charging,
        )


class TripPlanRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start_location: str = Field(max_length=300)
    destination: str = Field(max_length=300)
    ev_max_range_km: float = Field(gt=0.0, le=2000.0)
    current_battery_percent: float = Field(ge=0.0, le=100.0)
    enable_community_rescue: bool = True
    community_vehicles: list[RescueVehicleSchema] | None = None


class NearbyStationsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    distance_km: float = Field(default=8.0, gt=0.0)
    max_results: int = Field(default=40, gt=0)


class ConnectorResponse(BaseModel):
    type: str
    power_kw: float


class StationResponse(BaseModel):
    id: str
    name: str
    address: str
    latitude: float
    longitude: float
    distance_km: float
    connections: list[ConnectorResponse]
    max_power_kw: float
    is_solar_powered: bool
    energy_source: Literal["solar", "grid", "hybrid"]
    operator_name: str | None = None


class NearbyStationsResponse(BaseModel):
    stations: list[StationResponse]
    attribution: str


class ChargingStopResponse(BaseModel):
    id: str
    name: str
    address: str
    latitude: float
    longitude: float
    power_kw: float
    distance_from_route_km: float
    distance_from_start_km: float
    is_fast_charger: bool
    is_solar_preferred: bool
    energy_source: Literal["solar", "grid", "hybrid"]
    estimated_charging_cost: float
    estimated_unit_price: float
    discount_percent: float


class CommunityRescueResponse(BaseModel):
    enabled: bool
    triggered: bool
    rescue_found: bool
    donor_vehicle_id: str | None = None
    transferred_energy_kwh: float
    emergency_range_gained_km: float
    nearest_charger_reachable: bool
    nearest_reachable_charger_name: str | None = None
    reason: str


class EstimatedCostResponse(BaseModel):
    currency: str
    estimated_total: float
    note: str


class BatteryModelResponse(BaseModel):
    consumption_per_km: float
    note: str


class MapDataResponse(BaseModel):
    route: list[Coordinate]
    stops: list[Coordinate]


class SustainabilityResponse(BaseModel):
    score: float
    co2_savings_kg: float
    note: str


class RoutePlanResponse(BaseModel):
    start: str
    destination: str
    start_coordinate: Coordinate
    destination_coordinate: Coordinate
    total_distance_km: float
    usable_range_km: float
    planning_leg_range_km: float
    requires_charging: bool
    charging_stops_required: int
    charging_stops: list[ChargingStopResponse]
    message: str
    route_geometry: list[Coordinate]
    community_rescue: CommunityRescueResponse
    estimated_cost: EstimatedCostResponse
    battery_model: BatteryModelResponse
    map_data: MapDataResponse
    sustainability: SustainabilityResponse
