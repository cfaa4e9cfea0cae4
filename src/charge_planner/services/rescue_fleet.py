from __future__ import annotations

from typing import Protocol

from charge_planner.services.types import GeoPoint, RescueVehicle


class RescueFleet(Protocol):
    def vehicles_near(self, point: GeoPoint) -> list[RescueVehicle]: ...


class StaticRescueFleet:
    """Fleet backed by a caller-supplied list of vehicles."""

    def __init__(self, vehicles: list[RescueVehicle]) -> None:
        self.vehicles = list(vehicles)

    def vehicles_near(self, point: GeoPoint) -> list[RescueVehicle]:
        return list(self.vehicles)


class SimulatedRescueFleet:
    """Stand-in for a fleet-location service: synthetic donors around ``point``."""

    def vehicles_near(self, point: GeoPoint) -> list[RescueVehicle]:
        return [
            RescueVehicle(
                vehicle_id="EV-COMM-101",
                current_location=_offset(point, 0.018, -0.012),
                route_direction="same corridor outbound",
                available_battery_percent=62.0,
                supports_reverse_charging=True,
            ),
            RescueVehicle(
                vehicle_id="EV-COMM-202",
                current_location=_offset(point, -0.026, 0.01),
                route_direction="nearby local route",
                available_battery_percent=48.0,
                supports_reverse_charging=True,
            ),
            RescueVehicle(
                vehicle_id="EV-COMM-303",
                current_location=_offset(point, 0.08, 0.05),
                route_direction="different route",
                available_battery_percent=72.0,
                supports_reverse_charging=False,
            ),
        ]


def _offset(point: GeoPoint, dlat: float, dlng: float) -> GeoPoint:
    return GeoPoint(latitude=point.latitude + dlat, longitude=point.longitude + dlng)
