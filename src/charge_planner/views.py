from __future__ import annotations

import json
from typing import Any

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST
from pydantic import ValidationError

from charge_planner.exceptions import ErrorCode, StationDirectoryError, TripPlannerError
from charge_planner.schemas import (
    ConnectorResponse,
    NearbyStationsRequest,
    NearbyStationsResponse,
    StationResponse,
    TripPlanRequest,
)
from charge_planner.services.openchargemap import ATTRIBUTION, OpenChargeMapClient
from charge_planner.services.planner import TripPlannerService

ERROR_STATUS = {
    ErrorCode.INVALID_LOCATION: 400,
    ErrorCode.MISSING_CREDENTIALS: 503,
    ErrorCode.ROUTE_NOT_FOUND: 422,
    ErrorCode.NO_CHARGERS_FOUND: 422,
    ErrorCode.NETWORK_ERROR: 502,
    ErrorCode.UNKNOWN: 500,
}

_planner_service: TripPlannerService | None = None


def get_trip_planner() -> TripPlannerService:
    global _planner_service
    if _planner_service is None:
        _planner_service = TripPlannerService()
    return _planner_service


def get_station_directory() -> OpenChargeMapClient:
    return get_trip_planner().stop_selector.directory_client


@require_GET
def health_view(_: HttpRequest) -> HttpResponse:
    return JsonResponse(
        {
            "status": "ok",
            "providers": {
                "openrouteservice": bool(settings.ORS_API_KEY),
                "openchargemap": bool(settings.OCM_API_KEY),
            },
        }
    )


@csrf_exempt
@require_POST
def trip_plan_view(request: HttpRequest) -> HttpResponse:
    payload = _parse_json_payload(request)
    if isinstance(payload, JsonResponse):
        return payload

    try:
        trip_request = TripPlanRequest.model_validate(payload)
    except ValidationError as exc:
        return _validation_error_response(exc)

    try:
        response = get_trip_planner().plan(trip_request)
    except TripPlannerError as exc:
        return _planner_error_response(exc)

    return JsonResponse(response.model_dump(mode="json"), status=200)


@require_GET
def nearby_stations_view(request: HttpRequest) -> HttpResponse:
    try:
        query = NearbyStationsRequest.model_validate(request.GET.dict())
    except ValidationError as exc:
        return _validation_error_response(exc)

    try:
        stations = get_station_directory().fetch_nearby_stations(
            latitude=query.latitude,
            longitude=query.longitude,
            distance_km=query.distance_km,
            max_results=query.max_results,
        )
    except TripPlannerError as exc:
        return _planner_error_response(exc)
    except StationDirectoryError as exc:
        return _error_response(ErrorCode.NETWORK_ERROR.value, str(exc), status=502)

    response = NearbyStationsResponse(
        stations=[
            StationResponse(
                id=station.id,
                name=station.name,
                address=station.address,
                latitude=station.latitude,
                longitude=station.longitude,
                distance_km=station.distance_km,
                connections=[
                    ConnectorResponse(type=connector.type, power_kw=connector.power_kw)
                    for connector in station.connectors
                ],
                max_power_kw=station.max_power_kw,
                is_solar_powered=station.is_solar_powered,
                energy_source=station.energy_source or "grid",
                operator_name=station.operator_name,
            )
            for station in stations
        ],
        attribution=ATTRIBUTION,
    )
    return JsonResponse(response.model_dump(mode="json"), status=200)


def _parse_json_payload(request: HttpRequest) -> dict[str, Any] | JsonResponse:
    if not request.body:
        return {}

    try:
        payload = json.loads(request.body)
    except json.JSONDecodeError:
        return _error_response("invalid_json", "Request body must be valid JSON", status=400)

    if not isinstance(payload, dict):
        return _error_response("invalid_json", "JSON body must be an object", status=400)

    return payload


def _validation_error_response(exc: ValidationError) -> JsonResponse:
    return JsonResponse(
        {
            "error": {
                "code": "validation_error",
                "message": "Invalid request payload",
                "details": exc.errors(include_url=False, include_context=False),
            }
        },
        status=400,
    )


def _planner_error_response(exc: TripPlannerError) -> JsonResponse:
    return _error_response(exc.code.value, exc.message, status=ERROR_STATUS[exc.code])


def _error_response(code: str, message: str, status: int) -> JsonResponse:
    return JsonResponse({"error": {"code": code, "message": message}}, status=status)
