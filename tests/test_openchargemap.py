from __future__ import annotations

import httpx
import pytest

from charge_planner.exceptions import ErrorCode, StationDirectoryError, TripPlannerError
from charge_planner.services.openchargemap import OpenChargeMapClient

POI_PAYLOAD = [
    {
        "ID": 11,
        "AddressInfo": {
            "Title": "  Solar + Grid Hub ",
            "Latitude": 12.97,
            "Longitude": 77.59,
            "Distance": 5.12345,
            "AddressLine1": "14 MG Road",
            "Town": "Bengaluru",
            "StateOrProvince": "Karnataka",
            "Postcode": "560001",
            "Country": {"Title": "India"},
        },
        "Connections": [
            {"PowerKW": 22, "ConnectionType": {"Title": "Type 2"}},
            {"PowerKW": 60, "ConnectionType": {"Title": "CCS2"}},
        ],
        "OperatorInfo": {"Title": "Tata Power"},
    },
    {
        "ID": 12,
        "AddressInfo": {"Title": "", "Latitude": 12.95, "Longitude": 77.6, "Distance": 1.5},
        "Connections": [{"PowerKW": None, "ConnectionType": None}],
        "GeneralComments": "Rooftop renewable array",
    },
    {
        "ID": 13,
        "AddressInfo": {"Title": "Mall Parking", "Latitude": 12.9, "Longitude": 77.5},
        "OperatorInfo": {"Title": "Statiq"},
    },
    {"ID": 14, "AddressInfo": {"Title": "No coordinates"}},
    {"AddressInfo": {"Title": "No id", "Latitude": 12.9, "Longitude": 77.5}},
    {"ID": 15},
]


def _response(status_code: int = 200, **kwargs) -> httpx.Response:
    return httpx.Response(status_code, **kwargs)


def test_fetch_nearby_stations_normalizes_and_sorts(provider_keys, mocker) -> None:
    http_get = mocker.patch(
        "charge_planner.services.openchargemap.httpx.get",
        return_value=_response(json=POI_PAYLOAD),
    )

    stations = OpenChargeMapClient(manual_tags={}).fetch_nearby_stations(12.97, 77.59)

    assert [station.id for station in stations] == ["13", "12", "11"]

    hub = stations[2]
    assert hub.name == "Solar + Grid Hub"
    assert hub.address == "14 MG Road, Bengaluru, Karnataka, 560001, India"
    assert hub.max_power_kw == 60
    assert [connector.type for connector in hub.connectors] == ["Type 2", "CCS2"]
    assert hub.distance_km == 5.12
    assert hub.energy_source == "hybrid"
    assert hub.operator_name == "Tata Power"
    assert hub.is_solar_powered

    rooftop = stations[1]
    assert rooftop.name == "Unnamed Charging Station"
    assert rooftop.address == "Address unavailable"
    assert rooftop.connectors[0].type == "Unknown connector"
    assert rooftop.max_power_kw == 0
    assert rooftop.energy_source == "solar"

    mall = stations[0]
    assert mall.energy_source == "grid"
    assert mall.distance_km == 0
    assert mall.connectors == ()

    kwargs = http_get.call_args.kwargs
    assert kwargs["headers"]["X-API-Key"] == "ocm-test-key"
    assert kwargs["params"]["distance"] == "8"
    assert kwargs["params"]["maxresults"] == "40"
    assert kwargs["params"]["distanceunit"] == "KM"


def test_manual_tags_override_inference(provider_keys, mocker) -> None:
    mocker.patch(
        "charge_planner.services.openchargemap.httpx.get",
        return_value=_response(json=POI_PAYLOAD),
    )

    client = OpenChargeMapClient(manual_tags={"13": "solar", "11": "grid"})
    stations = {station.id: station for station in client.fetch_nearby_stations(12.97, 77.59)}

    assert stations["13"].energy_source == "solar"
    assert stations["11"].energy_source == "grid"


def test_radius_and_limit_are_clamped(provider_keys, mocker) -> None:
    http_get = mocker.patch(
        "charge_planner.services.openchargemap.httpx.get", return_value=_response(json=[])
    )
    client = OpenChargeMapClient(manual_tags={})

    client.fetch_nearby_stations(12.9, 77.5, distance_km=1200, max_results=0)
    params = http_get.call_args.kwargs["params"]
    assert params["distance"] == "500"
    assert params["maxresults"] == "1"

    client.fetch_nearby_stations(12.9, 77.5, distance_km=0.4, max_results=250)
    params = http_get.call_args.kwargs["params"]
    assert params["distance"] == "1"
    assert params["maxresults"] == "100"

    client.fetch_nearby_stations(12.9, 77.5, distance_km=float("nan"), max_results=17.8)
    params = http_get.call_args.kwargs["params"]
    assert params["distance"] == "8"
    assert params["maxresults"] == "17"


def test_identical_queries_hit_the_cache(provider_keys, mocker) -> None:
    http_get = mocker.patch(
        "charge_planner.services.openchargemap.httpx.get",
        return_value=_response(json=POI_PAYLOAD),
    )
    client = OpenChargeMapClient(manual_tags={})

    first = client.fetch_nearby_stations(12.97001, 77.59001, distance_km=20, max_results=40)
    second = client.fetch_nearby_stations(12.97002, 77.59002, distance_km=20, max_results=40)

    assert http_get.call_count == 1
    assert first == second


def test_missing_api_key_raises_missing_credentials(settings, mocker) -> None:
    settings.OCM_API_KEY = ""
    http_get = mocker.patch("charge_planner.services.openchargemap.httpx.get")

    with pytest.raises(TripPlannerError) as exc_info:
        OpenChargeMapClient(manual_tags={}).fetch_nearby_stations(12.9, 77.5)

    assert exc_info.value.code is ErrorCode.MISSING_CREDENTIALS
    http_get.assert_not_called()


@pytest.mark.parametrize(
    ("response", "message", "status_code"),
    [
        (
            httpx.Response(503, text="maintenance"),
            "Open Charge Map request failed: 503 Service Unavailable",
            503,
        ),
        (httpx.Response(200, content=b"<html>"), "Open Charge Map returned invalid JSON", None),
        (
            httpx.Response(200, json={"error": "nope"}),
            "Open Charge Map returned unexpected response format",
            None,
        ),
    ],
)
def test_bad_responses_raise_directory_error(
    provider_keys, mocker, response, message, status_code
) -> None:
    mocker.patch("charge_planner.services.openchargemap.httpx.get", return_value=response)

    with pytest.raises(StationDirectoryError) as exc_info:
        OpenChargeMapClient(manual_tags={}).fetch_nearby_stations(12.9, 77.5)

    assert str(exc_info.value) == message
    assert exc_info.value.status_code == status_code


def test_transport_failure_raises_directory_error(provider_keys, mocker) -> None:
    mocker.patch(
        "charge_planner.services.openchargemap.httpx.get",
        side_effect=httpx.ConnectError("connection refused"),
    )

    with pytest.raises(StationDirectoryError, match="connection refused"):
        OpenChargeMapClient(manual_tags={}).fetch_nearby_stations(12.9, 77.5)
