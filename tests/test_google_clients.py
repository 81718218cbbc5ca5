from datetime import datetime, timedelta, timezone

import httpx
import pytest

from dispatch_engine.errors import (
    DirectionsUnavailableError,
    GeocodeNotFoundError,
    GeocodeProviderError,
    GeocodeRateLimitedError,
)
from dispatch_engine.models.domain import Coordinate
from dispatch_engine.services.geocoding.google_client import GoogleGeocodeClient
from dispatch_engine.services.routing.directions_client import GoogleDirectionsClient


def _geocoder(handler, **kwargs) -> GoogleGeocodeClient:
    kwargs.setdefault("max_retries", 2)
    return GoogleGeocodeClient(
        base_url="https://maps.test/geocode/json",
        api_key="test-key",
        transport=httpx.MockTransport(handler),
        backoff_seconds=0,
        **kwargs,
    )


def _directions(handler, **kwargs) -> GoogleDirectionsClient:
    kwargs.setdefault("max_retries", 2)
    return GoogleDirectionsClient(
        base_url="https://maps.test/directions/json",
        api_key="test-key",
        transport=httpx.MockTransport(handler),
        backoff_seconds=0,
        **kwargs,
    )


def _geocode_payload(location_type="ROOFTOP", partial=False):
    result = {"geometry": {"location": {"lat": 40.71, "lng": -74.0}, "location_type": location_type}}
    if partial:
        result["partial_match"] = True
    return {"status": "OK", "results": [result]}


def test_client_requires_an_api_key(monkeypatch: pytest.MonkeyPatch):
    from dispatch_engine.config import settings

    monkeypatch.setattr(settings, "google_maps_api_key", None)
    with pytest.raises(ValueError):
        GoogleGeocodeClient()


def test_geocode_rooftop_result_is_exact():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json=_geocode_payload())

    result = _geocoder(handler).geocode("1 Main St")

    assert (result.lat, result.lng, result.confidence) == (40.71, -74.0, "exact")
    assert seen["address"] == "1 Main St"
    assert seen["key"] == "test-key"


@pytest.mark.parametrize(("location_type", "partial"), [("RANGE_INTERPOLATED", False), ("ROOFTOP", True)])
def test_geocode_imprecise_results_are_approximate(location_type, partial):
    client = _geocoder(lambda request: httpx.Response(200, json=_geocode_payload(location_type, partial)))
    assert client.geocode("1 Main St").confidence == "approximate"


@pytest.mark.parametrize(
    ("status", "error"),
    [
        ("ZERO_RESULTS", GeocodeNotFoundError),
        ("OVER_QUERY_LIMIT", GeocodeRateLimitedError),
        ("REQUEST_DENIED", GeocodeProviderError),
    ],
)
def test_geocode_statuses_map_to_errors(status, error):
    client = _geocoder(lambda request: httpx.Response(200, json={"status": status, "results": []}))
    with pytest.raises(error):
        client.geocode("1 Main St")


def test_geocode_retries_server_errors_then_succeeds():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json=_geocode_payload())

    assert _geocoder(handler).geocode("1 Main St").confidence == "exact"
    assert len(attempts) == 3


def test_geocode_gives_up_after_bounded_retries():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GeocodeProviderError):
        _geocoder(handler, max_retries=1).geocode("1 Main St")
    assert len(attempts) == 2


def test_geocode_does_not_retry_client_errors():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(403)

    with pytest.raises(GeocodeProviderError):
        _geocoder(handler).geocode("1 Main St")
    assert len(attempts) == 1


def test_rate_limited_status_is_retried_before_failing():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(200, json={"status": "OVER_QUERY_LIMIT"})

    with pytest.raises(GeocodeRateLimitedError):
        _geocoder(handler, max_retries=2).geocode("1 Main St")
    assert len(attempts) == 3


def test_directions_parses_legs_and_sends_traffic_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "routes": [
                    {
                        "legs": [
                            {
                                "distance": {"value": 1200},
                                "duration": {"value": 180},
                                "duration_in_traffic": {"value": 240},
                            },
                            {"distance": {"value": 800}, "duration": {"value": 90}},
                        ]
                    }
                ],
            },
        )

    departure = datetime.now(timezone.utc) + timedelta(hours=1)
    legs = _directions(handler).directions(
        Coordinate(40.0, -74.0),
        [Coordinate(40.01, -74.0), Coordinate(40.02, -74.0)],
        departure,
    )

    assert [(leg.distance_meters, leg.duration_seconds, leg.duration_in_traffic_seconds) for leg in legs] == [
        (1200.0, 180.0, 240.0),
        (800.0, 90.0, None),
    ]
    assert seen["origin"] == "40.000000,-74.000000"
    assert seen["destination"] == "40.020000,-74.000000"
    assert seen["waypoints"] == "40.010000,-74.000000"
    assert seen["traffic_model"] == "best_guess"
    assert seen["departure_time"] == str(int(departure.timestamp()))


def test_directions_clamps_past_departures_to_now():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(
            200,
            json={"status": "OK", "routes": [{"legs": [{"distance": {"value": 1}, "duration": {"value": 1}}]}]},
        )

    before = int(datetime.now(timezone.utc).timestamp())
    _directions(handler).directions(
        Coordinate(40.0, -74.0), [Coordinate(40.01, -74.0)], datetime(2020, 1, 1, tzinfo=timezone.utc)
    )

    assert int(seen["departure_time"]) >= before


@pytest.mark.parametrize(
    "payload",
    [
        {"status": "ZERO_RESULTS", "routes": []},
        {"status": "OK", "routes": [{"legs": []}]},
        {"status": "OK", "routes": [{"legs": [{"distance": {}}]}]},
    ],
)
def test_directions_failures_raise_unavailable(payload):
    client = _directions(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(DirectionsUnavailableError):
        client.directions(Coordinate(40.0, -74.0), [Coordinate(40.01, -74.0)], datetime.now(timezone.utc))
