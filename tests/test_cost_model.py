from datetime import datetime, timezone

import pytest

from dispatch_engine.errors import DirectionsUnavailableError
from dispatch_engine.models.domain import Coordinate
from dispatch_engine.services.routing.cost_model import TravelCostModel, classify_traffic, edge_from_estimate
from dispatch_engine.services.routing.models import LegEstimate, TrafficCondition


class CountingDirections:
    def __init__(self):
        self.departures = []

    def directions(self, origin, waypoints, departure_time):
        self.departures.append(departure_time)
        return [LegEstimate(1000.0, 100.0, 120.0)]


@pytest.mark.parametrize(
    ("duration", "in_traffic", "expected"),
    [
        (100.0, None, TrafficCondition.UNKNOWN),
        (100.0, 90.0, TrafficCondition.LIGHT),
        (100.0, 100.0, TrafficCondition.NORMAL),
        (100.0, 114.0, TrafficCondition.NORMAL),
        (100.0, 115.0, TrafficCondition.MODERATE),
        (100.0, 139.0, TrafficCondition.MODERATE),
        (100.0, 140.0, TrafficCondition.HEAVY),
        (100.0, 400.0, TrafficCondition.HEAVY),
    ],
)
def test_classify_traffic(duration, in_traffic, expected):
    assert classify_traffic(duration, in_traffic, moderate_ratio=0.15, heavy_ratio=0.40) == expected


def test_edge_from_estimate_never_reports_negative_delay():
    faster = edge_from_estimate(LegEstimate(500.0, 60.0, 45.0))
    slower = edge_from_estimate(LegEstimate(500.0, 60.0, 90.0))

    assert faster.traffic_delay_seconds == 0
    assert faster.traffic_condition == TrafficCondition.LIGHT
    assert slower.traffic_delay_seconds == 30
    assert slower.travel_seconds == 90


def test_departures_in_the_same_bucket_share_a_provider_call():
    provider = CountingDirections()
    model = TravelCostModel(provider, bucket_minutes=15, speed_kmh=40)
    a, b = Coordinate(0.0, 0.0), Coordinate(0.0, 0.01)

    model.edge("a", a, "b", b, datetime(2030, 1, 1, 8, 1, tzinfo=timezone.utc))
    model.edge("a", a, "b", b, datetime(2030, 1, 1, 8, 14, tzinfo=timezone.utc))
    model.edge("a", a, "b", b, datetime(2030, 1, 1, 8, 16, tzinfo=timezone.utc))

    assert model.provider_calls == 2
    assert provider.departures == [
        datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc),
        datetime(2030, 1, 1, 8, 15, tzinfo=timezone.utc),
    ]


def test_identical_coordinates_cost_nothing():
    provider = CountingDirections()
    model = TravelCostModel(provider, bucket_minutes=15, speed_kmh=40)
    point = Coordinate(1.0, 1.0)

    edge = model.edge("a", point, "b", point, datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc))

    assert edge.travel_seconds == 0
    assert model.provider_calls == 0


def test_degraded_model_uses_straight_lines():
    model = TravelCostModel(None, bucket_minutes=15, speed_kmh=36)
    edge = model.edge("a", Coordinate(0.0, 0.0), "b", Coordinate(0.0, 0.01), datetime(2030, 1, 1, tzinfo=timezone.utc))

    assert model.degraded is True
    assert edge.traffic_condition == TrafficCondition.UNKNOWN
    # 36 km/h is 10 m/s
    assert edge.duration_seconds == pytest.approx(edge.distance_meters / 10.0)


def test_provider_errors_propagate():
    class Broken:
        def directions(self, origin, waypoints, departure_time):
            raise DirectionsUnavailableError("REQUEST_DENIED")

    model = TravelCostModel(Broken(), bucket_minutes=15, speed_kmh=40)
    with pytest.raises(DirectionsUnavailableError):
        model.edge("a", Coordinate(0.0, 0.0), "b", Coordinate(0.0, 0.01), datetime(2030, 1, 1, tzinfo=timezone.utc))


def test_call_budget_is_enforced_before_the_request():
    provider = CountingDirections()
    model = TravelCostModel(provider, bucket_minutes=15, speed_kmh=40, call_budget=2)
    a, b, c = Coordinate(0.0, 0.0), Coordinate(0.0, 0.01), Coordinate(0.0, 0.02)
    departure = datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc)

    model.edge("a", a, "b", b, departure)
    model.edge("b", b, "c", c, departure)
    model.edge("a", a, "b", b, departure)
    with pytest.raises(DirectionsUnavailableError):
        model.edge("a", a, "c", c, departure)

    assert len(provider.departures) == 2


def test_naive_departures_are_bucketed_in_the_service_timezone(monkeypatch: pytest.MonkeyPatch):
    from dispatch_engine.config import settings

    monkeypatch.setattr(settings, "timezone", "America/New_York")
    provider = CountingDirections()
    model = TravelCostModel(provider, bucket_minutes=15, speed_kmh=40)

    model.edge("a", Coordinate(0.0, 0.0), "b", Coordinate(0.0, 0.01), datetime(2030, 1, 1, 8, 7))

    assert provider.departures == [datetime(2030, 1, 1, 13, 0, tzinfo=timezone.utc)]
