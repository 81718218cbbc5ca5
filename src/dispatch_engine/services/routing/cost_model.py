"""Time-dependent travel costs between stops."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Hashable, Optional

from ...config import settings
from ...errors import DirectionsUnavailableError
from ...models.domain import Coordinate
from ..calendar import to_utc
from ..geospatial import haversine_meters
from .models import DirectionsProvider, LegEstimate, TrafficCondition


@dataclass(frozen=True, slots=True)
class EdgeCost:
    distance_meters: float
    duration_seconds: float
    traffic_delay_seconds: float
    traffic_condition: TrafficCondition

    @property
    def travel_seconds(self) -> float:
        return self.duration_seconds + self.traffic_delay_seconds


def classify_traffic(
    duration_seconds: float,
    duration_in_traffic_seconds: Optional[float],
    moderate_ratio: float | None = None,
    heavy_ratio: float | None = None,
) -> TrafficCondition:
    """Map free-flow vs in-traffic durations onto a traffic condition."""
    if duration_in_traffic_seconds is None:
        return TrafficCondition.UNKNOWN
    moderate_ratio = settings.traffic_moderate_ratio if moderate_ratio is None else moderate_ratio
    heavy_ratio = settings.traffic_heavy_ratio if heavy_ratio is None else heavy_ratio
    if duration_in_traffic_seconds < duration_seconds:
        return TrafficCondition.LIGHT
    if duration_seconds <= 0:
        return TrafficCondition.NORMAL
    ratio = (duration_in_traffic_seconds - duration_seconds) / duration_seconds
    if ratio < moderate_ratio:
        return TrafficCondition.NORMAL
    if ratio < heavy_ratio:
        return TrafficCondition.MODERATE
    return TrafficCondition.HEAVY


def edge_from_estimate(estimate: LegEstimate) -> EdgeCost:
    in_traffic = estimate.duration_in_traffic_seconds
    delay = max(0.0, in_traffic - estimate.duration_seconds) if in_traffic is not None else 0.0
    return EdgeCost(
        distance_meters=estimate.distance_meters,
        duration_seconds=estimate.duration_seconds,
        traffic_delay_seconds=delay,
        traffic_condition=classify_traffic(estimate.duration_seconds, in_traffic),
    )


class TravelCostModel:
    """Memoized edge costs keyed by ``(origin, destination, departure bucket)``.

    With no provider the model is degraded: straight-line distances at a fixed average speed
    and every condition ``unknown``. Provider failures propagate as
    ``DirectionsUnavailableError`` so the caller can restart on a degraded model. So does a
    run that would exceed ``call_budget`` provider requests.
    """

    def __init__(
        self,
        provider: DirectionsProvider | None,
        *,
        bucket_minutes: int | None = None,
        speed_kmh: float | None = None,
        call_budget: int | None = None,
    ) -> None:
        self.provider = provider
        self.bucket_seconds = 60 * (bucket_minutes or settings.departure_bucket_minutes)
        self.speed_kmh = speed_kmh or settings.fallback_speed_kmh
        self.call_budget = call_budget or settings.directions_call_budget
        self._cache: dict[tuple[Hashable, Hashable, Optional[int]], EdgeCost] = {}
        self.provider_calls = 0

    @property
    def degraded(self) -> bool:
        return self.provider is None

    def bucket(self, departure: datetime) -> datetime:
        epoch = int(to_utc(departure).timestamp())
        return datetime.fromtimestamp(epoch - epoch % self.bucket_seconds, tz=timezone.utc)

    def edge(
        self,
        origin_key: Hashable,
        origin: Coordinate,
        destination_key: Hashable,
        destination: Coordinate,
        departure: datetime,
    ) -> EdgeCost:
        if self.degraded:
            cache_key = (origin_key, destination_key, None)
            cached = self._cache.get(cache_key)
            if cached is None:
                cached = self._straight_line(origin, destination)
                self._cache[cache_key] = cached
            return cached

        bucket = self.bucket(departure)
        cache_key = (origin_key, destination_key, int(bucket.timestamp()))
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        if origin == destination:
            cost = EdgeCost(0.0, 0.0, 0.0, TrafficCondition.NORMAL)
        else:
            if self.provider_calls >= self.call_budget:
                raise DirectionsUnavailableError(f"Directions call budget of {self.call_budget} exhausted")
            self.provider_calls += 1
            estimate = self.provider.directions(origin, [destination], bucket)[0]
            cost = edge_from_estimate(estimate)
        self._cache[cache_key] = cost
        return cost

    def _straight_line(self, origin: Coordinate, destination: Coordinate) -> EdgeCost:
        distance = haversine_meters(origin, destination)
        duration = distance / (self.speed_kmh * 1000.0 / 3600.0)
        return EdgeCost(
            distance_meters=distance,
            duration_seconds=duration,
            traffic_delay_seconds=0.0,
            traffic_condition=TrafficCondition.UNKNOWN,
        )
