"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Protocol, Sequence

from ...models.domain import Coordinate


class TrafficCondition(str, Enum):
    NORMAL = "normal"
    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class LegEstimate:
    """Provider answer for one origin→destination hop."""

    distance_meters: float
    duration_seconds: float
    duration_in_traffic_seconds: Optional[float] = None


class DirectionsProvider(Protocol):
    def directions(
        self,
        origin: Coordinate,
        waypoints: Sequence[Coordinate],
        departure_time: datetime,
    ) -> List[LegEstimate]:
        """Return one estimate per hop origin→w1→…→wn, or raise ``DirectionsUnavailableError``."""
        ...


@dataclass(slots=True)
class RouteLeg:
    from_job_id: Optional[str]
    to_job_id: str
    distance_meters: float
    duration_seconds: float
    traffic_delay_seconds: float
    traffic_condition: TrafficCondition
    departure_time: datetime
    arrival_time: datetime


@dataclass(slots=True)
class ExcludedStop:
    job_id: str
    reason: str


@dataclass(slots=True)
class RouteOptimization:
    optimized_order: List[str]
    total_distance_meters: float
    total_duration_seconds: float
    legs: List[RouteLeg]
    degraded: bool
    departure_time: datetime
    excluded_stops: List[ExcludedStop] = field(default_factory=list)
    approximate_stops: List[str] = field(default_factory=list)

    @property
    def total_traffic_delay_seconds(self) -> float:
        return sum(leg.traffic_delay_seconds for leg in self.legs)
