"""Traffic-aware ordering of a technician's stops.

The cost of visiting stops in a given order is the sum of traffic-adjusted travel times.
Candidate orders are compared on hop prices taken at the route departure, so the search
needs at most one directions request per ordered pair of points. The chosen order is then
re-priced hop by hop at its projected departure times (travel so far plus on-site service
time), which adds at most one request per stop. Hop prices are asymmetric.

Small stop sets are searched exhaustively. Larger ones are built by cheapest insertion
and improved with 2-opt reversals and single-stop relocations until no move helps.
Orders whose totals are within ``tie_epsilon_seconds`` of each other are ranked by
priority (higher first), then scheduled time, then job id, so results are deterministic.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterator, Optional, Sequence

from ...config import settings
from ...errors import DirectionsUnavailableError, InvalidInputError, OperationCancelled
from ...models.domain import Coordinate, JobLocation
from ..calendar import to_utc
from ..geocoding.models import GeocodeResult
from ..geocoding.resolver import GeocodingResolver
from .cost_model import EdgeCost, TravelCostModel
from .models import DirectionsProvider, ExcludedStop, RouteLeg, RouteOptimization

logger = logging.getLogger(__name__)

START_KEY = "__start__"


@dataclass(slots=True)
class OptimizerOptions:
    tie_epsilon_seconds: float = field(default_factory=lambda: settings.tie_epsilon_seconds)
    exact_search_max_stops: int = field(default_factory=lambda: settings.exact_search_max_stops)
    local_search_max_passes: int = field(default_factory=lambda: settings.local_search_max_passes)
    bucket_minutes: int = field(default_factory=lambda: settings.departure_bucket_minutes)
    fallback_speed_kmh: float = field(default_factory=lambda: settings.fallback_speed_kmh)
    directions_call_budget: int = field(default_factory=lambda: settings.directions_call_budget)


@dataclass(frozen=True, slots=True)
class LocatedStop:
    job_id: str
    coordinate: Coordinate
    service_seconds: float
    priority_rank: int
    scheduled_ts: float


def _located(job: JobLocation, coordinate: Coordinate) -> LocatedStop:
    return LocatedStop(
        job_id=job.id,
        coordinate=coordinate,
        service_seconds=max(0, job.estimated_duration_minutes) * 60.0,
        priority_rank=job.priority.rank,
        scheduled_ts=to_utc(job.scheduled_time).timestamp(),
    )


class _OrderSearch:
    """Evaluates and searches stop orders against one cost model."""

    def __init__(
        self,
        start: Coordinate,
        stops: Sequence[LocatedStop],
        departure: datetime,
        model: TravelCostModel,
        options: OptimizerOptions,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.start = start
        self.stops = stops
        self.departure = departure
        self.model = model
        self.options = options
        self.cancel_event = cancel_event
        self._memo: dict[tuple[int, ...], float] = {}

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise OperationCancelled("Route optimization cancelled")

    def schedule(
        self, order: Sequence[int], pinned: bool = False
    ) -> Iterator[tuple[int, EdgeCost, datetime, datetime]]:
        """Yield ``(stop index, edge, departure, arrival)`` per hop along the order.

        With ``pinned`` every hop is priced at the route departure instead of its own.
        """
        clock = self.departure
        previous_key, previous_coordinate = START_KEY, self.start
        for index in order:
            stop = self.stops[index]
            priced_at = self.departure if pinned else clock
            edge = self.model.edge(previous_key, previous_coordinate, stop.job_id, stop.coordinate, priced_at)
            arrival = clock + timedelta(seconds=edge.travel_seconds)
            yield index, edge, clock, arrival
            clock = arrival + timedelta(seconds=stop.service_seconds)
            previous_key, previous_coordinate = stop.job_id, stop.coordinate

    def cost(self, order: tuple[int, ...]) -> float:
        cached = self._memo.get(order)
        if cached is None:
            cached = sum(edge.travel_seconds for _, edge, _, _ in self.schedule(order, pinned=True))
            self._memo[order] = cached
        return cached

    def tie_key(self, order: Sequence[int]) -> tuple:
        return (
            tuple(-self.stops[i].priority_rank for i in order),
            tuple(self.stops[i].scheduled_ts for i in order),
            tuple(self.stops[i].job_id for i in order),
        )

    def better(self, candidate: tuple[int, ...], incumbent: tuple[int, ...]) -> bool:
        epsilon = self.options.tie_epsilon_seconds
        candidate_cost, incumbent_cost = self.cost(candidate), self.cost(incumbent)
        if candidate_cost < incumbent_cost - epsilon:
            return True
        if candidate_cost > incumbent_cost + epsilon:
            return False
        return self.tie_key(candidate) < self.tie_key(incumbent)

    def solve(self) -> tuple[int, ...]:
        count = len(self.stops)
        if count <= 1:
            return tuple(range(count))
        if count <= self.options.exact_search_max_stops:
            return self._exhaustive()
        return self._improve(self._cheapest_insertion())

    def _exhaustive(self) -> tuple[int, ...]:
        orders = []
        for order in itertools.permutations(range(len(self.stops))):
            self._check_cancelled()
            self.cost(order)
            orders.append(order)
        best_cost = min(self._memo[order] for order in orders)
        near_best = [order for order in orders if self._memo[order] <= best_cost + self.options.tie_epsilon_seconds]
        return min(near_best, key=self.tie_key)

    def _cheapest_insertion(self) -> tuple[int, ...]:
        remaining = sorted(
            range(len(self.stops)),
            key=lambda i: (-self.stops[i].priority_rank, self.stops[i].scheduled_ts, self.stops[i].job_id),
        )
        route: tuple[int, ...] = ()
        while remaining:
            self._check_cancelled()
            best: Optional[tuple[int, ...]] = None
            best_index = remaining[0]
            for index in remaining:
                for position in range(len(route) + 1):
                    candidate = route[:position] + (index,) + route[position:]
                    if best is None or self.better(candidate, best):
                        best, best_index = candidate, index
            route = best
            remaining.remove(best_index)
        return route

    def _neighbours(self, order: tuple[int, ...]) -> Iterator[tuple[int, ...]]:
        count = len(order)
        for i in range(count - 1):
            for j in range(i + 1, count):
                yield order[:i] + tuple(reversed(order[i : j + 1])) + order[j + 1 :]
        for i in range(count):
            moved = order[i]
            rest = order[:i] + order[i + 1 :]
            for j in range(count):
                candidate = rest[:j] + (moved,) + rest[j:]
                if candidate != order:
                    yield candidate

    def _improve(self, order: tuple[int, ...]) -> tuple[int, ...]:
        current = order
        for _ in range(self.options.local_search_max_passes):
            self._check_cancelled()
            for candidate in self._neighbours(current):
                if self.better(candidate, current):
                    current = candidate
                    break
            else:
                break
        return current


def order_stops(
    start: Coordinate,
    stops: Sequence[LocatedStop],
    departure_time: datetime,
    model: TravelCostModel,
    options: OptimizerOptions | None = None,
    cancel_event: threading.Event | None = None,
) -> tuple[list[str], list[RouteLeg]]:
    """Order located stops under ``model`` and return the job ids with their legs."""
    search = _OrderSearch(start, stops, to_utc(departure_time), model, options or OptimizerOptions(), cancel_event)
    order = search.solve()
    legs: list[RouteLeg] = []
    previous_id: Optional[str] = None
    for index, edge, departed, arrived in search.schedule(order):
        stop = stops[index]
        legs.append(
            RouteLeg(
                from_job_id=previous_id,
                to_job_id=stop.job_id,
                distance_meters=edge.distance_meters,
                duration_seconds=edge.duration_seconds,
                traffic_delay_seconds=edge.traffic_delay_seconds,
                traffic_condition=edge.traffic_condition,
                departure_time=departed,
                arrival_time=arrived,
            )
        )
        previous_id = stop.job_id
    return [stops[index].job_id for index in order], legs


def locate_stops(
    stops: Sequence[JobLocation],
    resolver: GeocodingResolver | None,
    cancel_event: threading.Event | None = None,
) -> tuple[list[LocatedStop], list[ExcludedStop], list[str]]:
    """Attach coordinates to every stop, geocoding the ones that lack them.

    Returns the located stops in input order, the excluded stops with reasons, and the ids
    of stops placed by an approximate or fallback coordinate. All lookups finish before
    this returns.
    """
    pending = [job for job in stops if job.coordinates is None and job.address and job.address.strip()]
    outcomes = {}
    if pending and resolver is not None:
        outcomes = resolver.resolve_many([job.address for job in pending], cancel_event=cancel_event)

    located: list[LocatedStop] = []
    excluded: list[ExcludedStop] = []
    approximate: list[str] = []
    fallback = resolver.fallback_result() if resolver is not None else None
    for job in stops:
        if job.coordinates is not None:
            if resolver is not None and job.address:
                resolver.prime(job.address, job.coordinates)
            located.append(_located(job, job.coordinates))
            continue
        if not job.address or not job.address.strip():
            excluded.append(ExcludedStop(job_id=job.id, reason="missing_address"))
            continue
        outcome = outcomes.get(job.address)
        if isinstance(outcome, GeocodeResult):
            located.append(_located(job, outcome.coordinate))
            if outcome.confidence != "exact":
                approximate.append(job.id)
        elif fallback is not None:
            logger.warning(f"Placing job {job.id} at the service-area fallback coordinate")
            located.append(_located(job, fallback.coordinate))
            approximate.append(job.id)
        else:
            reason = outcome.reason if outcome is not None else "geocoding_unavailable"
            excluded.append(ExcludedStop(job_id=job.id, reason=reason))
    return located, excluded, approximate


def optimize(
    start: Coordinate,
    stops: Sequence[JobLocation],
    departure_time: datetime,
    *,
    directions: DirectionsProvider | None,
    resolver: GeocodingResolver | None = None,
    options: OptimizerOptions | None = None,
    cancel_event: threading.Event | None = None,
) -> RouteOptimization:
    """Compute a traffic-aware route from ``start`` through ``stops``.

    Stops without coordinates are geocoded first; the ones that cannot be placed are
    excluded and reported. When ``directions`` is missing or fails, the route is ordered on
    straight-line distances and returned with ``degraded=True``.
    """
    if not stops:
        raise InvalidInputError("At least one stop is required for route optimization.")
    ids = [job.id for job in stops]
    if len(set(ids)) != len(ids):
        duplicates = sorted({job_id for job_id in ids if ids.count(job_id) > 1})
        raise InvalidInputError(f"Stop ids must be distinct; duplicated: {', '.join(duplicates)}")

    options = options or OptimizerOptions()
    departure = to_utc(departure_time)
    located, excluded, approximate = locate_stops(stops, resolver, cancel_event)
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelled("Route optimization cancelled")

    model = TravelCostModel(
        directions,
        bucket_minutes=options.bucket_minutes,
        speed_kmh=options.fallback_speed_kmh,
        call_budget=options.directions_call_budget,
    )
    try:
        order, legs = order_stops(start, located, departure, model, options, cancel_event)
    except DirectionsUnavailableError as exc:
        logger.warning(f"Directions provider unavailable ({exc}); falling back to straight-line distances")
        model = TravelCostModel(None, bucket_minutes=options.bucket_minutes, speed_kmh=options.fallback_speed_kmh)
        order, legs = order_stops(start, located, departure, model, options, cancel_event)

    result = RouteOptimization(
        optimized_order=order,
        total_distance_meters=sum(leg.distance_meters for leg in legs),
        total_duration_seconds=sum(leg.duration_seconds + leg.traffic_delay_seconds for leg in legs),
        legs=legs,
        degraded=model.degraded,
        departure_time=departure,
        excluded_stops=excluded,
        approximate_stops=approximate,
    )
    logger.info(
        f"Optimized {len(order)} stop(s) ({len(excluded)} excluded, degraded={result.degraded}, "
        f"provider calls={model.provider_calls}): {result.total_duration_seconds:.0f}s total"
    )
    return result
