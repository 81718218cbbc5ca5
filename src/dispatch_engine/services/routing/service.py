"""Routing orchestration service."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from functools import lru_cache
from typing import Optional, Sequence

from ...config import settings
from ...errors import InvalidInputError
from ...models.domain import Coordinate, JobLocation, JobStatus
from ...persistence.scheduling import get_scheduling_store
from ..calendar import default_departure, local_date, parse_service_date
from ..geocoding.google_client import GoogleGeocodeClient
from ..geocoding.models import GeocodeResult
from ..geocoding.resolver import GeocodingResolver, default_fallback
from ..geospatial import parse_coordinate
from .directions_client import GoogleDirectionsClient
from .models import DirectionsProvider, RouteOptimization
from .optimizer import optimize

logger = logging.getLogger(__name__)


@lru_cache()
def get_resolver() -> Optional[GeocodingResolver]:
    """Process-wide resolver; ``None`` when no geocoding key is configured."""
    if not settings.google_maps_api_key:
        logger.warning("DISPATCH_GOOGLE_MAPS_API_KEY not set; addresses without coordinates cannot be geocoded")
        return None
    return GeocodingResolver(GoogleGeocodeClient())


@lru_cache()
def get_directions_provider() -> Optional[DirectionsProvider]:
    if not settings.google_maps_api_key:
        logger.warning("DISPATCH_GOOGLE_MAPS_API_KEY not set; routes will use straight-line estimates")
        return None
    return GoogleDirectionsClient()


def resolve_start(start_location: str | None) -> Coordinate:
    """Turn a ``"lat,lng"`` pair or an address into the route's starting coordinate.

    Without a start location the organization fallback is used when one is configured.
    """
    if start_location is None or not start_location.strip():
        fallback = default_fallback()
        if fallback is None:
            raise InvalidInputError("startLocation is required.")
        return fallback

    coordinate = parse_coordinate(start_location)
    if coordinate is not None:
        return coordinate

    resolver = get_resolver()
    if resolver is None:
        raise InvalidInputError(
            f"Start location '{start_location}' is not a 'lat,lng' pair and geocoding is not configured."
        )
    outcome = resolver.resolve(start_location)
    if isinstance(outcome, GeocodeResult):
        return outcome.coordinate
    raise InvalidInputError(f"Start location '{start_location}' could not be geocoded ({outcome.reason}).")


def optimize_jobs(
    jobs: Sequence[JobLocation],
    start_location: str | None,
    departure_time: Optional[datetime] = None,
    cancel_event: threading.Event | None = None,
) -> RouteOptimization:
    """Optimize an explicit list of stops."""
    if not jobs:
        raise InvalidInputError("At least one stop is required for route optimization.")
    start = resolve_start(start_location)
    if departure_time is None:
        departure_time = default_departure(min(local_date(job.scheduled_time) for job in jobs))
    return optimize(
        start,
        jobs,
        departure_time,
        directions=get_directions_provider(),
        resolver=get_resolver(),
        cancel_event=cancel_event,
    )


def jobs_for_vehicle(service_date: date, vehicle_id: str) -> list[JobLocation]:
    jobs = get_scheduling_store().jobs_for_date(service_date)
    return [job for job in jobs if job.vehicle_id == vehicle_id and job.status == JobStatus.SCHEDULED]


def optimize_for_vehicle(
    date_value: str | date,
    vehicle_id: str,
    start_location: str | None,
    departure_time: Optional[datetime] = None,
    cancel_event: threading.Event | None = None,
) -> RouteOptimization:
    """Optimize the scheduled stops of one vehicle on one service date."""
    service_date = parse_service_date(date_value)
    if not vehicle_id or not str(vehicle_id).strip():
        raise InvalidInputError("vehicleId is required.")

    jobs = jobs_for_vehicle(service_date, str(vehicle_id))
    if not jobs:
        raise InvalidInputError(f"No scheduled jobs for vehicle {vehicle_id} on {service_date}.")

    logger.info(f"Optimizing {len(jobs)} stop(s) for vehicle {vehicle_id} on {service_date}")
    return optimize_jobs(
        jobs,
        start_location,
        departure_time or default_departure(service_date),
        cancel_event=cancel_event,
    )
