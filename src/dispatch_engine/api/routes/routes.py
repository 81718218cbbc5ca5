"""Route optimization endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, status

from ...schemas.routing import RouteOptimizationRequest, RouteOptimizationResponse
from ...services.calendar import parse_departure_time
from ...services.routing import service
from ..errors import raise_http_error

router = APIRouter(prefix="/route-optimization", tags=["routes"])


@router.get("", response_model=RouteOptimizationResponse, status_code=status.HTTP_200_OK)
def optimize_vehicle_route(
    date: str = Query(..., description="Service date in YYYY-MM-DD format"),
    vehicle_id: str = Query(..., alias="vehicleId", description="Vehicle whose scheduled jobs are routed"),
    start_location: Optional[str] = Query(
        default=None, alias="startLocation", description="'lat,lng' pair or street address"
    ),
    departure_time: Optional[str] = Query(default=None, alias="departureTime", description="ISO 8601 departure"),
) -> RouteOptimizationResponse:
    try:
        result = service.optimize_for_vehicle(
            date,
            vehicle_id,
            start_location,
            departure_time=parse_departure_time(departure_time),
        )
        return RouteOptimizationResponse.from_domain(result)
    except Exception as exc:
        raise_http_error(exc, "optimize route")


@router.post("", response_model=RouteOptimizationResponse, status_code=status.HTTP_200_OK)
def optimize_route(payload: RouteOptimizationRequest) -> RouteOptimizationResponse:
    """Optimize an explicit list of stops."""
    try:
        result = service.optimize_jobs(
            [job.to_domain() for job in payload.jobs],
            payload.start_location,
            departure_time=payload.departure_time,
        )
        return RouteOptimizationResponse.from_domain(result)
    except Exception as exc:
        raise_http_error(exc, "optimize route")
