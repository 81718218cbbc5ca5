"""Route optimization request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.domain import Coordinate, JobLocation, JobStatus, Priority
from ..services.calendar import localize
from ..services.routing.models import RouteOptimization


class CoordinateModel(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class JobLocationModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    project_id: str = Field("", alias="projectId")
    address: str = ""
    coordinates: Optional[CoordinateModel] = None
    scheduled_time: datetime = Field(..., alias="scheduledTime")
    estimated_duration_minutes: int = Field(0, ge=0, alias="estimatedDurationMinutes")
    assigned_technician_id: Optional[str] = Field(None, alias="assignedTechnicianId")
    priority: Priority = Priority.MEDIUM
    status: JobStatus = JobStatus.SCHEDULED
    vehicle_id: Optional[str] = Field(None, alias="vehicleId")
    project_name: Optional[str] = Field(None, alias="projectName")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        # Scheduling data spells it "in-progress".
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("scheduled_time")
    @classmethod
    def localize_scheduled_time(cls, value: datetime) -> datetime:
        return localize(value)

    def to_domain(self) -> JobLocation:
        return JobLocation(
            id=self.id,
            project_id=self.project_id,
            address=self.address,
            scheduled_time=self.scheduled_time,
            estimated_duration_minutes=self.estimated_duration_minutes,
            coordinates=Coordinate(lat=self.coordinates.lat, lng=self.coordinates.lng) if self.coordinates else None,
            assigned_technician_id=self.assigned_technician_id,
            priority=self.priority,
            status=self.status,
            vehicle_id=self.vehicle_id,
            project_name=self.project_name,
        )


class RouteOptimizationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    jobs: List[JobLocationModel] = Field(..., description="Stops to visit.")
    start_location: Optional[str] = Field(
        None,
        alias="startLocation",
        description="'lat,lng' pair or street address. Defaults to the organization fallback.",
    )
    departure_time: Optional[datetime] = Field(None, alias="departureTime")

    @field_validator("departure_time")
    @classmethod
    def localize_departure_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return localize(value) if value is not None else None


class RouteLegModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_job_id: Optional[str] = Field(None, alias="fromJobId")
    to_job_id: str = Field(..., alias="toJobId")
    distance_meters: float = Field(..., alias="distanceMeters")
    duration_seconds: float = Field(..., alias="durationSeconds")
    traffic_delay_seconds: float = Field(..., alias="trafficDelaySeconds")
    traffic_condition: str = Field(..., alias="trafficCondition")
    departure_time: datetime = Field(..., alias="departureTime")
    arrival_time: datetime = Field(..., alias="arrivalTime")


class ExcludedStopModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    reason: str


class RouteOptimizationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    optimized_order: List[str] = Field(..., alias="optimizedOrder")
    total_distance_meters: float = Field(..., alias="totalDistanceMeters")
    total_duration_seconds: float = Field(..., alias="totalDurationSeconds")
    total_traffic_delay_seconds: float = Field(..., alias="totalTrafficDelaySeconds")
    departure_time: datetime = Field(..., alias="departureTime")
    degraded: bool
    legs: List[RouteLegModel]
    excluded_stops: List[ExcludedStopModel] = Field(default_factory=list, alias="excludedStops")
    approximate_stops: List[str] = Field(default_factory=list, alias="approximateStops")

    @classmethod
    def from_domain(cls, result: RouteOptimization) -> "RouteOptimizationResponse":
        return cls(
            optimized_order=list(result.optimized_order),
            total_distance_meters=round(result.total_distance_meters, 1),
            total_duration_seconds=round(result.total_duration_seconds, 1),
            total_traffic_delay_seconds=round(result.total_traffic_delay_seconds, 1),
            departure_time=result.departure_time,
            degraded=result.degraded,
            legs=[
                RouteLegModel(
                    from_job_id=leg.from_job_id,
                    to_job_id=leg.to_job_id,
                    distance_meters=round(leg.distance_meters, 1),
                    duration_seconds=round(leg.duration_seconds, 1),
                    traffic_delay_seconds=round(leg.traffic_delay_seconds, 1),
                    traffic_condition=leg.traffic_condition.value,
                    departure_time=leg.departure_time,
                    arrival_time=leg.arrival_time,
                )
                for leg in result.legs
            ],
            excluded_stops=[ExcludedStopModel(job_id=stop.job_id, reason=stop.reason) for stop in result.excluded_stops],
            approximate_stops=list(result.approximate_stops),
        )
