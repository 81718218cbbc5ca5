"""Domain models for jobs, inspections and vehicle assignments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}


class JobStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(slots=True)
class JobLocation:
    """A scheduled job at a street address, optionally linked to a vehicle upstream."""

    id: str
    project_id: str
    address: str
    scheduled_time: datetime
    estimated_duration_minutes: int = 0
    coordinates: Optional[Coordinate] = None
    assigned_technician_id: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    status: JobStatus = JobStatus.SCHEDULED
    vehicle_id: Optional[str] = None
    project_name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class InspectionRecord:
    user_id: str
    vehicle_id: str
    inspection_date: date
    completed_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None


@dataclass(slots=True)
class VehicleJobAssignment:
    """Links a technician and vehicle to a project for one assignment date."""

    id: Optional[str]
    user_id: str
    vehicle_id: str
    project_id: str
    inspection_date: date
    assignment_date: date
    is_active: bool = True
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    deactivated_at: Optional[datetime] = None

    @property
    def active_key(self) -> tuple[str, str, date]:
        return (self.user_id, self.project_id, self.assignment_date)


@dataclass(slots=True)
class UserProfile:
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


@dataclass(slots=True)
class VehicleProfile:
    id: str
    vehicle_number: Optional[str] = None
    license_plate: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None


@dataclass(slots=True)
class ProjectProfile:
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    status: Optional[str] = None


@dataclass(slots=True)
class SkippedTechnician:
    user_id: str
    reason: str
    vehicle_id: Optional[str] = None
    project_id: Optional[str] = None


@dataclass(slots=True)
class AutoConnectResult:
    assignment_date: date
    created: list[VehicleJobAssignment] = field(default_factory=list)
    skipped: list[SkippedTechnician] = field(default_factory=list)
    cancelled: bool = False
