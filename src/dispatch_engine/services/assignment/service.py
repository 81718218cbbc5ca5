"""Assignment orchestration used by the HTTP layer."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Optional

from ...errors import InvalidInputError
from ...models.domain import (
    AutoConnectResult,
    ProjectProfile,
    UserProfile,
    VehicleJobAssignment,
    VehicleProfile,
)
from ...persistence.assignments import get_dispatch_store
from ...persistence.scheduling import get_scheduling_store
from ..calendar import parse_service_date
from .matcher import AssignmentMatcher


@dataclass(slots=True)
class AssignmentDetail:
    assignment: VehicleJobAssignment
    user: Optional[UserProfile]
    vehicle: Optional[VehicleProfile]
    project: Optional[ProjectProfile]


@dataclass(slots=True)
class InspectionCandidate:
    user_id: str
    vehicle_id: str
    inspection_date: date
    completed_at: Optional[datetime]
    user: Optional[UserProfile]
    vehicle: Optional[VehicleProfile]

    @property
    def inspection_complete(self) -> bool:
        return self.completed_at is not None


@lru_cache()
def get_matcher() -> AssignmentMatcher:
    return AssignmentMatcher(get_scheduling_store(), get_dispatch_store())


def list_assignments(date_value: str | date) -> list[AssignmentDetail]:
    service_date = parse_service_date(date_value)
    matcher = get_matcher()
    active = matcher.store.list_active(service_date)
    users = matcher.scheduling.users(a.user_id for a in active)
    vehicles = matcher.scheduling.vehicles(a.vehicle_id for a in active)
    projects = matcher.scheduling.projects(a.project_id for a in active)
    return [
        AssignmentDetail(
            assignment=assignment,
            user=users.get(assignment.user_id),
            vehicle=vehicles.get(assignment.vehicle_id),
            project=projects.get(assignment.project_id),
        )
        for assignment in active
    ]


def auto_connect(date_value: str | date, cancel_event: threading.Event | None = None) -> AutoConnectResult:
    return get_matcher().auto_connect(parse_service_date(date_value), cancel_event=cancel_event)


def users_with_inspections(date_value: str | date) -> list[InspectionCandidate]:
    """Technicians with an inspection on the date, one entry per (user, vehicle) pair."""
    service_date = parse_service_date(date_value)
    scheduling = get_matcher().scheduling
    latest: dict[tuple[str, str], Optional[datetime]] = {}
    for record in scheduling.inspections_for_date(service_date):
        key = (record.user_id, record.vehicle_id)
        current = latest.get(key)
        if key not in latest or (record.completed_at is not None and (current is None or record.completed_at > current)):
            latest[key] = record.completed_at

    users = scheduling.users(user_id for user_id, _ in latest)
    vehicles = scheduling.vehicles(vehicle_id for _, vehicle_id in latest)
    return [
        InspectionCandidate(
            user_id=user_id,
            vehicle_id=vehicle_id,
            inspection_date=service_date,
            completed_at=completed_at,
            user=users.get(user_id),
            vehicle=vehicles.get(vehicle_id),
        )
        for (user_id, vehicle_id), completed_at in sorted(latest.items())
    ]


def create_assignment(
    *,
    user_id: str,
    vehicle_id: str,
    project_id: str,
    date_value: str | date,
    notes: Optional[str] = None,
) -> VehicleJobAssignment:
    for name, value in (("userId", user_id), ("vehicleId", vehicle_id), ("projectId", project_id)):
        if not value or not str(value).strip():
            raise InvalidInputError(f"{name} is required.")
    return get_matcher().create_manual(
        user_id=str(user_id),
        vehicle_id=str(vehicle_id),
        project_id=str(project_id),
        service_date=parse_service_date(date_value),
        notes=notes,
    )


def deactivate_assignment(assignment_id: str) -> VehicleJobAssignment:
    return get_matcher().deactivate(assignment_id)
