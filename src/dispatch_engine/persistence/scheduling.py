"""Read-only access to scheduling data: jobs, inspections and display profiles."""

from __future__ import annotations

import logging
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Iterable, Optional, Protocol

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import StoreUnavailableError
from ..models.domain import (
    Coordinate,
    InspectionRecord,
    JobLocation,
    JobStatus,
    Priority,
    ProjectProfile,
    UserProfile,
    VehicleProfile,
)
from ..services.calendar import day_bounds, local_date, localize

logger = logging.getLogger(__name__)


class SchedulingStore(Protocol):
    def jobs_for_date(self, service_date: date) -> list[JobLocation]: ...

    def inspections_for_date(self, service_date: date) -> list[InspectionRecord]: ...

    def users(self, user_ids: Iterable[str]) -> dict[str, UserProfile]: ...

    def vehicles(self, vehicle_ids: Iterable[str]) -> dict[str, VehicleProfile]: ...

    def projects(self, project_ids: Iterable[str]) -> dict[str, ProjectProfile]: ...


class InMemorySchedulingStore:
    """Scheduling data held in process; filled by tests or an import job."""

    def __init__(
        self,
        jobs: Iterable[JobLocation] = (),
        inspections: Iterable[InspectionRecord] = (),
        users: Iterable[UserProfile] = (),
        vehicles: Iterable[VehicleProfile] = (),
        projects: Iterable[ProjectProfile] = (),
    ) -> None:
        self._jobs = list(jobs)
        self._inspections = list(inspections)
        self._users = {user.id: user for user in users}
        self._vehicles = {vehicle.id: vehicle for vehicle in vehicles}
        self._projects = {project.id: project for project in projects}

    def jobs_for_date(self, service_date: date) -> list[JobLocation]:
        return [job for job in self._jobs if local_date(job.scheduled_time) == service_date]

    def inspections_for_date(self, service_date: date) -> list[InspectionRecord]:
        return [record for record in self._inspections if record.inspection_date == service_date]

    def users(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        return {uid: self._users[uid] for uid in user_ids if uid in self._users}

    def vehicles(self, vehicle_ids: Iterable[str]) -> dict[str, VehicleProfile]:
        return {vid: self._vehicles[vid] for vid in vehicle_ids if vid in self._vehicles}

    def projects(self, project_ids: Iterable[str]) -> dict[str, ProjectProfile]:
        return {pid: self._projects[pid] for pid in project_ids if pid in self._projects}


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return localize(value)
    return localize(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def _row_to_job(row: dict[str, Any]) -> JobLocation:
    latitude, longitude = row.get("latitude"), row.get("longitude")
    coordinates = None
    if latitude is not None and longitude is not None:
        coordinates = Coordinate(lat=float(latitude), lng=float(longitude))
    return JobLocation(
        id=str(row["id"]),
        project_id=str(row["project_id"]),
        address=row.get("address") or "",
        scheduled_time=_parse_datetime(row["scheduled_time"]),
        estimated_duration_minutes=int(row.get("estimated_duration_minutes") or 0),
        coordinates=coordinates,
        assigned_technician_id=_optional_str(row.get("assigned_technician_id")),
        priority=Priority(row.get("priority") or Priority.MEDIUM.value),
        status=JobStatus(str(row.get("status") or JobStatus.SCHEDULED.value).replace("-", "_")),
        vehicle_id=_optional_str(row.get("vehicle_id")),
        project_name=row.get("project_name"),
    )


class SupabaseSchedulingStore:
    def __init__(self, client) -> None:
        self.client = client

    def _select(self, table: str, build):
        try:
            return build(self.client.table(table).select("*")).execute().data or []
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to read {table}: {exc}") from exc

    def jobs_for_date(self, service_date: date) -> list[JobLocation]:
        start, end = day_bounds(service_date)
        rows = self._select(
            settings.jobs_table,
            lambda query: query.gte("scheduled_time", start.isoformat()).lt("scheduled_time", end.isoformat()),
        )
        jobs: list[JobLocation] = []
        for row in rows:
            try:
                jobs.append(_row_to_job(row))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid job row {row.get('id')}: {e}")
        return jobs

    def inspections_for_date(self, service_date: date) -> list[InspectionRecord]:
        rows = self._select(
            settings.inspections_table,
            lambda query: query.eq("inspection_date", service_date.isoformat()),
        )
        return [
            InspectionRecord(
                user_id=str(row["user_id"]),
                vehicle_id=str(row["vehicle_id"]),
                inspection_date=service_date,
                completed_at=_parse_datetime(row.get("completed_at")),
            )
            for row in rows
        ]

    def users(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        rows = self._select(settings.users_table, lambda query: query.in_("id", ids))
        return {
            str(row["id"]): UserProfile(
                id=str(row["id"]),
                first_name=row.get("first_name"),
                last_name=row.get("last_name"),
                email=row.get("email"),
            )
            for row in rows
        }

    def vehicles(self, vehicle_ids: Iterable[str]) -> dict[str, VehicleProfile]:
        ids = sorted(set(vehicle_ids))
        if not ids:
            return {}
        rows = self._select(settings.vehicles_table, lambda query: query.in_("id", ids))
        return {
            str(row["id"]): VehicleProfile(
                id=str(row["id"]),
                vehicle_number=_optional_str(row.get("vehicle_number")),
                license_plate=row.get("license_plate"),
                make=row.get("make"),
                model=row.get("model"),
            )
            for row in rows
        }

    def projects(self, project_ids: Iterable[str]) -> dict[str, ProjectProfile]:
        ids = sorted(set(project_ids))
        if not ids:
            return {}
        rows = self._select(settings.projects_table, lambda query: query.in_("id", ids))
        return {
            str(row["id"]): ProjectProfile(
                id=str(row["id"]),
                name=row.get("name"),
                description=row.get("description"),
                address=row.get("address"),
                status=row.get("status"),
            )
            for row in rows
        }


@lru_cache()
def get_scheduling_store() -> SchedulingStore:
    client = get_supabase_client()
    if client is None:
        return InMemorySchedulingStore()
    return SupabaseSchedulingStore(client)
