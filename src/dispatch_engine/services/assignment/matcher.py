"""Technician ↔ job matching through same-day vehicle inspections."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterator, Optional, Sequence

from ...errors import DuplicateActiveAssignmentError
from ...models.domain import (
    AutoConnectResult,
    InspectionRecord,
    JobLocation,
    JobStatus,
    SkippedTechnician,
    VehicleJobAssignment,
)
from ...persistence.assignments import DispatchStore
from ...persistence.scheduling import SchedulingStore
from ..calendar import local_date

ALREADY_ASSIGNED = "already_assigned"
JOB_ALREADY_ASSIGNED = "job_already_assigned"
NO_MATCHING_VEHICLE = "no_matching_vehicle"
INSPECTION_INCOMPLETE = "inspection_incomplete"

# A conflicting write from another writer between our read and our write forces a re-plan.
MAX_PLAN_ATTEMPTS = 2

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AssignmentPlan:
    proposed: list[VehicleJobAssignment] = field(default_factory=list)
    skipped: list[SkippedTechnician] = field(default_factory=list)


def _technicians(inspections: Sequence[InspectionRecord], service_date: date) -> dict[tuple[str, str], bool]:
    """Distinct (user, vehicle) pairs inspected on the date, mapped to whether any inspection completed."""
    pairs: dict[tuple[str, str], bool] = {}
    for record in inspections:
        if record.inspection_date != service_date:
            continue
        key = (record.user_id, record.vehicle_id)
        pairs[key] = pairs.get(key, False) or record.is_complete
    return pairs


def _jobs_by_vehicle(jobs: Sequence[JobLocation], service_date: date) -> dict[str, list[JobLocation]]:
    grouped: dict[str, list[JobLocation]] = defaultdict(list)
    for job in jobs:
        if job.vehicle_id is None or job.status != JobStatus.SCHEDULED:
            continue
        if local_date(job.scheduled_time) != service_date:
            continue
        grouped[job.vehicle_id].append(job)
    for vehicle_jobs in grouped.values():
        vehicle_jobs.sort(key=lambda job: (job.scheduled_time.isoformat(), job.id))
    return grouped


def plan_assignments(
    service_date: date,
    inspections: Sequence[InspectionRecord],
    jobs: Sequence[JobLocation],
    active: Sequence[VehicleJobAssignment],
) -> AssignmentPlan:
    """Join inspected technicians to their vehicle's scheduled jobs for one date.

    Pairs are visited in (user, vehicle) order so that when two technicians share a vehicle
    the first one claims its projects and the second is skipped.
    """
    plan = AssignmentPlan()
    active_keys = {assignment.active_key for assignment in active if assignment.is_active}
    claimed: dict[str, str] = {}
    for assignment in active:
        if assignment.is_active and assignment.assignment_date == service_date:
            claimed.setdefault(assignment.project_id, assignment.user_id)

    jobs_by_vehicle = _jobs_by_vehicle(jobs, service_date)

    for (user_id, vehicle_id), complete in sorted(_technicians(inspections, service_date).items()):
        if not complete:
            plan.skipped.append(SkippedTechnician(user_id=user_id, vehicle_id=vehicle_id, reason=INSPECTION_INCOMPLETE))
            continue
        vehicle_jobs = jobs_by_vehicle.get(vehicle_id)
        if not vehicle_jobs:
            plan.skipped.append(SkippedTechnician(user_id=user_id, vehicle_id=vehicle_id, reason=NO_MATCHING_VEHICLE))
            continue

        seen_projects: set[str] = set()
        for job in vehicle_jobs:
            project_id = job.project_id
            if project_id in seen_projects:
                continue
            seen_projects.add(project_id)

            key = (user_id, project_id, service_date)
            if key in active_keys:
                reason = ALREADY_ASSIGNED
            elif claimed.get(project_id, user_id) != user_id:
                reason = JOB_ALREADY_ASSIGNED
            elif job.assigned_technician_id is not None and job.assigned_technician_id != user_id:
                reason = JOB_ALREADY_ASSIGNED
            else:
                reason = None

            if reason is not None:
                plan.skipped.append(
                    SkippedTechnician(user_id=user_id, vehicle_id=vehicle_id, project_id=project_id, reason=reason)
                )
                continue

            plan.proposed.append(
                VehicleJobAssignment(
                    id=None,
                    user_id=user_id,
                    vehicle_id=vehicle_id,
                    project_id=project_id,
                    inspection_date=service_date,
                    assignment_date=service_date,
                    is_active=True,
                    notes="Auto-connected from vehicle inspection",
                )
            )
            claimed[project_id] = user_id
            active_keys.add(key)
    return plan


@dataclass(slots=True)
class _DateLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class AssignmentMatcher:
    """Runs auto-connect and manual assignment changes, one writer per date at a time."""

    def __init__(self, scheduling: SchedulingStore, store: DispatchStore) -> None:
        self.scheduling = scheduling
        self.store = store
        self._guard = threading.Lock()
        self._date_locks: dict[date, _DateLock] = {}

    @contextmanager
    def _lock_for(self, service_date: date) -> Iterator[None]:
        """Serialize writers for one date; the entry is dropped once nobody holds or awaits it."""
        with self._guard:
            entry = self._date_locks.get(service_date)
            if entry is None:
                entry = self._date_locks[service_date] = _DateLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._date_locks[service_date]

    def auto_connect(self, service_date: date, cancel_event: threading.Event | None = None) -> AutoConnectResult:
        """Create assignments for every inspected technician whose vehicle has scheduled jobs.

        All candidate reads happen before the single batch write. Re-running for the same
        date creates nothing new and reports ``already_assigned`` for the existing tuples.
        """
        with self._lock_for(service_date):
            attempt = 0
            while True:
                attempt += 1
                inspections = self.scheduling.inspections_for_date(service_date)
                jobs = self.scheduling.jobs_for_date(service_date)
                active = self.store.list_active(service_date)
                plan = plan_assignments(service_date, inspections, jobs, active)

                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"Auto-connect for {service_date} cancelled before writing {len(plan.proposed)} assignment(s)")
                    return AutoConnectResult(assignment_date=service_date, skipped=plan.skipped, cancelled=True)

                try:
                    committed_ids = self.store.create_batch(plan.proposed)
                except DuplicateActiveAssignmentError as exc:
                    if attempt >= MAX_PLAN_ATTEMPTS:
                        raise
                    logger.warning(f"Auto-connect for {service_date} raced another writer ({exc}); re-planning")
                    continue

                created = [
                    replace(assignment, id=assignment_id)
                    for assignment, assignment_id in zip(plan.proposed, committed_ids)
                ]
                logger.info(
                    f"Auto-connect for {service_date}: {len(created)} created, {len(plan.skipped)} skipped"
                )
                return AutoConnectResult(assignment_date=service_date, created=created, skipped=plan.skipped)

    def create_manual(
        self,
        *,
        user_id: str,
        vehicle_id: str,
        project_id: str,
        service_date: date,
        notes: Optional[str] = None,
    ) -> VehicleJobAssignment:
        """Assign a project to a technician, deactivating anyone else holding it that date.

        The new assignment is committed before the previous holders are released, so a failed
        write leaves the project with its current holder.
        """
        with self._lock_for(service_date):
            previous = []
            for assignment in self.store.list_active(service_date):
                if assignment.project_id != project_id:
                    continue
                if assignment.user_id == user_id:
                    raise DuplicateActiveAssignmentError(user_id, project_id, service_date)
                previous.append(assignment)

            assignment = VehicleJobAssignment(
                id=None,
                user_id=user_id,
                vehicle_id=vehicle_id,
                project_id=project_id,
                inspection_date=service_date,
                assignment_date=service_date,
                is_active=True,
                notes=notes,
            )
            [assignment_id] = self.store.create_batch([assignment])
            for holder in previous:
                logger.info(
                    f"Reassigning project {project_id} on {service_date} from user {holder.user_id} to {user_id}"
                )
                self.store.deactivate(holder.id)
            return self.store.get(assignment_id)

    def deactivate(self, assignment_id: str) -> VehicleJobAssignment:
        return self.store.deactivate(assignment_id)
