"""Vehicle job assignment persistence.

Both stores enforce the same invariant at their boundary: at most one active assignment per
``(user_id, project_id, assignment_date)``. A batch that would break it is rejected whole.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import replace
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Any, Iterable, Protocol, Sequence

from postgrest.exceptions import APIError

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import AssignmentNotFoundError, DuplicateActiveAssignmentError, StoreUnavailableError
from ..models.domain import VehicleJobAssignment

UNIQUE_VIOLATION = "23505"
CONFLICT_DETAIL = re.compile(r"\(user_id, project_id, assignment_date\)=\(([^,]+), ([^,]+), ([^)]+)\)")

logger = logging.getLogger(__name__)


class DispatchStore(Protocol):
    def list_active(self, assignment_date: date) -> list[VehicleJobAssignment]: ...

    def create_batch(self, assignments: Sequence[VehicleJobAssignment]) -> list[str]: ...

    def deactivate(self, assignment_id: str) -> VehicleJobAssignment: ...

    def get(self, assignment_id: str) -> VehicleJobAssignment: ...


def _check_batch_unique(assignments: Iterable[VehicleJobAssignment]) -> None:
    seen: set[tuple[str, str, date]] = set()
    for assignment in assignments:
        if not assignment.is_active:
            continue
        key = assignment.active_key
        if key in seen:
            raise DuplicateActiveAssignmentError(*key)
        seen.add(key)


class InMemoryDispatchStore:
    """Thread-safe in-process store used when no database is configured."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, VehicleJobAssignment] = {}
        self._next_id = 1

    def _active_keys(self) -> set[tuple[str, str, date]]:
        return {row.active_key for row in self._rows.values() if row.is_active}

    def list_active(self, assignment_date: date) -> list[VehicleJobAssignment]:
        with self._lock:
            rows = [
                replace(row)
                for row in self._rows.values()
                if row.is_active and row.assignment_date == assignment_date
            ]
        return sorted(rows, key=lambda row: int(row.id))

    def create_batch(self, assignments: Sequence[VehicleJobAssignment]) -> list[str]:
        if not assignments:
            return []
        _check_batch_unique(assignments)
        now = datetime.now(timezone.utc)
        with self._lock:
            active = self._active_keys()
            for assignment in assignments:
                if assignment.is_active and assignment.active_key in active:
                    raise DuplicateActiveAssignmentError(*assignment.active_key)
            committed: list[str] = []
            for assignment in assignments:
                assignment_id = str(self._next_id)
                self._next_id += 1
                self._rows[assignment_id] = replace(assignment, id=assignment_id, created_at=assignment.created_at or now)
                committed.append(assignment_id)
        return committed

    def deactivate(self, assignment_id: str) -> VehicleJobAssignment:
        with self._lock:
            row = self._rows.get(str(assignment_id))
            if row is None:
                raise AssignmentNotFoundError(f"Assignment {assignment_id} not found")
            if row.is_active:
                row = replace(row, is_active=False, deactivated_at=datetime.now(timezone.utc))
                self._rows[row.id] = row
            return replace(row)

    def get(self, assignment_id: str) -> VehicleJobAssignment:
        with self._lock:
            row = self._rows.get(str(assignment_id))
            if row is None:
                raise AssignmentNotFoundError(f"Assignment {assignment_id} not found")
            return replace(row)


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _row_to_assignment(row: dict[str, Any]) -> VehicleJobAssignment:
    return VehicleJobAssignment(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        vehicle_id=str(row["vehicle_id"]),
        project_id=str(row["project_id"]),
        inspection_date=date.fromisoformat(str(row["inspection_date"])[:10]),
        assignment_date=date.fromisoformat(str(row["assignment_date"])[:10]),
        is_active=bool(row.get("is_active", True)),
        notes=row.get("notes"),
        created_at=_parse_timestamp(row.get("created_at")),
        deactivated_at=_parse_timestamp(row.get("deactivated_at")),
    )


def _assignment_to_row(assignment: VehicleJobAssignment) -> dict[str, Any]:
    return {
        "user_id": assignment.user_id,
        "vehicle_id": assignment.vehicle_id,
        "project_id": assignment.project_id,
        "inspection_date": assignment.inspection_date.isoformat(),
        "assignment_date": assignment.assignment_date.isoformat(),
        "is_active": assignment.is_active,
        "notes": assignment.notes,
    }


def _conflict_error(exc: APIError, assignments: Sequence[VehicleJobAssignment]) -> DuplicateActiveAssignmentError:
    """Name the batch row that hit the unique index, when Postgres reports its key."""
    match = CONFLICT_DETAIL.search(exc.details or "")
    if match is not None:
        user_id, project_id, assignment_date = (part.strip() for part in match.groups())
        for assignment in assignments:
            key = assignment.active_key
            if (key[0], key[1], key[2].isoformat()) == (user_id, project_id, assignment_date):
                return DuplicateActiveAssignmentError(*key)
    return DuplicateActiveAssignmentError()


class SupabaseDispatchStore:
    """Supabase-backed store.

    The table carries a partial unique index on ``(user_id, project_id, assignment_date)``
    where ``is_active``; a multi-row insert is one statement, so a conflicting batch
    commits nothing.
    """

    def __init__(self, client, table: str | None = None) -> None:
        self.client = client
        self.table = table or settings.assignments_table

    def _query(self):
        return self.client.table(self.table)

    def list_active(self, assignment_date: date) -> list[VehicleJobAssignment]:
        try:
            response = (
                self._query()
                .select("*")
                .eq("assignment_date", assignment_date.isoformat())
                .eq("is_active", True)
                .order("id")
                .execute()
            )
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to list assignments for {assignment_date}: {exc}") from exc
        return [_row_to_assignment(row) for row in (response.data or [])]

    def create_batch(self, assignments: Sequence[VehicleJobAssignment]) -> list[str]:
        if not assignments:
            return []
        _check_batch_unique(assignments)
        rows = [_assignment_to_row(assignment) for assignment in assignments]
        try:
            response = self._query().insert(rows).execute()
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                logger.warning(f"Assignment batch rejected by unique index: {exc.message} {exc.details or ''}")
                raise _conflict_error(exc, assignments) from exc
            raise StoreUnavailableError(f"Failed to insert assignments: {exc.message}") from exc
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to insert assignments: {exc}") from exc
        return [str(row["id"]) for row in (response.data or [])]

    def deactivate(self, assignment_id: str) -> VehicleJobAssignment:
        current = self.get(assignment_id)
        if not current.is_active:
            return current
        try:
            response = (
                self._query()
                .update({"is_active": False, "deactivated_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", assignment_id)
                .execute()
            )
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to deactivate assignment {assignment_id}: {exc}") from exc
        rows = response.data or []
        if not rows:
            raise AssignmentNotFoundError(f"Assignment {assignment_id} not found")
        return _row_to_assignment(rows[0])

    def get(self, assignment_id: str) -> VehicleJobAssignment:
        try:
            response = self._query().select("*").eq("id", assignment_id).limit(1).execute()
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to load assignment {assignment_id}: {exc}") from exc
        rows = response.data or []
        if not rows:
            raise AssignmentNotFoundError(f"Assignment {assignment_id} not found")
        return _row_to_assignment(rows[0])


@lru_cache()
def get_dispatch_store() -> DispatchStore:
    client = get_supabase_client()
    if client is None:
        return InMemoryDispatchStore()
    return SupabaseDispatchStore(client)
