"""Vehicle job assignment endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Query, status

from ...schemas.assignments import (
    AutoConnectRequest,
    AutoConnectResponse,
    CreateAssignmentRequest,
    VehicleJobAssignmentModel,
)
from ...services.assignment import service
from ..errors import raise_http_error

router = APIRouter(prefix="/vehicle-job-assignments", tags=["assignments"])


@router.get("", response_model=List[VehicleJobAssignmentModel], status_code=status.HTTP_200_OK)
def list_assignments(
    date: str = Query(..., description="Service date in YYYY-MM-DD format"),
) -> List[VehicleJobAssignmentModel]:
    """Active assignments for the date with technician, vehicle and project details."""
    try:
        return [VehicleJobAssignmentModel.from_detail(detail) for detail in service.list_assignments(date)]
    except Exception as exc:
        raise_http_error(exc, "list vehicle job assignments")


@router.post("/auto-connect", response_model=AutoConnectResponse, status_code=status.HTTP_200_OK)
def auto_connect(payload: AutoConnectRequest) -> AutoConnectResponse:
    """Connect inspected technicians to their vehicle's jobs for the date."""
    try:
        return AutoConnectResponse.from_domain(service.auto_connect(payload.service_date))
    except Exception as exc:
        raise_http_error(exc, "auto-connect technicians")


@router.post("", response_model=VehicleJobAssignmentModel, status_code=status.HTTP_201_CREATED)
def create_assignment(payload: CreateAssignmentRequest) -> VehicleJobAssignmentModel:
    """Assign a project to a technician, replacing whoever held it that date."""
    try:
        assignment = service.create_assignment(
            user_id=payload.user_id,
            vehicle_id=payload.vehicle_id,
            project_id=payload.project_id,
            date_value=payload.assignment_date,
            notes=payload.notes,
        )
        return VehicleJobAssignmentModel.from_domain(assignment)
    except Exception as exc:
        raise_http_error(exc, "create vehicle job assignment")


@router.post("/{assignment_id}/deactivate", response_model=VehicleJobAssignmentModel, status_code=status.HTTP_200_OK)
def deactivate_assignment(assignment_id: str) -> VehicleJobAssignmentModel:
    try:
        return VehicleJobAssignmentModel.from_domain(service.deactivate_assignment(assignment_id))
    except Exception as exc:
        raise_http_error(exc, f"deactivate assignment {assignment_id}")
