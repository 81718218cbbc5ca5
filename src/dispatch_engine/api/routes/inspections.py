"""Inspection candidate endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Query, status

from ...schemas.assignments import InspectionCandidateModel
from ...services.assignment import service
from ..errors import raise_http_error

router = APIRouter(tags=["inspections"])


@router.get("/users-with-inspections", response_model=List[InspectionCandidateModel], status_code=status.HTTP_200_OK)
def users_with_inspections(
    date: str = Query(..., description="Service date in YYYY-MM-DD format"),
) -> List[InspectionCandidateModel]:
    """Technicians who inspected a vehicle on the date, with completion state."""
    try:
        return [InspectionCandidateModel.from_domain(candidate) for candidate in service.users_with_inspections(date)]
    except Exception as exc:
        raise_http_error(exc, "list users with inspections")
