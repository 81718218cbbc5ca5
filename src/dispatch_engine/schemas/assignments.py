"""Vehicle job assignment API schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import (
    AutoConnectResult,
    ProjectProfile,
    SkippedTechnician,
    UserProfile,
    VehicleJobAssignment,
    VehicleProfile,
)
from ..services.assignment.service import AssignmentDetail, InspectionCandidate


class VehicleJobAssignmentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(..., alias="userId")
    vehicle_id: str = Field(..., alias="vehicleId")
    project_id: str = Field(..., alias="projectId")
    inspection_date: date = Field(..., alias="inspectionDate")
    assignment_date: date = Field(..., alias="assignmentDate")
    is_active: bool = Field(..., alias="isActive")
    notes: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    deactivated_at: Optional[datetime] = Field(None, alias="deactivatedAt")
    user_first_name: Optional[str] = Field(None, alias="userFirstName")
    user_last_name: Optional[str] = Field(None, alias="userLastName")
    user_email: Optional[str] = Field(None, alias="userEmail")
    vehicle_number: Optional[str] = Field(None, alias="vehicleNumber")
    license_plate: Optional[str] = Field(None, alias="licensePlate")
    vehicle_make: Optional[str] = Field(None, alias="vehicleMake")
    vehicle_model: Optional[str] = Field(None, alias="vehicleModel")
    project_name: Optional[str] = Field(None, alias="projectName")
    project_description: Optional[str] = Field(None, alias="projectDescription")
    project_address: Optional[str] = Field(None, alias="projectAddress")
    project_status: Optional[str] = Field(None, alias="projectStatus")

    @classmethod
    def from_domain(
        cls,
        assignment: VehicleJobAssignment,
        user: Optional[UserProfile] = None,
        vehicle: Optional[VehicleProfile] = None,
        project: Optional[ProjectProfile] = None,
    ) -> "VehicleJobAssignmentModel":
        return cls(
            id=str(assignment.id),
            user_id=assignment.user_id,
            vehicle_id=assignment.vehicle_id,
            project_id=assignment.project_id,
            inspection_date=assignment.inspection_date,
            assignment_date=assignment.assignment_date,
            is_active=assignment.is_active,
            notes=assignment.notes,
            created_at=assignment.created_at,
            deactivated_at=assignment.deactivated_at,
            user_first_name=user.first_name if user else None,
            user_last_name=user.last_name if user else None,
            user_email=user.email if user else None,
            vehicle_number=vehicle.vehicle_number if vehicle else None,
            license_plate=vehicle.license_plate if vehicle else None,
            vehicle_make=vehicle.make if vehicle else None,
            vehicle_model=vehicle.model if vehicle else None,
            project_name=project.name if project else None,
            project_description=project.description if project else None,
            project_address=project.address if project else None,
            project_status=project.status if project else None,
        )

    @classmethod
    def from_detail(cls, detail: AssignmentDetail) -> "VehicleJobAssignmentModel":
        return cls.from_domain(detail.assignment, detail.user, detail.vehicle, detail.project)


class SkippedTechnicianModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    vehicle_id: Optional[str] = Field(None, alias="vehicleId")
    project_id: Optional[str] = Field(None, alias="projectId")
    reason: str

    @classmethod
    def from_domain(cls, skipped: SkippedTechnician) -> "SkippedTechnicianModel":
        return cls(
            user_id=skipped.user_id,
            vehicle_id=skipped.vehicle_id,
            project_id=skipped.project_id,
            reason=skipped.reason,
        )


class AutoConnectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service_date: str = Field(..., alias="date", description="Service date in YYYY-MM-DD format.")


class AutoConnectResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assignment_date: date = Field(..., alias="assignmentDate")
    created: List[VehicleJobAssignmentModel]
    skipped: List[SkippedTechnicianModel]
    created_count: int = Field(..., alias="createdCount")
    skipped_count: int = Field(..., alias="skippedCount")
    cancelled: bool = False

    @classmethod
    def from_domain(cls, result: AutoConnectResult) -> "AutoConnectResponse":
        return cls(
            assignment_date=result.assignment_date,
            created=[VehicleJobAssignmentModel.from_domain(assignment) for assignment in result.created],
            skipped=[SkippedTechnicianModel.from_domain(skipped) for skipped in result.skipped],
            created_count=len(result.created),
            skipped_count=len(result.skipped),
            cancelled=result.cancelled,
        )


class CreateAssignmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    user_id: str = Field(..., alias="userId")
    vehicle_id: str = Field(..., alias="vehicleId")
    project_id: str = Field(..., alias="projectId")
    assignment_date: str = Field(..., alias="assignmentDate", description="Service date in YYYY-MM-DD format.")
    notes: Optional[str] = None


class InspectionCandidateModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    vehicle_id: str = Field(..., alias="vehicleId")
    inspection_date: date = Field(..., alias="inspectionDate")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
    inspection_complete: bool = Field(..., alias="inspectionComplete")
    user_first_name: Optional[str] = Field(None, alias="userFirstName")
    user_last_name: Optional[str] = Field(None, alias="userLastName")
    user_email: Optional[str] = Field(None, alias="userEmail")
    vehicle_number: Optional[str] = Field(None, alias="vehicleNumber")
    license_plate: Optional[str] = Field(None, alias="licensePlate")
    vehicle_make: Optional[str] = Field(None, alias="vehicleMake")
    vehicle_model: Optional[str] = Field(None, alias="vehicleModel")

    @classmethod
    def from_domain(cls, candidate: InspectionCandidate) -> "InspectionCandidateModel":
        user, vehicle = candidate.user, candidate.vehicle
        return cls(
            user_id=candidate.user_id,
            vehicle_id=candidate.vehicle_id,
            inspection_date=candidate.inspection_date,
            completed_at=candidate.completed_at,
            inspection_complete=candidate.inspection_complete,
            user_first_name=user.first_name if user else None,
            user_last_name=user.last_name if user else None,
            user_email=user.email if user else None,
            vehicle_number=vehicle.vehicle_number if vehicle else None,
            license_plate=vehicle.license_plate if vehicle else None,
            vehicle_make=vehicle.make if vehicle else None,
            vehicle_model=vehicle.model if vehicle else None,
        )
