"""Technician assignment services."""

from .matcher import (
    ALREADY_ASSIGNED,
    INSPECTION_INCOMPLETE,
    JOB_ALREADY_ASSIGNED,
    NO_MATCHING_VEHICLE,
    AssignmentMatcher,
    plan_assignments,
)

__all__ = [
    "ALREADY_ASSIGNED",
    "INSPECTION_INCOMPLETE",
    "JOB_ALREADY_ASSIGNED",
    "NO_MATCHING_VEHICLE",
    "AssignmentMatcher",
    "plan_assignments",
]
