"""Route group exports."""

from . import assignments, health, inspections, routes

__all__ = ["assignments", "health", "inspections", "routes"]
