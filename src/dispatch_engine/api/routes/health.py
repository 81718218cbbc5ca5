"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_directions_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.directions_client import check_health as directions_health_check
    return directions_health_check


@router.get("/health/providers", status_code=status.HTTP_200_OK)
def health_providers() -> dict:
    """Check the maps provider; without a key, routes run on straight-line estimates."""
    if not settings.google_maps_api_key:
        return {
            "service": "google_maps",
            "configured": False,
            "healthy": False,
            "message": "Set DISPATCH_GOOGLE_MAPS_API_KEY to enable geocoding and traffic-aware routing.",
        }
    try:
        directions_health_check = _get_directions_health_check()
        return {"service": "google_maps", "configured": True, "healthy": directions_health_check()}
    except Exception as e:
        return {"service": "google_maps", "configured": True, "healthy": False, "error": str(e)}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check database connection and the assignments table."""
    from ...db.supabase import get_supabase_client

    supabase = get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set DISPATCH_SUPABASE_URL and DISPATCH_SUPABASE_KEY; using in-memory stores.",
        }

    try:
        response = supabase.table(settings.assignments_table).select("id", count="exact").limit(1).execute()
        return {
            "configured": True,
            "connected": True,
            "assignments_count": response.count or 0,
            "message": f"Database connected. Found {response.count or 0} assignment row(s).",
        }
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
