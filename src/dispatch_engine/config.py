"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Dispatch & Assignment Engine"
    api_prefix: str = "/api"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:5000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Google Maps providers
    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key used for the geocoding and directions providers.",
    )
    geocode_base_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    directions_base_url: str = "https://maps.googleapis.com/maps/api/directions/json"
    traffic_model: Literal["best_guess", "pessimistic", "optimistic"] = "best_guess"
    provider_timeout_seconds: float = Field(default=10.0, gt=0.0)
    provider_max_retries: int = Field(default=3, ge=0)
    provider_backoff_seconds: float = Field(default=1.0, ge=0.0)

    # Geocoding
    geocode_max_workers: int = Field(default=8, ge=1)
    service_area_polygon: tuple[tuple[float, float], ...] = Field(
        default=(),
        description="Organization service area as (lat, lng) vertices. Its centroid is the geocode fallback.",
    )
    fallback_latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    fallback_longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)

    # Route optimization
    departure_bucket_minutes: int = Field(default=15, ge=1)
    tie_epsilon_seconds: float = Field(default=60.0, ge=0.0)
    exact_search_max_stops: int = Field(default=7, ge=0, le=9)
    local_search_max_passes: int = Field(default=50, ge=1)
    directions_call_budget: int = Field(default=500, ge=1)
    fallback_speed_kmh: float = Field(default=40.0, gt=0.0)
    traffic_moderate_ratio: float = Field(default=0.15, ge=0.0)
    traffic_heavy_ratio: float = Field(default=0.40, ge=0.0)
    workday_start_hour: int = Field(default=8, ge=0, le=23)
    timezone: str = "UTC"

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    jobs_table: str = "scheduled_jobs"
    inspections_table: str = "vehicle_inspections"
    assignments_table: str = "vehicle_job_assignments"
    users_table: str = "users"
    vehicles_table: str = "vehicles"
    projects_table: str = "projects"

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("service_area_polygon", mode="before")
    @classmethod
    def _parse_polygon_from_env(cls, value: Any) -> tuple[tuple[float, float], ...]:
        """Parse polygon vertices from a JSON array of [lat, lng] pairs."""
        if value is None or value == "":
            return tuple()
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("service_area_polygon must be a JSON array of [lat, lng] pairs") from exc
        vertices = tuple((float(lat), float(lng)) for lat, lng in value)
        if vertices and len(vertices) < 3:
            raise ValueError("service_area_polygon needs at least three vertices")
        return vertices


settings = Settings()
