#!/usr/bin/env python3
"""Helper script to check and create the .env file for the dispatch backend."""

from pathlib import Path
import os
import sys

SECRET_KEYS = ("DISPATCH_SUPABASE_KEY", "DISPATCH_GOOGLE_MAPS_API_KEY")

TEMPLATE = """# Supabase (leave unset to run with in-memory stores)
DISPATCH_SUPABASE_URL=https://your-project-id.supabase.co
DISPATCH_SUPABASE_KEY=your-service-role-key-here

# Google Maps geocoding + directions (leave unset for straight-line routing)
DISPATCH_GOOGLE_MAPS_API_KEY=your-maps-key-here

# API Configuration
DISPATCH_API_PREFIX=/api
# JSON array or comma-separated: http://localhost:5173,http://127.0.0.1:5173
# DISPATCH_FRONTEND_ALLOWED_ORIGINS=

# Service area and scheduling
# DISPATCH_SERVICE_AREA_POLYGON=[[40.70,-74.02],[40.70,-73.93],[40.80,-73.93],[40.80,-74.02]]
DISPATCH_TIMEZONE=UTC
DISPATCH_WORKDAY_START_HOUR=8
"""


def _mask(line: str) -> str:
    name, _, value = line.partition("=")
    value = value.strip()
    if name.strip() in SECRET_KEYS and len(value) > 20:
        return f"{name}={value[:8]}...{value[-4:]}"
    return line


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Dispatch Engine Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"Created template .env file at: {env_file}")
        print("Edit it and add your Supabase and Google Maps credentials.")
        return

    print(f"Found .env file at: {env_file}")
    print("-" * 60)
    for line in env_file.read_text(encoding="utf-8").splitlines():
        print(_mask(line))
    print("-" * 60)
    print()

    sys.path.insert(0, str(project_root / "src"))
    try:
        from dispatch_engine.config import settings
    except Exception as e:
        print(f"Error loading config: {e}")
        print("Make sure you're running this from the project root directory")
        return

    checks = {
        "Supabase": bool(settings.supabase_url and settings.supabase_key),
        "Google Maps": bool(settings.google_maps_api_key),
        "Service area": bool(settings.service_area_polygon),
    }
    for name, ok in checks.items():
        print(f"{'OK ' if ok else '-- '} {name}: {'configured' if ok else 'not configured'}")
    if os.getenv("DISPATCH_SUPABASE_URL") is None and not checks["Supabase"]:
        print()
        print("Without Supabase the service runs on in-memory stores; data is lost on restart.")


if __name__ == "__main__":
    main()
