"""Geocoding services."""

from .models import GeocodeFailure, GeocodeOutcome, GeocodeProvider, GeocodeResult
from .resolver import GeocodingResolver, normalize_address

__all__ = [
    "GeocodeFailure",
    "GeocodeOutcome",
    "GeocodeProvider",
    "GeocodeResult",
    "GeocodingResolver",
    "normalize_address",
]
