"""Google Geocoding API adapter."""

from __future__ import annotations

import httpx

from ...config import settings
from ...errors import GeocodeNotFoundError, GeocodeProviderError, GeocodeRateLimitedError
from ..http_client import GoogleMapsClient
from .models import GeocodeResult


class GoogleGeocodeClient(GoogleMapsClient):
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
        **kwargs,
    ) -> None:
        super().__init__(base_url or settings.geocode_base_url, api_key=api_key, transport=transport, **kwargs)

    def geocode(self, address: str) -> GeocodeResult:
        try:
            data = self._get_json({"address": address})
        except ConnectionError as exc:
            raise GeocodeProviderError(str(exc)) from exc

        status = data.get("status")
        if status == "ZERO_RESULTS":
            raise GeocodeNotFoundError(f"No geocode results for '{address}'")
        if status == "OVER_QUERY_LIMIT":
            raise GeocodeRateLimitedError("Geocoding quota exceeded")
        if status != "OK":
            message = data.get("error_message") or status or "unknown status"
            raise GeocodeProviderError(f"Geocoding failed: {message}")

        results = data.get("results") or []
        if not results:
            raise GeocodeNotFoundError(f"No geocode results for '{address}'")
        geometry = results[0].get("geometry", {})
        location = geometry.get("location") or {}
        try:
            lat, lng = float(location["lat"]), float(location["lng"])
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodeProviderError("Geocoding response missing location") from exc

        # ROOFTOP is the only street-address precision Google reports.
        exact = geometry.get("location_type") == "ROOFTOP" and not results[0].get("partial_match")
        return GeocodeResult(lat=lat, lng=lng, confidence="exact" if exact else "approximate")
