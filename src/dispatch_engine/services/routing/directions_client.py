"""Google Directions API adapter."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

import httpx

from ...config import settings
from ...errors import DirectionsUnavailableError
from ...models.domain import Coordinate
from ..calendar import to_utc
from ..http_client import GoogleMapsClient
from .models import LegEstimate

logger = logging.getLogger(__name__)


def _format(coordinate: Coordinate) -> str:
    return f"{coordinate.lat:.6f},{coordinate.lng:.6f}"


class GoogleDirectionsClient(GoogleMapsClient):
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        traffic_model: str | None = None,
        transport: httpx.BaseTransport | None = None,
        **kwargs,
    ) -> None:
        super().__init__(base_url or settings.directions_base_url, api_key=api_key, transport=transport, **kwargs)
        self.traffic_model = traffic_model or settings.traffic_model

    def directions(
        self,
        origin: Coordinate,
        waypoints: Sequence[Coordinate],
        departure_time: datetime,
    ) -> list[LegEstimate]:
        if not waypoints:
            raise ValueError("At least one waypoint is required for directions.")

        # The provider rejects departure times in the past.
        now = datetime.now(timezone.utc)
        departure = max(to_utc(departure_time), now)

        params = {
            "origin": _format(origin),
            "destination": _format(waypoints[-1]),
            "mode": "driving",
            "departure_time": str(int(departure.timestamp())),
            "traffic_model": self.traffic_model,
        }
        if len(waypoints) > 1:
            params["waypoints"] = "|".join(_format(point) for point in waypoints[:-1])

        try:
            data = self._get_json(params)
        except ConnectionError as exc:
            raise DirectionsUnavailableError(str(exc)) from exc

        status = data.get("status")
        if status != "OK":
            message = data.get("error_message") or status or "unknown status"
            raise DirectionsUnavailableError(f"Directions request failed: {message}")

        routes = data.get("routes") or []
        legs = routes[0].get("legs", []) if routes else []
        if len(legs) != len(waypoints):
            raise DirectionsUnavailableError(
                f"Directions response has {len(legs)} legs for {len(waypoints)} waypoints"
            )

        estimates: list[LegEstimate] = []
        for leg in legs:
            try:
                in_traffic = leg.get("duration_in_traffic")
                estimates.append(
                    LegEstimate(
                        distance_meters=float(leg["distance"]["value"]),
                        duration_seconds=float(leg["duration"]["value"]),
                        duration_in_traffic_seconds=float(in_traffic["value"]) if in_traffic else None,
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise DirectionsUnavailableError("Directions response missing leg metrics") from exc
        return estimates


def check_health(client: GoogleDirectionsClient | None = None) -> bool:
    """Probe the directions provider with a minimal two-point request."""
    try:
        directions = client or GoogleDirectionsClient(max_retries=0)
        directions.directions(
            Coordinate(lat=52.517037, lng=13.388860),
            [Coordinate(lat=52.496891, lng=13.385983)],
            datetime.now(timezone.utc),
        )
        return True
    except (ValueError, DirectionsUnavailableError) as exc:
        logger.debug(f"Directions health check failed: {exc}")
        return False
