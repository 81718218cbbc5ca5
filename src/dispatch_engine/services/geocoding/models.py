"""Geocoding domain models and the provider capability interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, Union

from ...models.domain import Coordinate

Confidence = Literal["exact", "approximate"]
FailureReason = Literal["not_found", "provider_error", "rate_limited"]


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    lat: float
    lng: float
    confidence: Confidence = "exact"

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lng=self.lng)


@dataclass(frozen=True, slots=True)
class GeocodeFailure:
    address: str
    reason: FailureReason
    detail: str = ""


GeocodeOutcome = Union[GeocodeResult, GeocodeFailure]


class GeocodeProvider(Protocol):
    def geocode(self, address: str) -> GeocodeResult:
        """Resolve an address or raise a ``GeocodeError`` subclass."""
        ...
