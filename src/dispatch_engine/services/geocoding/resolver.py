"""Address resolution with a shared cache, bounded parallelism and a service-area fallback."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Iterable, Optional, Sequence

from ...config import settings
from ...errors import GeocodeError, InvalidInputError, OperationCancelled
from ...models.domain import Coordinate
from ..geospatial import point_in_polygon, polygon_centroid
from .models import GeocodeFailure, GeocodeOutcome, GeocodeProvider, GeocodeResult

logger = logging.getLogger(__name__)

CANCEL_POLL_SECONDS = 0.1


def normalize_address(address: str) -> str:
    return " ".join(address.split()).casefold()


def default_fallback() -> Optional[Coordinate]:
    """The organization's fallback point: explicit coordinate first, then the service-area centroid."""
    if settings.fallback_latitude is not None and settings.fallback_longitude is not None:
        return Coordinate(lat=settings.fallback_latitude, lng=settings.fallback_longitude)
    if settings.service_area_polygon:
        return polygon_centroid(settings.service_area_polygon)
    return None


class GeocodingResolver:
    """Resolves addresses through a ``GeocodeProvider``.

    Successful results are cached by normalized address and never expire on their own;
    ``refresh`` and ``invalidate`` exist for out-of-band updates. Failures are not cached.
    Concurrent callers asking for the same address share a single provider call.
    """

    def __init__(
        self,
        provider: GeocodeProvider,
        *,
        max_workers: int | None = None,
        service_area: Sequence[tuple[float, float]] | None = None,
        fallback: Coordinate | None = None,
    ) -> None:
        self.provider = provider
        self.max_workers = max_workers or settings.geocode_max_workers
        self.service_area = tuple(service_area if service_area is not None else settings.service_area_polygon)
        self.fallback = fallback if fallback is not None else default_fallback()
        self._lock = threading.Lock()
        self._entries: dict[str, GeocodeResult] = {}
        self._in_flight: dict[str, Future] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def cached(self, address: str) -> Optional[GeocodeResult]:
        with self._lock:
            return self._entries.get(normalize_address(address))

    def prime(self, address: str, coordinate: Coordinate, confidence: str = "exact") -> None:
        """Seed the cache with a coordinate already known for the address."""
        key = normalize_address(address)
        if not key:
            return
        with self._lock:
            self._entries.setdefault(key, GeocodeResult(lat=coordinate.lat, lng=coordinate.lng, confidence=confidence))

    def invalidate(self, address: str) -> None:
        with self._lock:
            self._entries.pop(normalize_address(address), None)

    def refresh(self, address: str) -> GeocodeOutcome:
        self.invalidate(address)
        return self.resolve(address)

    def resolve(self, address: str) -> GeocodeOutcome:
        if not address or not address.strip():
            raise InvalidInputError("Address must be a non-empty string.")
        key = normalize_address(address)

        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                return cached
            pending = self._in_flight.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._in_flight[key] = pending

        if not owner:
            return pending.result()

        try:
            outcome = self._lookup(address)
        except BaseException as exc:
            pending.set_exception(exc)
            raise
        else:
            if isinstance(outcome, GeocodeResult):
                with self._lock:
                    self._entries[key] = outcome
            pending.set_result(outcome)
            return outcome
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

    def resolve_many(
        self,
        addresses: Iterable[str],
        cancel_event: threading.Event | None = None,
    ) -> dict[str, GeocodeOutcome]:
        """Resolve a batch of addresses on a fixed worker pool.

        Returns a mapping from each input address to its outcome. All results are collected
        before returning; a cancelled batch raises ``OperationCancelled`` without waiting on
        outstanding provider calls.
        """
        addresses = list(addresses)
        unique: dict[str, str] = {}
        for address in addresses:
            if not address or not address.strip():
                raise InvalidInputError("Address must be a non-empty string.")
            unique.setdefault(normalize_address(address), address)

        outcomes_by_key: dict[str, GeocodeOutcome] = {}
        to_fetch: list[tuple[str, str]] = []
        for key, address in unique.items():
            cached = self.cached(address)
            if cached is not None:
                outcomes_by_key[key] = cached
            else:
                to_fetch.append((key, address))

        if to_fetch:
            logger.info(f"Geocoding {len(to_fetch)} address(es) ({len(outcomes_by_key)} cached)")
            executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(to_fetch)))
            try:
                future_to_key = {executor.submit(self.resolve, address): key for key, address in to_fetch}
                pending = set(future_to_key)
                while pending:
                    if cancel_event is not None and cancel_event.is_set():
                        raise OperationCancelled("Geocoding batch cancelled")
                    done, pending = wait(pending, timeout=CANCEL_POLL_SECONDS, return_when=FIRST_COMPLETED)
                    for future in done:
                        key = future_to_key[future]
                        try:
                            outcomes_by_key[key] = future.result()
                        except Exception as exc:
                            logger.warning(f"Unexpected geocoding error for '{unique[key]}': {exc}")
                            outcomes_by_key[key] = GeocodeFailure(
                                address=unique[key], reason="provider_error", detail=str(exc)
                            )
            finally:
                executor.shutdown(wait=False, cancel_futures=True)

        return {address: outcomes_by_key[normalize_address(address)] for address in addresses}

    def fallback_result(self) -> Optional[GeocodeResult]:
        if self.fallback is None:
            return None
        return GeocodeResult(lat=self.fallback.lat, lng=self.fallback.lng, confidence="approximate")

    def _lookup(self, address: str) -> GeocodeOutcome:
        try:
            result = self.provider.geocode(address)
        except GeocodeError as exc:
            logger.warning(f"Geocoding '{address}' failed ({exc.reason}): {exc}")
            return GeocodeFailure(address=address, reason=exc.reason, detail=str(exc))

        if (
            result.confidence == "exact"
            and self.service_area
            and not point_in_polygon(result.lat, result.lng, self.service_area)
        ):
            logger.debug(f"Geocode for '{address}' falls outside the service area; marking approximate")
            return GeocodeResult(lat=result.lat, lng=result.lng, confidence="approximate")
        return result
