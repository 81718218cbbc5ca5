"""HTTP plumbing shared by the Google Maps provider adapters."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ..config import settings

# Provider statuses worth retrying with backoff; anything else is final.
RETRYABLE_STATUSES = frozenset({"OVER_QUERY_LIMIT", "UNKNOWN_ERROR"})

logger = logging.getLogger(__name__)


class GoogleMapsClient:
    """Issues GET requests against a Google Maps web service with bounded retries."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.timeout = timeout if timeout is not None else settings.provider_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.provider_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.provider_backoff_seconds
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        # One client per call; resolutions run on a worker pool.
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
            transport=self._transport,
        )

    def _wait(self, attempt: int) -> None:
        wait_time = self.backoff_seconds * (2 ** (attempt - 1))
        if wait_time > 0:
            time.sleep(wait_time)

    def _get_json(self, params: dict[str, Any]) -> dict[str, Any]:
        """Return the decoded provider payload.

        Network failures and HTTP errors are retried up to ``max_retries`` times and then
        raised as ``ConnectionError``. Retryable provider statuses are retried the same way;
        the last payload is returned once retries are exhausted so the caller can map it.
        """
        query = {**params, "key": self.api_key}
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(self.base_url, params=query)
                    response.raise_for_status()
                    data = response.json()
                except httpx.HTTPStatusError as exc:
                    attempt += 1
                    if exc.response.status_code < 500 and exc.response.status_code != 429:
                        raise ConnectionError(
                            f"Provider rejected request to {self.base_url}: HTTP {exc.response.status_code}"
                        ) from exc
                    if attempt > self.max_retries:
                        raise ConnectionError(
                            f"Provider at {self.base_url} failed after {self.max_retries} retries: {exc}"
                        ) from exc
                    logger.debug(f"Provider HTTP {exc.response.status_code}, retrying (attempt {attempt}/{self.max_retries})")
                    self._wait(attempt)
                    continue
                except (httpx.TimeoutException, httpx.NetworkError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(f"Failed to reach provider at {self.base_url}: {exc}") from exc
                    logger.debug(f"Provider network error, retrying (attempt {attempt}/{self.max_retries}): {exc}")
                    self._wait(attempt)
                    continue
                except ValueError as exc:
                    raise ConnectionError(f"Provider returned malformed JSON: {exc}") from exc

                status = data.get("status")
                if status in RETRYABLE_STATUSES and attempt < self.max_retries:
                    attempt += 1
                    logger.debug(f"Provider status {status}, retrying (attempt {attempt}/{self.max_retries})")
                    self._wait(attempt)
                    continue
                return data
        finally:
            client.close()
