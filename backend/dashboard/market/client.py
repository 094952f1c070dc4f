"""HTTP client for the price-cache worker."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httpx

from .errors import FetchError
from .interface import MarketDataFeed
from .models import PriceSnapshot, PriceStatus, Registry

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRICES_PATH = "/prices/top500.json"
REGISTRY_PATH = "/registry/latest.json"
STATUS_PATH = "/prices/status.json"
HEALTH_PATH = "/health"


class RemoteFetchClient(MarketDataFeed):
    """MarketDataFeed backed by the price-cache worker's JSON endpoints.

    The worker refreshes its top-500 blob every 5 minutes and the registry
    daily; this client just reads them:

        GET {base}/prices/top500.json   -> PriceSnapshot
        GET {base}/registry/latest.json -> Registry
        GET {base}/prices/status.json   -> PriceStatus

    One request per call, no retries.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.strip().rstrip("/")
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def fetch_prices(self) -> PriceSnapshot:
        return await self._get_json(PRICES_PATH, PriceSnapshot.from_dict)

    async def fetch_registry(self) -> Registry:
        return await self._get_json(REGISTRY_PATH, Registry.from_dict)

    async def fetch_status(self) -> PriceStatus:
        return await self._get_json(STATUS_PATH, PriceStatus.from_dict)

    async def check_health(self) -> bool:
        try:
            response = await self._client.get(self._url(HEALTH_PATH), timeout=self._timeout)
        except httpx.HTTPError as e:
            logger.debug("Health check failed: %s", e)
            return False
        return response.is_success

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- Internal ---

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _get_json(self, path: str, parse: Callable[[Any], T]) -> T:
        url = self._url(path)
        logger.debug("GET %s", url)
        try:
            response = await self._client.get(url, timeout=self._timeout)
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timed out after {self._timeout}s: {url}", endpoint=path, reason="timeout"
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request failed: {e}", endpoint=path, reason="network") from e

        if not response.is_success:
            if response.status_code == 503:
                message = f"{path} not yet available (worker cron has not run yet)"
            else:
                message = f"Worker API error: {response.status_code} {response.reason_phrase}"
            raise FetchError(
                message, endpoint=path, reason="status", status_code=response.status_code
            )

        try:
            payload = parse(response.json())
        except (ValueError, TypeError, KeyError) as e:
            # response.json() raises a ValueError subclass on invalid JSON
            raise FetchError(
                f"Malformed body from {path}: {e}",
                endpoint=path,
                reason="malformed",
                status_code=response.status_code,
            ) from e

        logger.debug("GET %s -> %d", url, response.status_code)
        return payload
