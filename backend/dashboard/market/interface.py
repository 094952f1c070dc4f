"""Abstract interface for market data feeds."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import PriceSnapshot, PriceStatus, Registry


class MarketDataFeed(ABC):
    """Contract for market data providers.

    A feed answers one request per call and keeps no state between calls.
    It never caches or retries; MarketDataService owns that policy and is the
    only caller. Downstream code reads prices from the service, never from
    the feed.

    Failures are raised as FetchError.

    Lifecycle:
        feed = create_market_feed(settings)
        snapshot = await feed.fetch_prices()
        registry = await feed.fetch_registry()
        # ... app shutting down ...
        await feed.aclose()
    """

    @abstractmethod
    async def fetch_prices(self) -> PriceSnapshot:
        """Fetch the latest top-N price snapshot."""

    @abstractmethod
    async def fetch_registry(self) -> Registry:
        """Fetch the token registry (ids, names, logos)."""

    @abstractmethod
    async def fetch_status(self) -> PriceStatus:
        """Fetch the outcome of the provider's last price refresh."""

    @abstractmethod
    async def check_health(self) -> bool:
        """True if the provider answers. Never raises."""

    def add_symbol(self, symbol: str) -> None:
        """Hint that a symbol was requested. Fixed-universe feeds ignore it."""

    async def aclose(self) -> None:
        """Release connections. Safe to call multiple times."""
