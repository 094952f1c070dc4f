"""Factory for creating market data feeds and the service on top of them."""

from __future__ import annotations

import logging

from .config import MarketSettings
from .interface import MarketDataFeed
from .service import MarketDataService

logger = logging.getLogger(__name__)


def create_market_feed(settings: MarketSettings | None = None) -> MarketDataFeed:
    """Create the appropriate market data feed based on settings.

    - PRICE_CACHE_URL set to a real worker URL → RemoteFetchClient
    - Otherwise (unset, empty, placeholder) → SimulatedFeed (GBM simulation)
    """
    settings = settings or MarketSettings.from_env()

    if settings.is_remote_configured:
        from .client import RemoteFetchClient

        logger.info("Market data feed: price-cache worker at %s", settings.base_url)
        return RemoteFetchClient(base_url=settings.base_url, timeout=settings.fetch_timeout)
    else:
        from .simulator import SimulatedFeed

        logger.info("Market data feed: GBM simulator (PRICE_CACHE_URL not configured)")
        return SimulatedFeed()


def create_market_service(settings: MarketSettings | None = None) -> MarketDataService:
    """Create an uninitialized MarketDataService wired to the configured feed.

    Caller must await service.initialize().
    """
    settings = settings or MarketSettings.from_env()
    return MarketDataService(
        create_market_feed(settings),
        price_ttl_ms=settings.price_ttl_ms,
        registry_ttl_ms=settings.registry_ttl_ms,
        fetch_timeout=settings.fetch_timeout,
        auto_refresh_interval=settings.auto_refresh_interval,
    )
