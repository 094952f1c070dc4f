"""Market data subsystem for the portfolio dashboard.

Public API:
    MarketDataService   - Stale-while-revalidate cache with in-flight dedup
    MarketDataBinding   - Per-consumer reactive view (symbols -> prices)
    CacheStore          - Thread-safe in-memory dataset store
    MarketDataFeed      - Abstract interface for data providers
    RemoteFetchClient   - Feed backed by the price-cache worker
    FetchError          - Raised by feeds on any failed remote call
    MarketSettings      - Environment-driven configuration
    create_market_feed / create_market_service - Factories
    create_stream_router - FastAPI router factory for state + SSE endpoints
"""

from .binding import MarketDataBinding
from .cache import CacheStore
from .client import RemoteFetchClient
from .config import MarketSettings
from .errors import FetchError
from .factory import create_market_feed, create_market_service
from .interface import MarketDataFeed
from .models import (
    CacheEntry,
    CacheState,
    CoinQuote,
    Holding,
    MarketData,
    PriceSnapshot,
    PriceStatus,
    Registry,
    RegistryEntry,
)
from .service import MarketDataService, ServicePhase
from .stream import create_stream_router

__all__ = [
    "CacheEntry",
    "CacheState",
    "CacheStore",
    "CoinQuote",
    "FetchError",
    "Holding",
    "MarketData",
    "MarketDataBinding",
    "MarketDataFeed",
    "MarketDataService",
    "MarketSettings",
    "PriceSnapshot",
    "PriceStatus",
    "Registry",
    "RegistryEntry",
    "RemoteFetchClient",
    "ServicePhase",
    "create_market_feed",
    "create_market_service",
    "create_stream_router",
]
