"""Market data service: stale-while-revalidate cache over a MarketDataFeed.

The service owns the only mutable shared state (the CacheStore) and is the
only writer. Two datasets are cached:

    "prices"    top-N PriceSnapshot, TTL 2 minutes
    "registry"  token Registry (ids, logos), TTL 5 minutes

A symbol's data lives in both, so refreshing a symbol refreshes both.

Refresh policy per dataset:
    absent  -> start (or join) a fetch and wait for it to finish
    stale   -> start (or join) a fetch in the background, return immediately
    fresh   -> nothing

Each dataset has at most one fetch in flight. Concurrent callers await the
same asyncio.Task through asyncio.shield, so a caller that is cancelled never
cancels the fetch other callers are waiting on. A fetch always runs to
completion; the in-flight slot is released when it ends, success or not.

Failed fetches are logged and leave the previous entry untouched. Only
clear() removes entries.

Lifecycle:
    service = MarketDataService(feed)
    await service.initialize()
    unsubscribe = service.subscribe(on_change)
    await service.refresh_for_symbols(["BTC", "ETH"])
    service.get_price("BTC")
    # ... app shutting down ...
    await service.close()
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from enum import Enum

from .cache import CacheStore
from .config import FETCH_TIMEOUT_SECONDS, PRICE_TTL_MS, REGISTRY_TTL_MS
from .errors import FetchError
from .interface import MarketDataFeed
from .models import (
    CacheState,
    CoinQuote,
    Holding,
    MarketData,
    PriceSnapshot,
    PriceStatus,
    Registry,
    normalize_symbols,
    now_ms,
)
from .seed_prices import DEFAULT_SYMBOLS

logger = logging.getLogger(__name__)

PRICES = "prices"
REGISTRY = "registry"
DATASETS = (PRICES, REGISTRY)

# dataset -> feed method
_FETCHERS = {PRICES: "fetch_prices", REGISTRY: "fetch_registry"}

Subscriber = Callable[[CacheState], None]


class ServicePhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    REFRESHING_SUBSET = "refreshing_subset"  # READY with a fetch in flight


class MarketDataService:
    """Caches feed data, deduplicates refreshes and notifies subscribers."""

    def __init__(
        self,
        feed: MarketDataFeed,
        *,
        price_ttl_ms: float = PRICE_TTL_MS,
        registry_ttl_ms: float = REGISTRY_TTL_MS,
        fetch_timeout: float = FETCH_TIMEOUT_SECONDS,
        auto_refresh_interval: float | None = None,
        default_symbols: Iterable[str] | None = None,
        store: CacheStore | None = None,
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self._feed = feed
        self._clock = clock
        self._store = store if store is not None else CacheStore(clock=clock)
        self._ttls = {PRICES: price_ttl_ms, REGISTRY: registry_ttl_ms}
        self._timeout = fetch_timeout
        self._auto_refresh_interval = auto_refresh_interval
        self._default_symbols = normalize_symbols(
            DEFAULT_SYMBOLS if default_symbols is None else default_symbols
        )

        self._phase = ServicePhase.UNINITIALIZED
        self._last_refresh: float | None = None
        self._inflight: dict[str, asyncio.Task] = {}
        self._subscribers: dict[int, Subscriber] = {}
        self._tokens = itertools.count()
        self._tracked: dict[str, None] = {}  # ordered set of requested symbols
        self._auto_task: asyncio.Task | None = None

    # --- Lifecycle ---

    @property
    def phase(self) -> ServicePhase:
        if self._phase is ServicePhase.READY and self._inflight:
            return ServicePhase.REFRESHING_SUBSET
        return self._phase

    async def initialize(self) -> None:
        """Warm the cache with the default symbols. No-op unless uninitialized.

        Ends READY even if the bootstrap fetch fails; the cache is then empty
        (or partial) and the next refresh tries again.
        """
        if self._phase is not ServicePhase.UNINITIALIZED:
            logger.debug("Market data already %s, skipping duplicate init", self._phase.value)
            return

        logger.info("Initializing market data cache...")
        self._phase = ServicePhase.INITIALIZING
        try:
            await self.refresh_for_symbols(self._default_symbols)
        finally:
            # A full clear() during bootstrap wins
            bootstrapped = self._phase is ServicePhase.INITIALIZING
            if bootstrapped:
                self._phase = ServicePhase.READY

        if not bootstrapped:
            logger.info("Market data cache cleared during bootstrap")
            return

        if self._store.get(PRICES) is None:
            logger.warning("Market data unavailable after bootstrap; serving empty cache")
        else:
            logger.info("Market data cache initialized with %d coins", self.get_state().coin_count)

        if self._auto_refresh_interval:
            self.start_auto_refresh(self._auto_refresh_interval)

    async def close(self) -> None:
        """Stop auto-refresh, let in-flight fetches finish, release the feed."""
        await self.stop_auto_refresh()
        await self.wait_idle()
        await self._feed.aclose()

    # --- Refresh ---

    async def refresh_for_symbols(self, symbols: Iterable[str]) -> None:
        """Make sure the datasets behind these symbols are cached.

        Waits only for datasets that have never been fetched; stale datasets
        are revalidated in the background. Never raises on fetch failure.
        """
        wanted = normalize_symbols(symbols)
        if not wanted:
            return
        for symbol in wanted:
            if symbol not in self._tracked:
                self._tracked[symbol] = None
                self._feed.add_symbol(symbol)

        waits: list[asyncio.Task] = []
        for key in DATASETS:
            if self._store.get(key) is None:
                waits.append(self._schedule_fetch(key))
            elif self._store.is_stale(key, self._ttls[key]):
                logger.debug("Serving stale %s while revalidating", key)
                self._schedule_fetch(key)

        if waits:
            await asyncio.gather(*(asyncio.shield(task) for task in waits))

    async def wait_idle(self) -> None:
        """Wait until no dataset fetch is in flight."""
        while self._inflight:
            await asyncio.gather(*(asyncio.shield(t) for t in list(self._inflight.values())))

    def is_stale(self, dataset: str = PRICES) -> bool:
        return self._store.is_stale(dataset, self._ttls[dataset])

    @property
    def revision(self) -> int:
        """Bumped on every cache write or clear."""
        return self._store.version

    @property
    def tracked_symbols(self) -> list[str]:
        return list(self._tracked)

    # --- Reads (synchronous, never raise) ---

    def get_quote(self, symbol: str) -> CoinQuote | None:
        snapshot = self._prices()
        return snapshot.get(symbol) if snapshot else None

    def has_data(self, symbol: str) -> bool:
        return self.get_quote(symbol) is not None

    def get_price(self, symbol: str) -> float | None:
        quote = self.get_quote(symbol)
        return quote.price_usd if quote else None

    def get_market_cap(self, symbol: str) -> float | None:
        quote = self.get_quote(symbol)
        return quote.market_cap_usd if quote else None

    def get_data(self, symbol: str) -> MarketData | None:
        snapshot = self._prices()
        quote = snapshot.get(symbol) if snapshot else None
        if quote is None:
            return None
        return MarketData(
            symbol=quote.symbol,
            price_usd=quote.price_usd,
            market_cap_usd=quote.market_cap_usd,
            change_24h_pct=quote.change_24h_pct,
            last_updated_at=snapshot.updated_at,
            logo_url=self.get_logo_url(symbol),
        )

    def get_logo_url(self, symbol: str) -> str | None:
        registry = self._registry()
        return registry.logo_url(symbol) if registry else None

    def get_coin_id(self, symbol: str) -> str | None:
        registry = self._registry()
        return registry.primary_id(symbol) if registry else None

    def get_price_for_rendering(self, holding: Holding) -> float | None:
        """Best price to show: cache (fresh or stale) > last known > average cost."""
        return _first_positive(
            self.get_price(holding.symbol), holding.last_price_usd, holding.avg_cost
        )

    def get_market_cap_for_categorization(self, holding: Holding) -> float | None:
        """Best market cap for bucketing: cache (fresh or stale) > last known.

        None means UNKNOWN; a missing market cap is never reported as 0.
        """
        return _first_positive(self.get_market_cap(holding.symbol), holding.last_market_cap_usd)

    def get_state(self) -> CacheState:
        snapshot = self._prices()
        loading = self._phase is ServicePhase.INITIALIZING or any(
            key not in self._store for key in self._inflight
        )
        return CacheState(
            loaded=self._phase is ServicePhase.READY,
            loading=loading,
            last_refresh=self._last_refresh,
            coin_count=len(snapshot.by_symbol) if snapshot else 0,
        )

    def cache_status(self) -> dict:
        """Diagnostics for the settings page."""
        snapshot = self._prices()
        registry = self._registry()
        entry = self._store.get(PRICES)
        return {
            "hasData": snapshot is not None,
            "priceCount": snapshot.count if snapshot else 0,
            "registryCount": registry.count if registry else 0,
            "lastFetchTime": entry.fetched_at if entry else None,
            "ageMs": self._store.age(PRICES),
            "phase": self.phase.value,
        }

    # --- Remote status ---

    async def get_status(self) -> PriceStatus | None:
        """Latest worker status, or None if it cannot be fetched."""
        try:
            return await asyncio.wait_for(self._feed.fetch_status(), timeout=self._timeout)
        except Exception as e:
            logger.debug("Price status unavailable: %s", e)
            return None

    async def check_health(self) -> bool:
        try:
            return await asyncio.wait_for(self._feed.check_health(), timeout=self._timeout)
        except Exception as e:
            logger.debug("Health check failed: %s", e)
            return False

    # --- Subscriptions ---

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for cache changes. Returns an idempotent unsubscribe."""
        token = next(self._tokens)
        self._subscribers[token] = callback

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    @contextmanager
    def subscription(self, callback: Subscriber) -> Iterator[Callable[[], None]]:
        """Subscribe for the duration of a with-block."""
        unsubscribe = self.subscribe(callback)
        try:
            yield unsubscribe
        finally:
            unsubscribe()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # --- Clearing ---

    def clear(self, dataset: str | None = None) -> None:
        """Drop one dataset, or everything (which also resets to uninitialized)."""
        if dataset is not None and dataset not in DATASETS:
            raise ValueError(f"Unknown dataset {dataset!r}")

        self._store.clear(dataset)
        if dataset is None:
            self._last_refresh = None
            self._phase = ServicePhase.UNINITIALIZED
            self._cancel_auto_refresh()
            logger.info("Market data cache cleared")
        else:
            logger.info("Market data cache cleared: %s", dataset)
        self._notify()

    # --- Auto-refresh ---

    def start_auto_refresh(self, interval: float | None = None) -> None:
        """(Re)start periodic background refresh of the tracked symbols."""
        interval = interval or self._auto_refresh_interval
        if not interval:
            raise ValueError("Auto-refresh interval must be positive")
        self._cancel_auto_refresh()
        self._auto_task = asyncio.create_task(
            self._auto_refresh_loop(interval), name="market-auto-refresh"
        )
        logger.info("Market data auto-refresh started (every %.0fs)", interval)

    async def stop_auto_refresh(self) -> None:
        task = self._cancel_auto_refresh()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Market data auto-refresh stopped")

    @property
    def auto_refresh_running(self) -> bool:
        return self._auto_task is not None and not self._auto_task.done()

    # --- Internal ---

    def _prices(self) -> PriceSnapshot | None:
        entry = self._store.get(PRICES)
        return entry.payload if entry else None

    def _registry(self) -> Registry | None:
        entry = self._store.get(REGISTRY)
        return entry.payload if entry else None

    def _schedule_fetch(self, key: str) -> asyncio.Task:
        """Return the in-flight fetch for a dataset, starting one if needed."""
        task = self._inflight.get(key)
        if task is not None:
            logger.debug("Joining in-flight %s fetch", key)
            return task
        task = asyncio.create_task(self._run_fetch(key), name=f"market-fetch-{key}")
        self._inflight[key] = task
        return task

    async def _run_fetch(self, key: str) -> None:
        committed = False
        try:
            fetch = getattr(self._feed, _FETCHERS[key])
            payload = await asyncio.wait_for(fetch(), timeout=self._timeout)
        except FetchError as e:
            logger.warning("Market data %s fetch failed (%s): %s", key, e.reason, e)
        except asyncio.TimeoutError:
            logger.warning("Market data %s fetch timed out after %.1fs", key, self._timeout)
        except Exception:
            logger.exception("Market data %s fetch failed unexpectedly", key)
        else:
            self._store.set(key, payload)
            self._last_refresh = self._clock()
            committed = True
            logger.debug("Market data %s refreshed", key)
        finally:
            self._inflight.pop(key, None)

        if committed:
            self._notify()

    def _notify(self) -> None:
        """Deliver the current state to every subscriber, in registration order."""
        state = self.get_state()
        for callback in list(self._subscribers.values()):
            try:
                callback(state)
            except Exception:
                logger.exception("Market data subscriber failed")

    def _cancel_auto_refresh(self) -> asyncio.Task | None:
        task, self._auto_task = self._auto_task, None
        if task is not None and not task.done():
            task.cancel()
            return task
        return None

    async def _auto_refresh_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            symbols = self.tracked_symbols or self._default_symbols
            try:
                await self.refresh_for_symbols(symbols)
            except Exception:
                logger.exception("Market data auto-refresh failed")


def _first_positive(*candidates: float | None) -> float | None:
    for value in candidates:
        if value is not None and value > 0:
            return value
    return None
