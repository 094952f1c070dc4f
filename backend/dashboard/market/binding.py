"""Reactive adapter between MarketDataService and display code."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from .models import CacheState, normalize_symbols
from .service import MarketDataService

logger = logging.getLogger(__name__)


class MarketDataBinding:
    """Per-consumer view of the market data cache.

    Holds one service subscription while attached, tracks the symbols this
    consumer cares about, and projects {symbol: price} / {symbol: market cap}
    maps for them. Projections are memoized on the symbol set and the
    service revision, so a change made while detached still shows up.

    Use it as an async context manager so the subscription is always
    released:

        async with MarketDataBinding(service, on_change=rerender) as binding:
            binding.set_symbols(["BTC", "ETH"])
            ...
            binding.prices  # {"BTC": 67000.0, "ETH": 3400.0}
    """

    def __init__(
        self,
        service: MarketDataService,
        on_change: Callable[[MarketDataBinding], None] | None = None,
    ) -> None:
        self._service = service
        self._on_change = on_change
        self._unsubscribe: Callable[[], None] | None = None
        self._symbols: list[str] = []
        self._requested: frozenset[str] | None = None
        self._pending: set[asyncio.Task] = set()
        self._revision = 0
        self._memo_key: tuple[frozenset[str], int] | None = None
        self._prices: dict[str, float] = {}
        self._market_caps: dict[str, float] = {}

    # --- Scope ---

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._service.subscribe(self._on_cache_update)

    def detach(self) -> None:
        """Release the subscription and stop waiting on this consumer's refreshes.

        The shared fetches themselves keep running for other consumers.
        """
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in self._pending:
            task.cancel()
        self._pending.clear()

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    async def __aenter__(self) -> MarketDataBinding:
        self.attach()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.detach()

    # --- Symbols of interest ---

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def set_symbols(self, symbols: Iterable[str]) -> asyncio.Task | None:
        """Change the symbols of interest; refresh them if the set changed.

        Returns the refresh task, or None when the set matches the previous
        request (order and case do not matter).
        """
        self._symbols = normalize_symbols(symbols)
        wanted = frozenset(self._symbols)
        if wanted == self._requested:
            return None
        self._requested = wanted
        if not wanted:
            return None
        return self._start_refresh(self._symbols)

    def refresh(self) -> asyncio.Task | None:
        """Refresh the current symbols even if the set has not changed."""
        if not self._symbols:
            return None
        return self._start_refresh(self._symbols)

    # --- Projections ---

    @property
    def prices(self) -> dict[str, float]:
        self._project()
        return self._prices

    @property
    def market_caps(self) -> dict[str, float]:
        self._project()
        return self._market_caps

    @property
    def state(self) -> CacheState:
        return self._service.get_state()

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def is_loading(self) -> bool:
        """Service-level loading, or a refresh this consumer asked for is running."""
        return self._service.get_state().loading or bool(self._pending)

    # --- Internal ---

    def _start_refresh(self, symbols: list[str]) -> asyncio.Task:
        task = asyncio.create_task(self._service.refresh_for_symbols(list(symbols)))
        self._pending.add(task)
        task.add_done_callback(self._refresh_done)
        return task

    def _refresh_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Market data refresh for consumer failed: %s", task.exception())

    def _on_cache_update(self, state: CacheState) -> None:
        self._revision += 1
        if self._on_change is not None:
            self._on_change(self)

    def _project(self) -> None:
        key = (frozenset(self._symbols), self._service.revision)
        if key == self._memo_key:
            return
        prices: dict[str, float] = {}
        market_caps: dict[str, float] = {}
        for symbol in self._symbols:
            price = self._service.get_price(symbol)
            if price is not None:
                prices[symbol] = price
            cap = self._service.get_market_cap(symbol)
            if cap is not None:
                market_caps[symbol] = cap
        self._prices = prices
        self._market_caps = market_caps
        self._memo_key = key
