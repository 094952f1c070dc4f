"""Fixtures for market data tests.

FakeFeed stands in for the price-cache worker: it counts calls per endpoint,
can be told to fail, and can hold fetches open on an asyncio.Event so tests
can observe in-flight behavior. FakeClock drives TTLs without sleeping.
"""

import asyncio

import pytest

from dashboard.market.errors import FetchError
from dashboard.market.interface import MarketDataFeed
from dashboard.market.models import (
    CoinQuote,
    PriceSnapshot,
    PriceStatus,
    Registry,
    RegistryEntry,
)
from dashboard.market.service import MarketDataService

T0 = 1_700_000_000_000.0  # Unix ms


def make_snapshot(prices: dict[str, float], market_caps: dict[str, float] | None = None) -> PriceSnapshot:
    market_caps = market_caps or {}
    by_symbol = {
        symbol: CoinQuote(
            symbol=symbol,
            name=symbol.title(),
            rank=rank,
            price_usd=price,
            market_cap_usd=market_caps.get(symbol, price * 1_000_000),
            volume_24h_usd=price * 10_000,
            change_24h_pct=1.5,
        )
        for rank, (symbol, price) in enumerate(prices.items(), start=1)
    }
    return PriceSnapshot(
        source="test", updated_at="2026-01-01T00:00:00Z", count=len(by_symbol), by_symbol=by_symbol
    )


def make_registry(symbol_to_ids: dict[str, list[str]]) -> Registry:
    by_id = {
        coin_id: RegistryEntry(
            id=coin_id,
            symbol=symbol,
            name=coin_id.title(),
            logo_url=f"https://logos.test/{coin_id}.png",
            market_cap_rank=1,
            first_seen_at="2025-01-01T00:00:00Z",
            last_seen_at="2026-01-01T00:00:00Z",
        )
        for symbol, ids in symbol_to_ids.items()
        for coin_id in ids
    }
    return Registry(
        source="test",
        updated_at="2026-01-01T00:00:00Z",
        count=len(by_id),
        by_id=by_id,
        symbol_to_ids=symbol_to_ids,
    )


class FakeClock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeFeed(MarketDataFeed):
    def __init__(self) -> None:
        self.prices: dict[str, float] = {"BTC": 50_000.0, "ETH": 3_000.0}
        self.registry: dict[str, list[str]] = {"BTC": ["bitcoin"], "ETH": ["ethereum"]}
        self.calls = {"prices": 0, "registry": 0, "status": 0, "health": 0}
        self.failing: set[str] = set()
        self.gate: asyncio.Event | None = None
        self.closed = False
        self.added: list[str] = []

    async def _call(self, endpoint: str) -> None:
        self.calls[endpoint] += 1
        if self.gate is not None:
            await self.gate.wait()
        if endpoint in self.failing:
            raise FetchError(f"{endpoint} down", endpoint=endpoint, reason="status", status_code=500)

    async def fetch_prices(self) -> PriceSnapshot:
        await self._call("prices")
        return make_snapshot(dict(self.prices))

    async def fetch_registry(self) -> Registry:
        await self._call("registry")
        return make_registry({s: list(ids) for s, ids in self.registry.items()})

    async def fetch_status(self) -> PriceStatus:
        await self._call("status")
        return PriceStatus(
            success=True,
            timestamp="2026-01-01T00:00:00Z",
            trigger="cron",
            service="price-cache",
            count=len(self.prices),
        )

    async def check_health(self) -> bool:
        self.calls["health"] += 1
        return "health" not in self.failing

    def add_symbol(self, symbol: str) -> None:
        self.added.append(symbol)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def service(feed: FakeFeed, clock: FakeClock) -> MarketDataService:
    return MarketDataService(feed, clock=clock, default_symbols=["BTC", "ETH"])
