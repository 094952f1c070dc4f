"""GBM-based coin price simulator used when no price-cache worker is configured."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import replace
from datetime import UTC, datetime

import numpy as np

from .interface import MarketDataFeed
from .models import CoinQuote, PriceSnapshot, PriceStatus, Registry, RegistryEntry
from .seed_prices import (
    COIN_PARAMS,
    CORRELATION_GROUPS,
    CROSS_GROUP_CORR,
    DEFAULT_CORR,
    DEFAULT_LOGO_URL,
    DEFAULT_PARAMS,
    DEFAULT_SYMBOLS,
    INTRA_LAYER1_CORR,
    INTRA_MAJORS_CORR,
    INTRA_MEMES_CORR,
    SEED_COINS,
)

logger = logging.getLogger(__name__)


class GBMSimulator:
    """Geometric Brownian Motion simulator for correlated coin prices.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Where:
        S(t)   = current price
        mu     = annualized drift (expected return)
        sigma  = annualized volatility
        dt     = time step as fraction of a calendar year (crypto never closes)
        Z      = correlated standard normal random variable

    Each step also tracks the price at the start of the simulated day so the
    feed can report a 24h change.
    """

    SECONDS_PER_YEAR = 365 * 24 * 3600  # 31,536,000
    DEFAULT_DT = 120 / SECONDS_PER_YEAR  # one price-cache refresh, ~3.8e-6

    def __init__(
        self,
        symbols: list[str],
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
    ) -> None:
        self._dt = dt
        self._event_prob = event_probability

        # Per-coin state
        self._symbols: list[str] = []
        self._prices: dict[str, float] = {}
        self._open_prices: dict[str, float] = {}
        self._params: dict[str, dict[str, float]] = {}

        # Cholesky decomposition of the correlation matrix (for correlated moves)
        self._cholesky: np.ndarray | None = None

        for symbol in symbols:
            self._add_symbol_internal(symbol)
        self._rebuild_cholesky()

    # --- Public API ---

    def step(self) -> dict[str, float]:
        """Advance all coins by one time step. Returns {symbol: new_price}."""
        n = len(self._symbols)
        if n == 0:
            return {}

        z_independent = np.random.standard_normal(n)
        if self._cholesky is not None:
            z_correlated = self._cholesky @ z_independent
        else:
            z_correlated = z_independent

        result: dict[str, float] = {}
        for i, symbol in enumerate(self._symbols):
            params = self._params[symbol]
            mu = params["mu"]
            sigma = params["sigma"]

            drift = (mu - 0.5 * sigma**2) * self._dt
            diffusion = sigma * math.sqrt(self._dt) * z_correlated[i]
            self._prices[symbol] *= math.exp(drift + diffusion)

            # Random event: listing, exploit, whale dump
            if random.random() < self._event_prob:
                shock_magnitude = random.uniform(0.05, 0.15)
                shock_sign = random.choice([-1, 1])
                self._prices[symbol] *= 1 + shock_magnitude * shock_sign
                logger.debug(
                    "Random event on %s: %.1f%% %s",
                    symbol,
                    shock_magnitude * 100,
                    "up" if shock_sign > 0 else "down",
                )

            result[symbol] = self._prices[symbol]

        return result

    def add_symbol(self, symbol: str) -> None:
        """Add a coin to the simulation. Rebuilds the correlation matrix."""
        if symbol in self._prices:
            return
        self._add_symbol_internal(symbol)
        self._rebuild_cholesky()

    def get_price(self, symbol: str) -> float | None:
        """Current price for a coin, or None if not simulated."""
        return self._prices.get(symbol)

    def change_24h_pct(self, symbol: str) -> float:
        """Percent move since the simulated day opened."""
        open_price = self._open_prices.get(symbol)
        if not open_price:
            return 0.0
        return round((self._prices[symbol] - open_price) / open_price * 100, 4)

    def roll_day(self) -> None:
        """Start a new 24h window at the current prices."""
        self._open_prices = dict(self._prices)

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    # --- Internals ---

    def _add_symbol_internal(self, symbol: str) -> None:
        """Add a coin without rebuilding Cholesky (for batch initialization)."""
        if symbol in self._prices:
            return
        self._symbols.append(symbol)
        seed = SEED_COINS.get(symbol)
        price = seed[2] if seed else random.uniform(0.5, 50.0)
        self._prices[symbol] = price
        self._open_prices[symbol] = price
        self._params[symbol] = COIN_PARAMS.get(symbol, dict(DEFAULT_PARAMS))

    def _rebuild_cholesky(self) -> None:
        """Rebuild the Cholesky decomposition of the coin correlation matrix."""
        n = len(self._symbols)
        if n <= 1:
            self._cholesky = None
            return

        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self._pairwise_correlation(self._symbols[i], self._symbols[j])
                corr[i, j] = rho
                corr[j, i] = rho

        self._cholesky = np.linalg.cholesky(corr)

    @staticmethod
    def _pairwise_correlation(s1: str, s2: str) -> float:
        """Correlation between two coins based on their group.

        Correlation structure:
          - Both majors:   0.8
          - Both layer-1s: 0.7
          - Both memes:    0.6
          - Cross-group:   0.5
          - Unknown coins: 0.5
        """
        majors = CORRELATION_GROUPS["majors"]
        layer1 = CORRELATION_GROUPS["layer1"]
        memes = CORRELATION_GROUPS["memes"]

        if s1 in majors and s2 in majors:
            return INTRA_MAJORS_CORR
        if s1 in layer1 and s2 in layer1:
            return INTRA_LAYER1_CORR
        if s1 in memes and s2 in memes:
            return INTRA_MEMES_CORR

        known = majors | layer1 | memes
        if s1 in known and s2 in known:
            return CROSS_GROUP_CORR
        return DEFAULT_CORR


class SimulatedFeed(MarketDataFeed):
    """MarketDataFeed backed by the GBM simulator.

    Every fetch_prices() call advances the simulation by one step, as if the
    worker had run its refresh cron. Registry and status are synthesized
    from the seed table.
    """

    SOURCE = "simulator"
    FETCHES_PER_DAY = 720  # 24h of 2-minute refreshes

    def __init__(
        self,
        symbols: list[str] | None = None,
        event_probability: float = 0.001,
    ) -> None:
        if symbols is None:
            symbols = list(dict.fromkeys([*SEED_COINS, *DEFAULT_SYMBOLS]))
        self._sim = GBMSimulator(symbols=symbols, event_probability=event_probability)
        self._started_at = _iso_now()
        self._fetches = 0
        logger.info("Simulated feed ready with %d coins", len(symbols))

    async def fetch_prices(self) -> PriceSnapshot:
        if self._fetches and self._fetches % self.FETCHES_PER_DAY == 0:
            self._sim.roll_day()
        prices = self._sim.step()
        self._fetches += 1
        by_symbol: dict[str, CoinQuote] = {}
        for symbol, price in prices.items():
            supply = SEED_COINS[symbol][3] if symbol in SEED_COINS else 100_000_000
            market_cap = price * supply
            by_symbol[symbol] = CoinQuote(
                symbol=symbol,
                name=SEED_COINS[symbol][1] if symbol in SEED_COINS else symbol,
                rank=0,
                price_usd=price,
                market_cap_usd=market_cap,
                volume_24h_usd=market_cap * 0.04,
                change_24h_pct=self._sim.change_24h_pct(symbol),
            )
        ranked = sorted(by_symbol.values(), key=lambda q: q.market_cap_usd, reverse=True)
        by_symbol = {
            q.symbol: replace(q, rank=rank)
            for rank, q in enumerate(ranked, start=1)
        }
        return PriceSnapshot(
            source=self.SOURCE,
            updated_at=_iso_now(),
            count=len(by_symbol),
            by_symbol=by_symbol,
        )

    async def fetch_registry(self) -> Registry:
        by_id: dict[str, RegistryEntry] = {}
        symbol_to_ids: dict[str, list[str]] = {}
        for rank, symbol in enumerate(self._sim.get_symbols(), start=1):
            coin_id = SEED_COINS[symbol][0] if symbol in SEED_COINS else symbol.lower()
            by_id[coin_id] = RegistryEntry(
                id=coin_id,
                symbol=symbol,
                name=SEED_COINS[symbol][1] if symbol in SEED_COINS else symbol,
                logo_url=DEFAULT_LOGO_URL.format(id=coin_id),
                market_cap_rank=rank,
                first_seen_at=self._started_at,
                last_seen_at=_iso_now(),
            )
            symbol_to_ids.setdefault(symbol, []).append(coin_id)
        return Registry(
            source=self.SOURCE,
            updated_at=_iso_now(),
            count=len(by_id),
            by_id=by_id,
            symbol_to_ids=symbol_to_ids,
        )

    async def fetch_status(self) -> PriceStatus:
        now = _iso_now()
        return PriceStatus(
            success=True,
            timestamp=now,
            trigger="simulator",
            service=self.SOURCE,
            count=len(self._sim.get_symbols()),
            updated_at=now if self._fetches else None,
        )

    async def check_health(self) -> bool:
        return True

    def add_symbol(self, symbol: str) -> None:
        """Start simulating a coin the dashboard asked for."""
        self._sim.add_symbol(symbol)


def _iso_now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")
