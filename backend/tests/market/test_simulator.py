"""Tests for GBMSimulator."""

import numpy as np

from dashboard.market.seed_prices import SEED_COINS
from dashboard.market.simulator import GBMSimulator


class TestGBMSimulator:
    """Unit tests for the GBM price simulator."""

    def test_step_returns_all_symbols(self):
        """Test that step() returns prices for all symbols."""
        sim = GBMSimulator(symbols=["BTC", "ETH"])
        result = sim.step()
        assert set(result.keys()) == {"BTC", "ETH"}

    def test_prices_are_positive(self):
        """GBM prices can never go negative (exp() is always positive)."""
        sim = GBMSimulator(symbols=["BONK"])
        for _ in range(10_000):
            prices = sim.step()
            assert prices["BONK"] > 0

    def test_initial_prices_match_seeds(self):
        """Test that initial prices match seed prices."""
        sim = GBMSimulator(symbols=["BTC"])
        assert sim.get_price("BTC") == SEED_COINS["BTC"][2]

    def test_sub_cent_prices_are_not_rounded(self):
        """Test that tiny meme coin prices keep their precision."""
        sim = GBMSimulator(symbols=["BONK"], event_probability=0.0)
        price = sim.step()["BONK"]
        assert 0 < price < 0.001

    def test_add_symbol(self):
        """Test adding a coin dynamically."""
        sim = GBMSimulator(symbols=["BTC"])
        sim.add_symbol("SOL")
        result = sim.step()
        assert "SOL" in result

    def test_add_duplicate_is_noop(self):
        """Test that adding a duplicate symbol is a no-op."""
        sim = GBMSimulator(symbols=["BTC"])
        sim.add_symbol("BTC")
        assert sim.get_symbols() == ["BTC"]

    def test_unknown_symbol_gets_random_seed_price(self):
        """Test that unknown coins get random seed prices."""
        sim = GBMSimulator(symbols=["ZZZZ"])
        price = sim.get_price("ZZZZ")
        assert price is not None
        assert 0.5 <= price <= 50.0

    def test_empty_step(self):
        """Test stepping with no symbols."""
        sim = GBMSimulator(symbols=[])
        assert sim.step() == {}

    def test_prices_change_over_time(self):
        """After many steps, prices should have drifted from their seeds."""
        sim = GBMSimulator(symbols=["ETH"])
        initial_price = sim.get_price("ETH")
        for _ in range(1000):
            sim.step()
        assert sim.get_price("ETH") != initial_price

    def test_change_24h_tracks_day_open(self):
        """Test the 24h change against the simulated day open."""
        sim = GBMSimulator(symbols=["BTC"], event_probability=0.0)
        assert sim.change_24h_pct("BTC") == 0.0

        price = sim.step()["BTC"]
        expected = (price - SEED_COINS["BTC"][2]) / SEED_COINS["BTC"][2] * 100
        assert sim.change_24h_pct("BTC") == round(expected, 4)

        sim.roll_day()
        assert sim.change_24h_pct("BTC") == 0.0

    def test_cholesky_rebuilds_on_add(self):
        """Test that Cholesky matrix is rebuilt when symbols are added."""
        sim = GBMSimulator(symbols=["BTC"])
        assert sim._cholesky is None  # Only 1 coin, no correlation matrix
        sim.add_symbol("ETH")
        assert sim._cholesky is not None

    def test_cholesky_reproduces_correlations(self):
        """Test that L @ L.T recovers the pairwise correlations."""
        sim = GBMSimulator(symbols=["BTC", "ETH", "DOGE"])
        corr = sim._cholesky @ sim._cholesky.T
        assert np.isclose(corr[0, 1], 0.8)
        assert np.isclose(corr[0, 2], 0.5)

    def test_get_price_returns_none_for_unknown(self):
        """Test that get_price returns None for an unsimulated coin."""
        sim = GBMSimulator(symbols=["BTC"])
        assert sim.get_price("UNKNOWN") is None

    def test_pairwise_correlation_majors(self):
        """Test that the majors move together most."""
        assert GBMSimulator._pairwise_correlation("BTC", "ETH") == 0.8

    def test_pairwise_correlation_layer1(self):
        assert GBMSimulator._pairwise_correlation("SOL", "AVAX") == 0.7

    def test_pairwise_correlation_memes(self):
        assert GBMSimulator._pairwise_correlation("DOGE", "WIF") == 0.6

    def test_pairwise_correlation_cross_group(self):
        """Test cross-group and unknown coin correlation."""
        assert GBMSimulator._pairwise_correlation("BTC", "SOL") == 0.5
        assert GBMSimulator._pairwise_correlation("BTC", "ZZZZ") == 0.5

    def test_default_dt_is_reasonable(self):
        """Test that default dt is a reasonable small value."""
        assert 0 < GBMSimulator.DEFAULT_DT < 0.0001
