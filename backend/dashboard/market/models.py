"""Data models for market data.

Wire payloads use the camelCase keys served by the price-cache worker.
Parsing raises ValueError on anything that does not have the expected shape.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


def now_ms() -> float:
    """Wall-clock time in milliseconds."""
    return time.time() * 1000.0


def normalize_symbol(symbol: str) -> str:
    """Case-normalize a coin symbol ('btc ' -> 'BTC')."""
    return str(symbol).strip().upper()


def normalize_symbols(symbols) -> list[str]:
    """Normalize, drop blanks and de-duplicate while keeping first-seen order."""
    out: list[str] = []
    seen: set[str] = set()
    for symbol in symbols:
        value = normalize_symbol(symbol)
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


def _require_mapping(raw: Any, what: str) -> dict:
    if not isinstance(raw, dict):
        raise ValueError(f"{what} must be a JSON object, got {type(raw).__name__}")
    return raw


def _number(raw: dict, key: str, default: float | None = None) -> float:
    value = raw.get(key, default)
    # bool is an int subclass; a true/false price is malformed
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key!r} must be a number, got {value!r}")
    return float(value)


def _string(raw: dict, key: str, default: str | None = None) -> str:
    value = raw.get(key, default)
    if not isinstance(value, str):
        raise ValueError(f"{key!r} must be a string, got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class CoinQuote:
    """Latest market quote for one coin."""

    symbol: str
    name: str
    rank: int
    price_usd: float
    market_cap_usd: float
    volume_24h_usd: float
    change_24h_pct: float

    @classmethod
    def from_dict(cls, raw: Any) -> CoinQuote:
        raw = _require_mapping(raw, "coin")
        return cls(
            symbol=normalize_symbol(_string(raw, "symbol")),
            name=_string(raw, "name", ""),
            rank=int(_number(raw, "rank", 0)),
            price_usd=_number(raw, "priceUsd"),
            market_cap_usd=_number(raw, "marketCapUsd", 0.0),
            volume_24h_usd=_number(raw, "volume24hUsd", 0.0),
            change_24h_pct=_number(raw, "change24hPct", 0.0),
        )

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "rank": self.rank,
            "priceUsd": self.price_usd,
            "marketCapUsd": self.market_cap_usd,
            "volume24hUsd": self.volume_24h_usd,
            "change24hPct": self.change_24h_pct,
        }


@dataclass(frozen=True, slots=True)
class PriceSnapshot:
    """Top-N price blob as published by the price-cache worker."""

    source: str
    updated_at: str
    count: int
    by_symbol: dict[str, CoinQuote] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> PriceSnapshot:
        raw = _require_mapping(raw, "price snapshot")
        coins = _require_mapping(raw.get("bySymbol"), "bySymbol")
        by_symbol: dict[str, CoinQuote] = {}
        for key, coin in coins.items():
            quote = CoinQuote.from_dict(coin)
            # The map key wins over the embedded symbol; both are upper-cased
            by_symbol[normalize_symbol(key)] = quote
        return cls(
            source=_string(raw, "source", ""),
            updated_at=_string(raw, "updatedAt"),
            count=int(_number(raw, "count", len(by_symbol))),
            by_symbol=by_symbol,
        )

    def get(self, symbol: str) -> CoinQuote | None:
        return self.by_symbol.get(normalize_symbol(symbol))

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "updatedAt": self.updated_at,
            "count": self.count,
            "bySymbol": {s: q.to_dict() for s, q in self.by_symbol.items()},
        }


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    """One token in the append-only registry (logo, ids, first/last seen)."""

    id: str
    symbol: str
    name: str
    logo_url: str
    market_cap_rank: int
    first_seen_at: str
    last_seen_at: str

    @classmethod
    def from_dict(cls, raw: Any) -> RegistryEntry:
        raw = _require_mapping(raw, "registry entry")
        rank = raw.get("marketCapRank")
        return cls(
            id=_string(raw, "id"),
            symbol=normalize_symbol(_string(raw, "symbol")),
            name=_string(raw, "name", ""),
            logo_url=_string(raw, "logoUrl", ""),
            market_cap_rank=int(rank) if isinstance(rank, (int, float)) else 0,
            first_seen_at=_string(raw, "firstSeenAt", ""),
            last_seen_at=_string(raw, "lastSeenAt", ""),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "logoUrl": self.logo_url,
            "marketCapRank": self.market_cap_rank,
            "firstSeenAt": self.first_seen_at,
            "lastSeenAt": self.last_seen_at,
        }


@dataclass(frozen=True, slots=True)
class Registry:
    """Token registry. One symbol may map to several ids; the first one wins."""

    source: str
    updated_at: str
    count: int
    by_id: dict[str, RegistryEntry] = field(default_factory=dict)
    symbol_to_ids: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> Registry:
        raw = _require_mapping(raw, "registry")
        by_id = {
            str(key): RegistryEntry.from_dict(entry)
            for key, entry in _require_mapping(raw.get("byId"), "byId").items()
        }
        symbol_to_ids: dict[str, list[str]] = {}
        for symbol, ids in _require_mapping(raw.get("symbolToIds"), "symbolToIds").items():
            if not isinstance(ids, list):
                raise ValueError(f"symbolToIds[{symbol!r}] must be a list")
            symbol_to_ids[normalize_symbol(symbol)] = [str(i) for i in ids]
        return cls(
            source=_string(raw, "source", ""),
            updated_at=_string(raw, "updatedAt"),
            count=int(_number(raw, "count", len(by_id))),
            by_id=by_id,
            symbol_to_ids=symbol_to_ids,
        )

    def primary_id(self, symbol: str) -> str | None:
        ids = self.symbol_to_ids.get(normalize_symbol(symbol))
        return ids[0] if ids else None

    def primary_entry(self, symbol: str) -> RegistryEntry | None:
        coin_id = self.primary_id(symbol)
        return self.by_id.get(coin_id) if coin_id else None

    def logo_url(self, symbol: str) -> str | None:
        entry = self.primary_entry(symbol)
        if entry is None or not entry.logo_url:
            return None
        return entry.logo_url

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "updatedAt": self.updated_at,
            "count": self.count,
            "byId": {i: e.to_dict() for i, e in self.by_id.items()},
            "symbolToIds": {s: list(ids) for s, ids in self.symbol_to_ids.items()},
        }


@dataclass(frozen=True, slots=True)
class PriceStatus:
    """Outcome of the worker's most recent price refresh."""

    success: bool
    timestamp: str
    trigger: str
    service: str
    count: int | None = None
    error: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> PriceStatus:
        raw = _require_mapping(raw, "status")
        success = raw.get("success")
        if not isinstance(success, bool):
            raise ValueError(f"'success' must be a boolean, got {success!r}")
        count = raw.get("count")
        return cls(
            success=success,
            timestamp=_string(raw, "timestamp"),
            trigger=_string(raw, "trigger", ""),
            service=_string(raw, "service", ""),
            count=int(count) if isinstance(count, (int, float)) else None,
            error=raw.get("error") if isinstance(raw.get("error"), str) else None,
            updated_at=raw.get("updatedAt") if isinstance(raw.get("updatedAt"), str) else None,
        )


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached payload and the wall-clock time (ms) it was fetched."""

    payload: Any
    fetched_at: float


@dataclass(frozen=True, slots=True)
class CacheState:
    """Summary consumers use to decide between spinner, data and stale badge."""

    loaded: bool = False
    loading: bool = False
    last_refresh: float | None = None  # Unix milliseconds
    coin_count: int = 0

    def to_dict(self) -> dict:
        return {
            "isLoaded": self.loaded,
            "isLoading": self.loading,
            "lastRefresh": self.last_refresh,
            "coinCount": self.coin_count,
        }


@dataclass(frozen=True, slots=True)
class MarketData:
    """Per-symbol projection of the price snapshot joined with the registry."""

    symbol: str
    price_usd: float
    market_cap_usd: float
    change_24h_pct: float
    last_updated_at: str
    logo_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "priceUsd": self.price_usd,
            "marketCapUsd": self.market_cap_usd,
            "change24hPct": self.change_24h_pct,
            "logoUrl": self.logo_url,
            "lastUpdatedAt": self.last_updated_at,
        }


@dataclass(frozen=True, slots=True)
class Holding:
    """The parts of a portfolio holding the fallback reads look at."""

    symbol: str
    last_price_usd: float | None = None
    last_market_cap_usd: float | None = None
    avg_cost: float | None = None
