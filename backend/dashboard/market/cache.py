"""Thread-safe in-memory dataset cache."""

from __future__ import annotations

from collections.abc import Callable
from threading import Lock
from typing import Any

from .models import CacheEntry, now_ms


class CacheStore:
    """Latest successfully fetched payload per dataset key, stamped with fetch time.

    Writer: MarketDataService only, one fetch per key at a time.
    Readers: everything else. A read returns the committed CacheEntry, which is
    immutable, so a reader never sees a half-written entry.
    """

    def __init__(self, clock: Callable[[], float] = now_ms) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._clock = clock
        self._version: int = 0  # Bumped on every set/clear

    def get(self, key: str) -> CacheEntry | None:
        """Latest entry for a key, or None if nothing has been fetched yet."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, payload: Any) -> CacheEntry:
        """Replace the entry for a key, stamping fetched_at with the current time."""
        entry = CacheEntry(payload=payload, fetched_at=self._clock())
        with self._lock:
            self._entries[key] = entry
            self._version += 1
        return entry

    def is_stale(self, key: str, ttl_ms: float) -> bool:
        """True if the key is absent or at least ttl_ms old."""
        entry = self.get(key)
        if entry is None:
            return True
        return self._clock() - entry.fetched_at >= ttl_ms

    def age(self, key: str) -> float | None:
        """Milliseconds since the key was fetched, or None if absent."""
        entry = self.get(key)
        if entry is None:
            return None
        return self._clock() - entry.fetched_at

    def clear(self, key: str | None = None) -> None:
        """Remove one entry, or every entry when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
            self._version += 1

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    @property
    def version(self) -> int:
        """Current version counter. Useful for change detection."""
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
