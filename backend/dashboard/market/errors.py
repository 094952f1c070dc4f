"""Errors raised by market data feeds."""

from __future__ import annotations


class FetchError(Exception):
    """A remote call failed: network error, timeout, bad status, or malformed body.

    Feeds raise this; MarketDataService catches it and keeps serving the last
    good cache entry.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: str,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.reason = reason  # "network", "timeout", "status" or "malformed"
        self.status_code = status_code

    def __repr__(self) -> str:
        return (
            f"FetchError({str(self)!r}, endpoint={self.endpoint!r}, "
            f"reason={self.reason!r}, status_code={self.status_code!r})"
        )
