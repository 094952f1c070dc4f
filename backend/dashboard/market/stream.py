"""SSE streaming endpoint for live market data."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse

from .binding import MarketDataBinding
from .service import MarketDataService

logger = logging.getLogger(__name__)


def create_stream_router(service: MarketDataService) -> APIRouter:
    """Create the market data router with a reference to the service.

    This factory pattern lets us inject the MarketDataService without globals.
    """
    router = APIRouter(prefix="/api/market", tags=["market"])

    @router.get("/state")
    async def market_state() -> dict:
        """Loading/freshness summary plus cache diagnostics."""
        return {**service.get_state().to_dict(), "cache": service.cache_status()}

    @router.get("/status")
    async def market_status() -> dict:
        """Outcome of the price-cache worker's last refresh, if reachable."""
        status = await service.get_status()
        if status is None:
            return {"available": False}
        return {
            "available": True,
            "success": status.success,
            "count": status.count,
            "error": status.error,
            "timestamp": status.timestamp,
            "trigger": status.trigger,
            "updatedAt": status.updated_at,
            "service": status.service,
        }

    @router.get("/stream")
    async def stream_market(
        request: Request,
        symbols: str = Query("", description="Comma-separated coin symbols"),
    ) -> StreamingResponse:
        """SSE endpoint for live prices of the requested symbols.

        Each client gets its own binding. An event is sent right away and
        again after every cache change:

            data: {"prices": {"BTC": 67000.0}, "marketCaps": {...}, "state": {...}}
        """
        wanted = [s for s in symbols.split(",") if s.strip()]
        return StreamingResponse(
            _generate_events(service, request, wanted),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


def _event_payload(binding: MarketDataBinding) -> str:
    state = binding.state.to_dict()
    state["isLoading"] = binding.is_loading
    data = {"prices": binding.prices, "marketCaps": binding.market_caps, "state": state}
    return f"data: {json.dumps(data)}\n\n"


async def _generate_events(
    service: MarketDataService,
    request: Request,
    symbols: list[str],
    disconnect_poll: float = 1.0,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted market data events.

    Wakes on every cache notification, and every `disconnect_poll` seconds to
    notice a client that went away. The binding is released on every exit.
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    changed = asyncio.Event()
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s (%d symbols)", client_ip, len(symbols))

    try:
        async with MarketDataBinding(service, on_change=lambda _: changed.set()) as binding:
            refresh = binding.set_symbols(symbols)
            yield _event_payload(binding)
            if refresh is not None:
                await refresh
                # Changes that landed during the first refresh go out with this event
                changed.clear()
                yield _event_payload(binding)

            while True:
                if await request.is_disconnected():
                    logger.info("SSE client disconnected: %s", client_ip)
                    break
                try:
                    await asyncio.wait_for(changed.wait(), timeout=disconnect_poll)
                except asyncio.TimeoutError:
                    continue
                changed.clear()
                yield _event_payload(binding)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
        raise
