"""
FastAPI router for realtime quote streaming.

Provides:
- WebSocket endpoint for live quote changes
- SSE (Server-Sent Events) endpoint for HTTP-only clients
- Stream status endpoint

Events only tell clients that a price moved. Clients re-read their
portfolio or quote through the regular endpoints.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Annotated, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from papertrade.interfaces.trading.dependencies import get_quote_feed
from papertrade.realtime.stream import QuoteChangeFeed, QuoteSubscription, StreamEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])

KEEPALIVE_SECONDS = 15.0
SUPPORTED_ACTIONS = ["subscribe", "unsubscribe", "subscribe_all", "ping"]


def _parse_symbols(symbols: Optional[str]) -> set[str]:
    if not symbols:
        return set()
    return {s.strip().upper() for s in symbols.split(",") if s.strip()}


async def handle_client_message(subscription: QuoteSubscription, raw: str) -> dict:
    """Apply one WebSocket client command and return the reply.

    Supported commands:
        {"action": "subscribe", "symbols": ["AAPL", "MSFT"]}
        {"action": "unsubscribe", "symbols": ["MSFT"]}
        {"action": "subscribe_all"}
        {"action": "ping"}
    """
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        return {"error": "Invalid JSON"}
    if not isinstance(msg, dict):
        return {"error": "Invalid JSON"}

    action = msg.get("action", "")
    symbols = msg.get("symbols") or []
    if not isinstance(symbols, list):
        symbols = []

    if action == "subscribe":
        subscription.add_symbols(str(s) for s in symbols)
        return {"event": "subscribed", "symbols": sorted(subscription.symbols)}
    if action == "unsubscribe":
        subscription.remove_symbols(str(s) for s in symbols)
        return {"event": "unsubscribed", "symbols": sorted(subscription.symbols)}
    if action == "subscribe_all":
        subscription.clear_symbols()
        return {"event": "subscribed_all"}
    if action == "ping":
        return {"event": "pong", "timestamp": datetime.now(timezone.utc).isoformat()}
    return {"error": f"Unknown action: {action}", "supported": SUPPORTED_ACTIONS}


async def sse_events(
    feed: QuoteChangeFeed,
    symbols: set[str],
    keepalive_seconds: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield Server-Sent Events for quote changes until the client leaves."""
    subscription = feed.subscribe(symbols)
    try:
        yield ": connected\n\n"
        while True:
            try:
                change = await asyncio.wait_for(
                    subscription.__anext__(), timeout=keepalive_seconds
                )
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            except StopAsyncIteration:
                break
            yield StreamEvent.from_change(change).to_sse()
    finally:
        subscription.close()


# ------------------------------------------------------------------
# WebSocket endpoint
# ------------------------------------------------------------------


@router.websocket("/ws/quotes")
async def ws_quotes(
    websocket: WebSocket,
    feed: QuoteChangeFeed = Depends(get_quote_feed),
) -> None:
    """WebSocket endpoint for live quote changes.

    A new connection receives every symbol until it subscribes.

    Protocol (JSON):
        → {"action": "subscribe", "symbols": ["AAPL", "MSFT"]}
        ← {"event": "subscribed", "symbols": ["AAPL", "MSFT"]}

        → {"action": "ping"}
        ← {"event": "pong", "timestamp": "..."}

        ← {"event": "quote", "symbol": "AAPL", "data": {...}}
    """
    await websocket.accept()
    subscription = feed.subscribe()
    await websocket.send_text(
        StreamEvent(event_type="connected", symbol=None, data={"actions": SUPPORTED_ACTIONS}).to_json()
    )

    async def forward() -> None:
        async for change in subscription:
            await websocket.send_text(StreamEvent.from_change(change).to_json())

    sender = asyncio.create_task(forward())
    try:
        while True:
            raw = await websocket.receive_text()
            reply = await handle_client_message(subscription, raw)
            await websocket.send_text(json.dumps(reply))
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
    finally:
        subscription.close()
        sender.cancel()


# ------------------------------------------------------------------
# SSE endpoint
# ------------------------------------------------------------------


@router.get(
    "/quotes",
    summary="Server-Sent Events quote stream",
    description="HTTP streaming endpoint for clients that can't use WebSocket.",
)
async def sse_quotes(
    symbols: Annotated[
        str | None,
        Query(description="Comma-separated ticker symbols to subscribe to"),
    ] = None,
    feed: QuoteChangeFeed = Depends(get_quote_feed),
) -> StreamingResponse:
    """SSE endpoint: streams quote changes as text/event-stream."""
    return StreamingResponse(
        sse_events(feed, _parse_symbols(symbols)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get(
    "/status",
    summary="Get stream status",
    description="Return subscriber stats and recent quote changes.",
)
def stream_status(feed: QuoteChangeFeed = Depends(get_quote_feed)) -> dict:
    return {
        **feed.stats,
        "recent_events": feed.get_recent_events(limit=20),
    }
