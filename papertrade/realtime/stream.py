"""
Quote change feed for WebSocket and SSE clients.

The refresh job publishes a QuoteChange whenever a cached price moves.
Every subscriber gets its own bounded queue scoped to a symbol set, and
iterates it lazily for as long as it stays connected. A subscription that
falls behind loses its oldest events. Disconnecting and subscribing again
starts a fresh sequence.

Architecture:
    MarketRefreshScheduler ──▶ RefreshMarketDataUseCase
                                      │ publish()   (any thread)
                                      ▼
                               QuoteChangeFeed
                                      │ call_soon_threadsafe
                         ┌────────────┼────────────┐
                         ▼            ▼            ▼
                  QuoteSubscription (one per WebSocket / SSE client)

Events only tell clients to re-read. They never mutate ledger state.
"""

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from papertrade.domain.trading.entities import QuoteChange
from papertrade.domain.trading.ports import QuoteChangePublisher

logger = logging.getLogger(__name__)


@dataclass
class StreamEvent:
    """A single event pushed to connected clients."""

    event_type: str          # "quote", "connected", "refresh"
    symbol: str | None
    data: dict
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_change(cls, change: QuoteChange) -> "StreamEvent":
        return cls(
            event_type="quote",
            symbol=change.symbol,
            data={
                "price": str(change.price),
                "change": str(change.change),
                "previous_price": (
                    str(change.previous_price) if change.previous_price is not None else None
                ),
            },
            timestamp=change.occurred_at.isoformat(),
        )

    def to_json(self) -> str:
        return json.dumps({
            "event": self.event_type,
            "symbol": self.symbol,
            "data": self.data,
            "timestamp": self.timestamp,
        }, default=str)

    def to_sse(self) -> str:
        """Format as Server-Sent Event."""
        return f"event: {self.event_type}\ndata: {self.to_json()}\n\n"


def _normalize(symbols: Optional[Iterable[str]]) -> set[str]:
    return {s.strip().upper() for s in symbols or () if s and s.strip()}


class QuoteSubscription:
    """Async iterator over quote changes for a set of symbols.

    An empty symbol set receives every change.
    """

    def __init__(
        self,
        feed: "QuoteChangeFeed",
        symbols: set[str],
        loop: asyncio.AbstractEventLoop,
        max_queue_size: int,
    ) -> None:
        self._feed = feed
        self._loop = loop
        self._queue: asyncio.Queue[QuoteChange] = asyncio.Queue(maxsize=max_queue_size)
        self._symbols = symbols
        self.dropped = 0
        self.closed = False

    @property
    def symbols(self) -> set[str]:
        return set(self._symbols)

    def add_symbols(self, symbols: Iterable[str]) -> None:
        self._symbols |= _normalize(symbols)

    def remove_symbols(self, symbols: Iterable[str]) -> None:
        self._symbols -= _normalize(symbols)

    def clear_symbols(self) -> None:
        self._symbols = set()

    def matches(self, symbol: str) -> bool:
        return not self._symbols or symbol.upper() in self._symbols

    def offer(self, change: QuoteChange) -> None:
        """Schedule delivery from any thread."""
        try:
            self._loop.call_soon_threadsafe(self._put, change)
        except RuntimeError:
            # Event loop already closed.
            self.close()

    def _put(self, change: QuoteChange) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(change)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._feed._discard(self)

    def __aiter__(self) -> "QuoteSubscription":
        return self

    async def __anext__(self) -> QuoteChange:
        if self.closed:
            raise StopAsyncIteration
        return await self._queue.get()


class QuoteChangeFeed(QuoteChangePublisher):
    """Fan-out of quote changes to async subscribers.

    publish() is safe to call from scheduler threads; subscribe() must be
    called from inside the event loop that will consume the subscription.
    """

    def __init__(self, max_queue_size: int = 100, max_history: int = 200) -> None:
        self._subscriptions: list[QuoteSubscription] = []
        self._lock = threading.Lock()
        self._max_queue_size = max_queue_size
        self._history: list[QuoteChange] = []
        self._max_history = max_history
        self._stats = {
            "total_subscriptions": 0,
            "total_events_published": 0,
        }

    @property
    def active_subscriptions(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    @property
    def stats(self) -> dict:
        return {**self._stats, "active_subscriptions": self.active_subscriptions}

    def subscribe(self, symbols: Optional[Iterable[str]] = None) -> QuoteSubscription:
        subscription = QuoteSubscription(
            feed=self,
            symbols=_normalize(symbols),
            loop=asyncio.get_running_loop(),
            max_queue_size=self._max_queue_size,
        )
        with self._lock:
            self._subscriptions.append(subscription)
            self._stats["total_subscriptions"] += 1
        logger.info("Quote subscriber connected. Active: %d", self.active_subscriptions)
        return subscription

    def _discard(self, subscription: QuoteSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        logger.info("Quote subscriber disconnected. Active: %d", self.active_subscriptions)

    def publish(self, change: QuoteChange) -> None:
        with self._lock:
            self._history.append(change)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history:]
            self._stats["total_events_published"] += 1
            targets = [s for s in self._subscriptions if s.matches(change.symbol)]
        for subscription in targets:
            subscription.offer(change)

    def get_recent_events(self, limit: int = 50, symbol: str | None = None) -> list[dict]:
        """Return recent changes, optionally filtered by symbol."""
        with self._lock:
            events = list(self._history)
        if symbol:
            events = [e for e in events if e.symbol == symbol.upper()]
        return [json.loads(StreamEvent.from_change(e).to_json()) for e in events[-limit:]]
