"""
Adapter: In-process event bus.

Implements LedgerEventPublisher and QuoteChangePublisher by fanning each
event out to registered handlers synchronously. Handlers are read-side
caches and stream feeds; they must be fast and must not touch the ledger.
"""

import logging
import threading
from typing import Callable, Union

from papertrade.domain.trading.entities import LedgerChange, QuoteChange
from papertrade.domain.trading.ports import LedgerEventPublisher, QuoteChangePublisher

logger = logging.getLogger(__name__)

Event = Union[LedgerChange, QuoteChange]
EventHandler = Callable[[Event], None]


class InProcessEventBus(LedgerEventPublisher, QuoteChangePublisher):
    """Synchronous publish/subscribe for ledger and quote changes.

    One bus instance carries one kind of event; the composition root keeps
    a separate bus for ledger writes and for quote refreshes.
    """

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self._handlers: list[EventHandler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: EventHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def publish(self, change: Event) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(change)
            except Exception:
                logger.exception(
                    "%s handler failed for symbol=%s", self.name, change.symbol
                )
