"""
Read-side cache of portfolio views.

Views are rebuilt on demand and dropped when something they depend on
changes: a committed trade of the owner (LedgerChange) or a new price for
any symbol (QuoteChange). Every change also bumps a generation token;
a view built from reads taken before the latest change is refused by
put(), so a stale view cannot be served after a trade commits.
"""

import logging
import threading
from typing import Optional

from papertrade.application.trading.dtos import PortfolioView
from papertrade.domain.trading.entities import LedgerChange, QuoteChange

logger = logging.getLogger(__name__)

Generation = tuple[int, int]


class PortfolioViewCache:
    """Thread-safe map of user id to the last computed PortfolioView."""

    def __init__(self) -> None:
        self._views: dict[str, PortfolioView] = {}
        self._generations: dict[str, int] = {}
        self._quote_generation = 0
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, user_id: str) -> Optional[PortfolioView]:
        with self._lock:
            view = self._views.get(user_id)
            if view is None:
                self.misses += 1
            else:
                self.hits += 1
            return view

    def generation(self, user_id: str) -> Generation:
        """Token to take before reading the data a view is built from."""
        with self._lock:
            return self._generations.get(user_id, 0), self._quote_generation

    def put(self, view: PortfolioView, generation: Optional[Generation] = None) -> bool:
        """Store a view unless a change arrived after `generation` was taken.

        Returns:
            True when the view was cached.
        """
        with self._lock:
            current = (self._generations.get(view.user_id, 0), self._quote_generation)
            if generation is not None and generation != current:
                logger.debug("Discarded outdated portfolio view for user=%s", view.user_id)
                return False
            self._views[view.user_id] = view
            return True

    def invalidate_user(self, user_id: str) -> None:
        with self._lock:
            self._generations[user_id] = self._generations.get(user_id, 0) + 1
            self._views.pop(user_id, None)

    def on_ledger_change(self, change: LedgerChange) -> None:
        self.invalidate_user(change.user_id)
        logger.debug("Portfolio view dropped for user=%s", change.user_id)

    def on_quote_change(self, change: QuoteChange) -> None:
        with self._lock:
            self._quote_generation += 1
            stale = [
                user_id
                for user_id, view in self._views.items()
                if any(p.symbol == change.symbol for p in view.positions)
            ]
            for user_id in stale:
                del self._views[user_id]
        if stale:
            logger.debug("Dropped %d portfolio views after %s moved", len(stale), change.symbol)

    def clear(self) -> None:
        with self._lock:
            self._views.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._views)
