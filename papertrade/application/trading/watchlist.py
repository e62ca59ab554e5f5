"""
Use cases: Manage the symbols a user saved from the swipe deck.

AddToWatchlistUseCase, RemoveFromWatchlistUseCase, ListWatchlistUseCase.
Failure cases: UnauthenticatedError, SymbolNotFoundError (add only).
"""

import logging
from typing import Optional

from papertrade.application.trading.dtos import WatchlistCommand, WatchlistItemResult
from papertrade.domain.trading.entities import WatchlistEntry
from papertrade.domain.trading.errors import SymbolNotFoundError, UnauthenticatedError
from papertrade.domain.trading.ports import MarketDataRepository, WatchlistRepository

logger = logging.getLogger(__name__)


class AddToWatchlistUseCase:
    """Saves a tracked symbol. Saving it twice is a no-op."""

    def __init__(self, watchlist: WatchlistRepository, market_data: MarketDataRepository) -> None:
        self._watchlist = watchlist
        self._market_data = market_data

    def execute(self, command: WatchlistCommand) -> bool:
        if not command.user_id:
            raise UnauthenticatedError()
        symbol = command.symbol.strip().upper()
        if self._market_data.get_quote(symbol) is None:
            raise SymbolNotFoundError(symbol)
        added = self._watchlist.add(WatchlistEntry(user_id=command.user_id, symbol=symbol))
        if added:
            logger.info("Watchlist add: user=%s symbol=%s", command.user_id, symbol)
        return added


class RemoveFromWatchlistUseCase:
    def __init__(self, watchlist: WatchlistRepository) -> None:
        self._watchlist = watchlist

    def execute(self, command: WatchlistCommand) -> bool:
        if not command.user_id:
            raise UnauthenticatedError()
        return self._watchlist.remove(command.user_id, command.symbol.strip().upper())


class ListWatchlistUseCase:
    """Lists saved symbols, newest first, with their cached quotes."""

    def __init__(self, watchlist: WatchlistRepository, market_data: MarketDataRepository) -> None:
        self._watchlist = watchlist
        self._market_data = market_data

    def execute(self, user_id: Optional[str]) -> list[WatchlistItemResult]:
        if not user_id:
            raise UnauthenticatedError()
        entries = self._watchlist.list_for_user(user_id)
        quotes = self._market_data.get_quotes([e.symbol for e in entries])
        items = []
        for entry in entries:
            quote = quotes.get(entry.symbol)
            items.append(
                WatchlistItemResult(
                    symbol=entry.symbol,
                    saved_at=entry.created_at,
                    name=quote.name if quote else None,
                    price=quote.price if quote else None,
                    change=quote.change if quote else None,
                )
            )
        return items
