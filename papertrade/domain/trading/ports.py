"""
Port interfaces (ABCs) for the trading bounded context.

Ports define the contracts that the domain requires from the outside world.
Infrastructure adapters implement these interfaces.
The domain layer never depends on concrete implementations.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Optional

from papertrade.domain.trading.entities import (
    Balance,
    LedgerChange,
    Position,
    Quote,
    QuoteChange,
    StockRecommendation,
    Transaction,
    WatchlistEntry,
)


class LedgerSession(ABC):
    """Reads and writes against one open ledger storage transaction.

    Every call made through a session belongs to the same atomic unit.
    Nothing is visible to other sessions until the unit of work commits.
    """

    @abstractmethod
    def get_balance(self, user_id: str, for_update: bool = False) -> Optional[Balance]:
        """Return the user's balance, or None if the account does not exist.

        Args:
            user_id: Owner of the balance.
            for_update: Lock the balance row until the unit of work ends.
        """
        raise NotImplementedError

    @abstractmethod
    def create_balance(self, balance: Balance) -> None:
        """Insert the balance row for a new account."""
        raise NotImplementedError

    @abstractmethod
    def set_balance(self, user_id: str, amount: Decimal) -> None:
        """Overwrite the user's cash balance."""
        raise NotImplementedError

    @abstractmethod
    def get_position(self, user_id: str, symbol: str) -> Optional[Position]:
        """Return the user's position in a symbol, or None."""
        raise NotImplementedError

    @abstractmethod
    def list_positions(self, user_id: str) -> list[Position]:
        """Return every open position of the user ordered by symbol."""
        raise NotImplementedError

    @abstractmethod
    def save_position(self, position: Position) -> None:
        """Insert or update the position for (user_id, symbol)."""
        raise NotImplementedError

    @abstractmethod
    def delete_position(self, user_id: str, symbol: str) -> None:
        """Remove the position for (user_id, symbol)."""
        raise NotImplementedError

    @abstractmethod
    def append_transaction(self, transaction: Transaction) -> None:
        """Append a transaction to the immutable log."""
        raise NotImplementedError

    @abstractmethod
    def find_transaction(
        self, user_id: str, client_order_id: str
    ) -> Optional[Transaction]:
        """Return the transaction written under an idempotency key, or None."""
        raise NotImplementedError

    @abstractmethod
    def list_transactions(
        self,
        user_id: str,
        symbol: Optional[str] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> list[Transaction]:
        """Return the user's transactions ordered by created_at.

        Args:
            user_id: Owner of the transactions.
            symbol: Optional filter by stock symbol.
            limit: Maximum number of rows; None returns all.
            newest_first: Order descending when True, ascending otherwise.
        """
        raise NotImplementedError


class LedgerStore(ABC):
    """Port for atomic access to balances, positions and transactions."""

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[LedgerSession]:
        """Open a storage transaction.

        The transaction commits when the block exits normally and rolls back
        when it raises. Storage failures surface as PersistenceFailureError
        after rollback; domain errors propagate unchanged.
        """
        raise NotImplementedError


class LedgerEventPublisher(ABC):
    """Port for announcing committed ledger mutations to read-side caches."""

    @abstractmethod
    def publish(self, change: LedgerChange) -> None:
        """Deliver a change notification to all subscribers."""
        raise NotImplementedError


class MarketDataRepository(ABC):
    """Port for the cached market data store."""

    @abstractmethod
    def get_quote(self, symbol: str) -> Optional[Quote]:
        """Return the cached quote for a symbol, or None."""
        raise NotImplementedError

    @abstractmethod
    def get_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Return cached quotes keyed by symbol. Unknown symbols are omitted."""
        raise NotImplementedError

    @abstractmethod
    def search(self, term: str, limit: int = 10) -> list[Quote]:
        """Return quotes whose symbol or name contains the term."""
        raise NotImplementedError

    @abstractmethod
    def list_quotes(self, limit: int = 20) -> list[Quote]:
        """Return cached quotes ordered by symbol."""
        raise NotImplementedError

    @abstractmethod
    def upsert_quote(self, quote: Quote) -> None:
        """Insert or replace the cached quote for its symbol."""
        raise NotImplementedError

    @abstractmethod
    def list_active_symbols(self) -> list[str]:
        """Return the symbols the refresh job keeps up to date."""
        raise NotImplementedError

    @abstractmethod
    def add_symbols(self, symbols: list[str]) -> None:
        """Start tracking symbols. Already tracked symbols are ignored."""
        raise NotImplementedError


class MarketDataProviderPort(ABC):
    """Port for the third-party market data provider."""

    @abstractmethod
    def fetch_snapshot(self, symbol: str) -> Quote:
        """Return a fresh quote snapshot for a symbol.

        Raises:
            UpstreamUnavailableError: If no price could be obtained.
        """
        raise NotImplementedError


class QuoteChangePublisher(ABC):
    """Port for pushing quote updates to realtime subscribers."""

    @abstractmethod
    def publish(self, change: QuoteChange) -> None:
        """Deliver a quote change to subscribers of its symbol."""
        raise NotImplementedError


class RecommendationPort(ABC):
    """Port for the AI stock recommendation service."""

    @abstractmethod
    def recommend(self, prompt: str) -> list[StockRecommendation]:
        """Return stocks that fit an investment idea, best first."""
        raise NotImplementedError


class IdentityProvider(ABC):
    """Port for resolving the acting user."""

    @abstractmethod
    def get_current_user(self, access_token: str) -> Optional[str]:
        """Return the user id behind an access token, or None if invalid."""
        raise NotImplementedError


class WatchlistRepository(ABC):
    """Port for symbols a user saved from the swipe deck."""

    @abstractmethod
    def add(self, entry: WatchlistEntry) -> bool:
        """Save a symbol. Returns False when it was already saved."""
        raise NotImplementedError

    @abstractmethod
    def remove(self, user_id: str, symbol: str) -> bool:
        """Forget a symbol. Returns False when it was not saved."""
        raise NotImplementedError

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[WatchlistEntry]:
        """Return saved symbols, newest first."""
        raise NotImplementedError
