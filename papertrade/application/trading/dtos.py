"""
Data Transfer Objects for the trading application layer.

DTOs carry data between the interface and application layers.
They are plain dataclasses with no behavior.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID


# ------------------------------------------------------------------
# Ledger DTOs
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ExecuteTradeCommand:
    """Input DTO for executing a paper trade.

    Attributes:
        user_id: The acting user, or None when unauthenticated.
        symbol: Stock ticker symbol.
        side: "buy" or "sell".
        quantity: Requested share count as received from the client.
        client_order_id: Optional idempotency key.
        source: Which screen sent the order (logging only).
    """

    user_id: Optional[str]
    symbol: str
    side: str
    quantity: object
    client_order_id: Optional[str] = None
    source: str = "trade_form"


@dataclass(frozen=True)
class TradeExecutionResult:
    """Output DTO for an executed trade.

    Attributes:
        transaction_id: Id of the recorded transaction.
        symbol: Stock ticker symbol.
        side: "buy" or "sell".
        quantity: Shares traded.
        price: Execution price.
        total_amount: quantity * price.
        executed_at: When the transaction was recorded.
        balance: Cash after the trade.
        position_quantity: Shares held after the trade (0 when closed).
        position_average_price: Cost basis after the trade, None when closed.
        replayed: True when an earlier order with the same key was returned.
    """

    transaction_id: UUID
    symbol: str
    side: str
    quantity: Decimal
    price: Decimal
    total_amount: Decimal
    executed_at: datetime
    balance: Decimal
    position_quantity: Decimal
    position_average_price: Optional[Decimal]
    replayed: bool = False


@dataclass(frozen=True)
class OpenAccountCommand:
    """Input DTO for creating a paper trading account."""

    user_id: Optional[str]


@dataclass(frozen=True)
class BalanceResult:
    """Output DTO for a user's cash balance."""

    user_id: str
    balance: Decimal


@dataclass(frozen=True)
class ListTransactionsQuery:
    """Input DTO for the transaction history.

    Attributes:
        user_id: The acting user.
        symbol: Optional filter by stock symbol.
        limit: Maximum number of transactions, newest first.
    """

    user_id: Optional[str]
    symbol: Optional[str] = None
    limit: int = 50


@dataclass(frozen=True)
class TransactionResult:
    """Output DTO for one recorded transaction."""

    id: UUID
    symbol: str
    transaction_type: str
    quantity: Decimal
    price: Decimal
    total_amount: Decimal
    created_at: datetime


@dataclass(frozen=True)
class PositionView:
    """A position valued at the latest cached price.

    current_price and the derived fields are None when the market data
    store has no quote for the symbol.
    """

    symbol: str
    quantity: Decimal
    average_price: Decimal
    cost_basis: Decimal
    current_price: Optional[Decimal] = None
    market_value: Optional[Decimal] = None
    gain_loss: Optional[Decimal] = None
    gain_loss_percent: Optional[Decimal] = None


@dataclass(frozen=True)
class PortfolioView:
    """Output DTO for the portfolio screen."""

    user_id: str
    balance: Decimal
    total_value: Decimal
    total_gain_loss: Decimal
    current_total: Decimal
    positions: list[PositionView] = field(default_factory=list)


@dataclass(frozen=True)
class DiscrepancyResult:
    """One symbol that failed reconciliation."""

    symbol: str
    kind: str
    stored_quantity: Optional[Decimal]
    derived_quantity: Decimal
    stored_average_price: Optional[Decimal]
    derived_average_price: Decimal


@dataclass(frozen=True)
class ReconciliationResult:
    """Output DTO for a ledger audit."""

    user_id: str
    consistent: bool
    stored_cash: Decimal
    derived_cash: Decimal
    cash_difference: Decimal
    transaction_count: int
    discrepancies: list[DiscrepancyResult] = field(default_factory=list)


# ------------------------------------------------------------------
# Market data DTOs
# ------------------------------------------------------------------


@dataclass(frozen=True)
class NewsResult:
    """A news headline attached to a quote."""

    id: str
    title: str
    summary: str
    date: str
    url: str


@dataclass(frozen=True)
class QuoteResult:
    """Output DTO for cached market data.

    chart is a list of (date, close) pairs, oldest first.
    """

    symbol: str
    name: str
    price: Decimal
    change: Decimal
    volume: Optional[int]
    description: str
    updated_at: Optional[datetime]
    chart: list[tuple[str, Decimal]] = field(default_factory=list)
    news: list[NewsResult] = field(default_factory=list)


@dataclass(frozen=True)
class SearchStocksQuery:
    """Input DTO for search-as-you-type over cached quotes."""

    term: str
    limit: int = 10


@dataclass(frozen=True)
class RefreshMarketDataResult:
    """Output DTO for one run of the market data refresh job."""

    symbols: list[str]
    updated: list[str]
    failed: list[str]
    seeded: bool
    started_at: datetime
    finished_at: datetime


# ------------------------------------------------------------------
# Recommendation DTOs
# ------------------------------------------------------------------


@dataclass(frozen=True)
class GetRecommendationsQuery:
    """Input DTO for AI stock recommendations.

    Attributes:
        prompt: Free-text investment idea or market sentiment.
    """

    prompt: str


@dataclass(frozen=True)
class RecommendationResult:
    """Output DTO for one recommended stock.

    Attributes:
        symbol: Stock ticker symbol.
        name: Company name.
        reason: Why the stock fits the idea.
        price: Latest cached price when the symbol is tracked.
    """

    symbol: str
    name: str
    reason: str
    price: Optional[Decimal] = None


# ------------------------------------------------------------------
# Watchlist DTOs
# ------------------------------------------------------------------


@dataclass(frozen=True)
class WatchlistCommand:
    """Input DTO for adding or removing a saved symbol."""

    user_id: Optional[str]
    symbol: str


@dataclass(frozen=True)
class WatchlistItemResult:
    """Output DTO for a saved symbol with its latest quote, if any."""

    symbol: str
    saved_at: datetime
    name: Optional[str] = None
    price: Optional[Decimal] = None
    change: Optional[Decimal] = None
