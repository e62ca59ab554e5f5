"""
Pydantic schemas for trading API request/response validation.

These schemas enforce input validation and define the API contract.
No business logic belongs here. Quantity and price checks live in the
ledger engine so every trading screen gets the same answers.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

SYMBOL_DESCRIPTION = "US stock ticker symbol"
SYMBOL_PATTERN = r"^[A-Za-z0-9.\-]+$"
SYMBOL_MIN_LEN = 1
SYMBOL_MAX_LEN = 10


class ErrorResponse(BaseModel):
    """Standard error response returned by all error handlers."""

    error: str
    code: str
    detail: str | None = None


# ------------------------------------------------------------------
# Ledger
# ------------------------------------------------------------------


class ExecuteTradeRequest(BaseModel):
    """Request schema for the trade endpoint.

    Attributes:
        symbol: Stock ticker. Case-insensitive.
        side: "buy" or "sell".
        quantity: Positive share count. Fractional shares are allowed.
        client_order_id: Optional idempotency key. Retrying with the same
            key returns the original trade instead of trading again.
        source: Which screen sent the order.
    """

    symbol: str = Field(
        ...,
        min_length=SYMBOL_MIN_LEN,
        max_length=SYMBOL_MAX_LEN,
        pattern=SYMBOL_PATTERN,
        description=SYMBOL_DESCRIPTION,
    )
    side: str = Field(..., pattern=r"^(buy|sell)$", description="buy or sell")
    quantity: Decimal | str | None = Field(default=None, description="Number of shares")
    client_order_id: str | None = Field(default=None, min_length=1, max_length=64)
    source: str = Field(
        default="trade_form",
        pattern=r"^(swipe|trade_form|position)$",
        description="Screen that sent the order",
    )


class TradeResponse(BaseModel):
    """Response schema for an executed trade."""

    transaction_id: UUID
    symbol: str
    side: str
    quantity: Decimal
    price: Decimal
    total_amount: Decimal
    executed_at: datetime
    balance: Decimal
    position_quantity: Decimal
    position_average_price: Decimal | None
    replayed: bool


class BalanceResponse(BaseModel):
    user_id: str
    balance: Decimal


class TransactionItem(BaseModel):
    """A single recorded transaction."""

    id: UUID
    symbol: str
    transaction_type: str
    quantity: Decimal
    price: Decimal
    total_amount: Decimal
    created_at: datetime


class TransactionListResponse(BaseModel):
    transactions: list[TransactionItem]


class PositionItem(BaseModel):
    """A position valued at the latest cached price."""

    symbol: str
    quantity: Decimal
    average_price: Decimal
    cost_basis: Decimal
    current_price: Decimal | None = None
    market_value: Decimal | None = None
    gain_loss: Decimal | None = None
    gain_loss_percent: Decimal | None = None


class PortfolioResponse(BaseModel):
    """Response schema for the portfolio endpoint.

    Attributes:
        balance: Available cash.
        total_value: Market value of all priced positions.
        total_gain_loss: Unrealized gain/loss of all priced positions.
        current_total: balance + total_value.
        positions: Every open position, ordered by symbol.
    """

    balance: Decimal
    total_value: Decimal
    total_gain_loss: Decimal
    current_total: Decimal
    positions: list[PositionItem]


class DiscrepancyItem(BaseModel):
    symbol: str
    kind: str
    stored_quantity: Decimal | None
    derived_quantity: Decimal
    stored_average_price: Decimal | None
    derived_average_price: Decimal


class ReconciliationResponse(BaseModel):
    """Response schema for the ledger audit endpoint."""

    consistent: bool
    stored_cash: Decimal
    derived_cash: Decimal
    cash_difference: Decimal
    transaction_count: int
    discrepancies: list[DiscrepancyItem]


# ------------------------------------------------------------------
# Watchlist
# ------------------------------------------------------------------


class WatchlistAddRequest(BaseModel):
    symbol: str = Field(
        ...,
        min_length=SYMBOL_MIN_LEN,
        max_length=SYMBOL_MAX_LEN,
        pattern=SYMBOL_PATTERN,
        description=SYMBOL_DESCRIPTION,
    )


class WatchlistItem(BaseModel):
    symbol: str
    saved_at: datetime
    name: str | None = None
    price: Decimal | None = None
    change: Decimal | None = None


class WatchlistResponse(BaseModel):
    items: list[WatchlistItem]


class WatchlistChangeResponse(BaseModel):
    """Whether an add/remove changed anything."""

    symbol: str
    changed: bool


# ------------------------------------------------------------------
# Market data
# ------------------------------------------------------------------


class ChartPointItem(BaseModel):
    date: str
    value: Decimal


class NewsItemSchema(BaseModel):
    id: str
    title: str
    summary: str
    date: str
    url: str


class QuoteResponse(BaseModel):
    """Cached market data for one symbol.

    change is the percent move of the previous session.
    """

    symbol: str
    name: str
    price: Decimal
    change: Decimal
    volume: int | None = None
    description: str = ""
    updated_at: datetime | None = None
    chart: list[ChartPointItem] = []
    news: list[NewsItemSchema] = []


class QuoteListResponse(BaseModel):
    quotes: list[QuoteResponse]


class RefreshResponse(BaseModel):
    """Result of an on-demand refresh."""

    status: str
    symbols: list[str] = []
    updated: list[str] = []
    failed: list[str] = []
    seeded: bool = False
    duration_seconds: float = 0.0
    error: str | None = None


# ------------------------------------------------------------------
# Recommendations
# ------------------------------------------------------------------


class RecommendationRequest(BaseModel):
    """Request schema for AI stock recommendations.

    Attributes:
        prompt: Investment idea or market sentiment in free text.
    """

    prompt: str = Field(
        ..., min_length=1, max_length=1000, pattern=r"\S", description="Investment idea"
    )


class RecommendationItem(BaseModel):
    symbol: str
    name: str
    reason: str
    price: Decimal | None = None


class RecommendationListResponse(BaseModel):
    recommendations: list[RecommendationItem]


# ------------------------------------------------------------------
# Health
# ------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
