"""
Domain entities for the trading bounded context.

Entities represent core business objects with identity and lifecycle.
They contain no framework imports and no IO operations.
All money and share amounts are Decimal.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class TradeSide(Enum):
    """Direction of a paper trade."""

    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class Balance:
    """Virtual cash held by one user."""

    user_id: str
    balance: Decimal


@dataclass(frozen=True)
class Position:
    """Aggregate holding of one symbol by one user.

    ``average_price`` is the volume-weighted entry cost of the shares
    currently held. A position with zero quantity does not exist.
    """

    user_id: str
    symbol: str
    quantity: Decimal
    average_price: Decimal

    @property
    def cost_basis(self) -> Decimal:
        return self.quantity * self.average_price


@dataclass(frozen=True)
class Transaction:
    """One executed paper trade. Immutable once written."""

    user_id: str
    symbol: str
    transaction_type: TradeSide
    quantity: Decimal
    price: Decimal
    total_amount: Decimal
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)
    client_order_id: Optional[str] = None


@dataclass(frozen=True)
class TradeResult:
    """Ledger state after a trade.

    ``position`` is None when the trade closed the position.
    ``replayed`` is True when the request matched an earlier
    ``client_order_id`` and nothing new was written.
    """

    transaction: Transaction
    balance: Balance
    position: Optional[Position]
    replayed: bool = False


@dataclass(frozen=True)
class LedgerChange:
    """Notification that a user's ledger was mutated."""

    user_id: str
    symbol: str
    transaction_id: UUID
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ValuedPosition:
    """A position priced at the current market quote."""

    position: Position
    current_price: Decimal

    @property
    def market_value(self) -> Decimal:
        return self.position.quantity * self.current_price

    @property
    def gain_loss(self) -> Decimal:
        return self.market_value - self.position.cost_basis

    @property
    def gain_loss_percent(self) -> Decimal:
        cost_basis = self.position.cost_basis
        if cost_basis == 0:
            return Decimal("0")
        return self.gain_loss / cost_basis * 100


@dataclass(frozen=True)
class PortfolioTotals:
    """Aggregate valuation of a user's portfolio."""

    total_value: Decimal
    total_gain_loss: Decimal
    current_total: Decimal


@dataclass(frozen=True)
class ChartPoint:
    """A single daily close in a quote's chart series."""

    date: str
    value: Decimal


@dataclass(frozen=True)
class NewsItem:
    """A news headline attached to a quote."""

    id: str
    title: str
    summary: str
    date: str
    url: str


@dataclass(frozen=True)
class Quote:
    """Cached market data for one symbol."""

    symbol: str
    name: str
    price: Decimal
    change: Decimal = Decimal("0")
    volume: Optional[int] = None
    description: str = ""
    chart: list[ChartPoint] = field(default_factory=list)
    news: list[NewsItem] = field(default_factory=list)
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class QuoteChange:
    """A price update for one symbol, pushed to realtime subscribers."""

    symbol: str
    price: Decimal
    change: Decimal
    previous_price: Optional[Decimal] = None
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class StockRecommendation:
    """A stock suggested by the recommendation service."""

    symbol: str
    name: str
    reason: str


@dataclass(frozen=True)
class WatchlistEntry:
    """A symbol a user saved for later."""

    user_id: str
    symbol: str
    created_at: datetime = field(default_factory=utcnow)
