"""
Ledger reconciliation.

Replays a user's transaction log and compares the result with the stored
balance and positions. Money is conserved when

    balance == starting_balance + sum(sell totals) - sum(buy totals)

and every stored position matches the quantity and cost basis derived from
the log. Sells reduce the derived cost basis proportionally, so the derived
average price of the remaining shares is unchanged by a sell.

Read only. Discrepancies are reported, never repaired.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from papertrade.domain.trading.entities import Position, TradeSide, Transaction

QUANTITY_TOLERANCE = Decimal("0.0001")
PRICE_TOLERANCE = Decimal("0.01")
CASH_TOLERANCE = Decimal("0.01")


class DiscrepancyKind(Enum):
    """Why a symbol failed reconciliation."""

    MISMATCH = "mismatch"
    ORPHANED_TRANSACTIONS = "orphaned_transactions"
    UNTRACKED_POSITION = "untracked_position"


@dataclass
class DerivedPosition:
    """Running holding rebuilt from transactions."""

    quantity: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    transaction_count: int = 0

    @property
    def average_price(self) -> Decimal:
        if self.quantity <= 0:
            return Decimal("0")
        return self.total_cost / self.quantity

    def apply(self, transaction: Transaction) -> None:
        previous_quantity = self.quantity
        if transaction.transaction_type is TradeSide.BUY:
            self.quantity += transaction.quantity
            self.total_cost += transaction.total_amount
        else:
            self.quantity -= transaction.quantity
            if previous_quantity > 0:
                cost_per_share = self.total_cost / previous_quantity
                self.total_cost -= transaction.quantity * cost_per_share
        self.transaction_count += 1


@dataclass(frozen=True)
class PositionDiscrepancy:
    """A symbol whose stored position disagrees with the log."""

    symbol: str
    kind: DiscrepancyKind
    stored_quantity: Optional[Decimal]
    derived_quantity: Decimal
    stored_average_price: Optional[Decimal]
    derived_average_price: Decimal


@dataclass(frozen=True)
class ReconciliationReport:
    """Outcome of comparing stored ledger state with the transaction log."""

    user_id: str
    stored_cash: Decimal
    derived_cash: Decimal
    transaction_count: int
    discrepancies: list[PositionDiscrepancy] = field(default_factory=list)

    @property
    def cash_difference(self) -> Decimal:
        return self.stored_cash - self.derived_cash

    @property
    def is_consistent(self) -> bool:
        return abs(self.cash_difference) <= CASH_TOLERANCE and not self.discrepancies


def replay_transactions(transactions: list[Transaction]) -> dict[str, DerivedPosition]:
    """Rebuild per-symbol holdings from a log ordered by created_at."""
    derived: dict[str, DerivedPosition] = {}
    for transaction in sorted(transactions, key=lambda t: t.created_at):
        derived.setdefault(transaction.symbol, DerivedPosition()).apply(transaction)
    return derived


def derive_cash(starting_balance: Decimal, transactions: list[Transaction]) -> Decimal:
    """Return the cash implied by the log."""
    cash = starting_balance
    for transaction in transactions:
        if transaction.transaction_type is TradeSide.BUY:
            cash -= transaction.total_amount
        else:
            cash += transaction.total_amount
    return cash


def reconcile(
    user_id: str,
    starting_balance: Decimal,
    stored_cash: Decimal,
    positions: list[Position],
    transactions: list[Transaction],
) -> ReconciliationReport:
    """Compare stored balance and positions against the transaction log."""
    derived = replay_transactions(transactions)
    stored = {position.symbol: position for position in positions}
    discrepancies: list[PositionDiscrepancy] = []

    for symbol in sorted(stored):
        position = stored[symbol]
        rebuilt = derived.get(symbol)
        if rebuilt is None:
            discrepancies.append(
                PositionDiscrepancy(
                    symbol=symbol,
                    kind=DiscrepancyKind.UNTRACKED_POSITION,
                    stored_quantity=position.quantity,
                    derived_quantity=Decimal("0"),
                    stored_average_price=position.average_price,
                    derived_average_price=Decimal("0"),
                )
            )
            continue

        quantity_diff = abs(position.quantity - rebuilt.quantity)
        price_diff = abs(position.average_price - rebuilt.average_price)
        if quantity_diff > QUANTITY_TOLERANCE or price_diff > PRICE_TOLERANCE:
            discrepancies.append(
                PositionDiscrepancy(
                    symbol=symbol,
                    kind=DiscrepancyKind.MISMATCH,
                    stored_quantity=position.quantity,
                    derived_quantity=rebuilt.quantity,
                    stored_average_price=position.average_price,
                    derived_average_price=rebuilt.average_price,
                )
            )

    for symbol in sorted(set(derived) - set(stored)):
        rebuilt = derived[symbol]
        if abs(rebuilt.quantity) > QUANTITY_TOLERANCE:
            discrepancies.append(
                PositionDiscrepancy(
                    symbol=symbol,
                    kind=DiscrepancyKind.ORPHANED_TRANSACTIONS,
                    stored_quantity=None,
                    derived_quantity=rebuilt.quantity,
                    stored_average_price=None,
                    derived_average_price=rebuilt.average_price,
                )
            )

    return ReconciliationReport(
        user_id=user_id,
        stored_cash=stored_cash,
        derived_cash=derive_cash(starting_balance, transactions),
        transaction_count=len(transactions),
        discrepancies=discrepancies,
    )
