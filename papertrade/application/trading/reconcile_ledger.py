"""
Use case: Audit a user's ledger.

Input: user_id
Output: ReconciliationResult
Side effects: None. Discrepancies are reported, never repaired.
Failure cases: UnauthenticatedError, AccountNotFoundError.
"""

import logging
from decimal import Decimal
from typing import Optional

from papertrade.application.trading.dtos import DiscrepancyResult, ReconciliationResult
from papertrade.domain.trading.errors import AccountNotFoundError, UnauthenticatedError
from papertrade.domain.trading.ports import LedgerStore
from papertrade.domain.trading.reconciliation import reconcile

logger = logging.getLogger(__name__)


class ReconcileLedgerUseCase:
    """Replays the transaction log and compares it with stored state."""

    def __init__(self, store: LedgerStore, starting_balance: Decimal) -> None:
        self._store = store
        self._starting_balance = starting_balance

    def execute(self, user_id: Optional[str]) -> ReconciliationResult:
        if not user_id:
            raise UnauthenticatedError()

        with self._store.unit_of_work() as session:
            balance = session.get_balance(user_id)
            if balance is None:
                raise AccountNotFoundError(user_id)
            positions = session.list_positions(user_id)
            transactions = session.list_transactions(user_id, newest_first=False)

        report = reconcile(
            user_id=user_id,
            starting_balance=self._starting_balance,
            stored_cash=balance.balance,
            positions=positions,
            transactions=transactions,
        )
        if not report.is_consistent:
            logger.warning(
                "Ledger discrepancy for user=%s: cash_diff=%s symbols=%s",
                user_id,
                report.cash_difference,
                [d.symbol for d in report.discrepancies],
            )

        return ReconciliationResult(
            user_id=user_id,
            consistent=report.is_consistent,
            stored_cash=report.stored_cash,
            derived_cash=report.derived_cash,
            cash_difference=report.cash_difference,
            transaction_count=report.transaction_count,
            discrepancies=[
                DiscrepancyResult(
                    symbol=d.symbol,
                    kind=d.kind.value,
                    stored_quantity=d.stored_quantity,
                    derived_quantity=d.derived_quantity,
                    stored_average_price=d.stored_average_price,
                    derived_average_price=d.derived_average_price,
                )
                for d in report.discrepancies
            ],
        )
