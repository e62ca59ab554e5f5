"""
Use case: List a user's transaction history.

Input: ListTransactionsQuery (user_id, symbol, limit)
Output: list[TransactionResult], newest first
Side effects: None.
Failure cases: UnauthenticatedError.
"""

from papertrade.application.trading.dtos import ListTransactionsQuery, TransactionResult
from papertrade.domain.trading.errors import UnauthenticatedError
from papertrade.domain.trading.ports import LedgerStore


class ListTransactionsUseCase:
    """Reads the immutable transaction log."""

    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    def execute(self, query: ListTransactionsQuery) -> list[TransactionResult]:
        if not query.user_id:
            raise UnauthenticatedError()
        symbol = query.symbol.strip().upper() if query.symbol else None

        with self._store.unit_of_work() as session:
            transactions = session.list_transactions(
                query.user_id, symbol=symbol, limit=query.limit
            )

        return [
            TransactionResult(
                id=t.id,
                symbol=t.symbol,
                transaction_type=t.transaction_type.value,
                quantity=t.quantity,
                price=t.price,
                total_amount=t.total_amount,
                created_at=t.created_at,
            )
            for t in transactions
        ]
