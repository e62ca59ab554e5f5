"""
Use case: Read a user's cash balance.

Input: user_id
Output: BalanceResult
Side effects: None.
Failure cases: UnauthenticatedError, AccountNotFoundError.
"""

from typing import Optional

from papertrade.application.trading.dtos import BalanceResult
from papertrade.domain.trading.errors import AccountNotFoundError, UnauthenticatedError
from papertrade.domain.trading.ports import LedgerStore


class GetBalanceUseCase:
    """Reads the balance row for the acting user."""

    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    def execute(self, user_id: Optional[str]) -> BalanceResult:
        if not user_id:
            raise UnauthenticatedError()
        with self._store.unit_of_work() as session:
            balance = session.get_balance(user_id)
        if balance is None:
            raise AccountNotFoundError(user_id)
        return BalanceResult(user_id=balance.user_id, balance=balance.balance)
