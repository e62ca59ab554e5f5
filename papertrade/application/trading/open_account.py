"""
Use case: Open a paper trading account.

Input: OpenAccountCommand (user_id)
Output: BalanceResult
Side effects: Creates the balance row with the starting cash on first call.
Failure cases: UnauthenticatedError, PersistenceFailureError.
"""

import logging
from decimal import Decimal

from papertrade.application.trading.dtos import BalanceResult, OpenAccountCommand
from papertrade.domain.trading.ledger_engine import LedgerEngine

logger = logging.getLogger(__name__)


class OpenAccountUseCase:
    """Gives a user their starting cash. Calling it again changes nothing."""

    def __init__(self, engine: LedgerEngine, starting_balance: Decimal) -> None:
        self._engine = engine
        self._starting_balance = starting_balance

    def execute(self, command: OpenAccountCommand) -> BalanceResult:
        balance = self._engine.open_account(command.user_id, self._starting_balance)
        return BalanceResult(user_id=balance.user_id, balance=balance.balance)
