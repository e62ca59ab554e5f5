"""
Use case: Execute a paper trade.

Input: ExecuteTradeCommand (user_id, symbol, side, quantity, client_order_id)
Output: TradeExecutionResult
Side effects: Appends a transaction, updates the position and the balance,
    then publishes a LedgerChange.
Failure cases: InvalidQuantityError, UnauthenticatedError, SymbolNotFoundError,
    AccountNotFoundError, InvalidPriceError, InsufficientFundsError,
    InsufficientHoldingsError, PersistenceFailureError.
"""

import logging
from decimal import Decimal

from papertrade.application.trading.dtos import ExecuteTradeCommand, TradeExecutionResult
from papertrade.domain.trading.entities import TradeResult, TradeSide
from papertrade.domain.trading.errors import (
    InvalidQuantityError,
    SymbolNotFoundError,
    UnauthenticatedError,
)
from papertrade.domain.trading.ledger_engine import LedgerEngine, parse_quantity
from papertrade.domain.trading.ports import MarketDataRepository

logger = logging.getLogger(__name__)


class ExecuteTradeUseCase:
    """Prices an order from the market data cache and hands it to the engine.

    The client never supplies the execution price. The reference price is the
    latest cached quote for the symbol, so a stale screen cannot trade at a
    price of its own choosing.
    """

    def __init__(self, engine: LedgerEngine, market_data: MarketDataRepository) -> None:
        self._engine = engine
        self._market_data = market_data

    def execute(self, command: ExecuteTradeCommand) -> TradeExecutionResult:
        """Run the trade.

        Args:
            command: The order as received from any trading screen.

        Returns:
            The recorded transaction with the resulting balance and position.
        """
        side = TradeSide(command.side.lower())
        symbol = command.symbol.strip().upper()

        # Same order of checks as the engine, before touching market data.
        try:
            parse_quantity(command.quantity)
            if not command.user_id:
                raise UnauthenticatedError()
            quote = self._market_data.get_quote(symbol)
            if quote is None:
                raise SymbolNotFoundError(symbol)
        except (InvalidQuantityError, UnauthenticatedError, SymbolNotFoundError) as exc:
            logger.warning(
                "Rejected order: user=%s side=%s symbol=%s code=%s",
                command.user_id,
                side.value,
                symbol,
                exc.code,
            )
            raise

        logger.info(
            "Trade requested: user=%s side=%s symbol=%s source=%s",
            command.user_id,
            side.value,
            symbol,
            command.source,
        )
        result = self._engine.execute_trade(
            user_id=command.user_id,
            symbol=symbol,
            side=side,
            quantity=command.quantity,
            reference_price=quote.price,
            client_order_id=command.client_order_id,
        )
        return to_execution_result(result)


def to_execution_result(result: TradeResult) -> TradeExecutionResult:
    transaction = result.transaction
    position = result.position
    return TradeExecutionResult(
        transaction_id=transaction.id,
        symbol=transaction.symbol,
        side=transaction.transaction_type.value,
        quantity=transaction.quantity,
        price=transaction.price,
        total_amount=transaction.total_amount,
        executed_at=transaction.created_at,
        balance=result.balance.balance,
        position_quantity=position.quantity if position is not None else Decimal("0"),
        position_average_price=position.average_price if position is not None else None,
        replayed=result.replayed,
    )
