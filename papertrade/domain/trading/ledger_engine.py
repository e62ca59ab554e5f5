"""
Paper trading ledger engine.

Executes one trade against one user's ledger: validates the order against
cash or holdings, appends the transaction, updates the position and adjusts
the balance. Every call site (swipe-to-buy, trade form, position row) goes
through LedgerEngine.execute_trade so there is exactly one set of rules.

Atomicity:
    All reads and writes of a trade run inside a single LedgerStore unit of
    work. Any failure rolls the whole trade back.

Concurrency:
    At most one trade per user is in flight inside this process (per-user
    lock). The store additionally locks the balance row so that separate
    processes serialize on the database.
"""

import logging
import threading
from contextlib import contextmanager
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Callable, Iterator, Optional

from papertrade.domain.trading.entities import (
    Balance,
    LedgerChange,
    Position,
    TradeResult,
    TradeSide,
    Transaction,
    utcnow,
)
from papertrade.domain.trading.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InsufficientHoldingsError,
    InvalidPriceError,
    InvalidQuantityError,
    UnauthenticatedError,
)
from papertrade.domain.trading.ports import (
    LedgerEventPublisher,
    LedgerSession,
    LedgerStore,
)

logger = logging.getLogger(__name__)

# Scale and magnitude of every stored quantity and amount (NUMERIC(24, 8)).
LEDGER_QUANTUM = Decimal("0.00000001")
LEDGER_MAX = Decimal("1E16")
_LEDGER_CONTEXT = Context(prec=60)

REJECTED_ORDER_ERRORS = (
    InvalidQuantityError,
    UnauthenticatedError,
    AccountNotFoundError,
    InvalidPriceError,
    InsufficientFundsError,
    InsufficientHoldingsError,
)


def to_ledger_scale(value: Decimal) -> Decimal:
    """Round an amount to the scale the ledger stores."""
    return value.quantize(LEDGER_QUANTUM, rounding=ROUND_HALF_UP, context=_LEDGER_CONTEXT)


def parse_quantity(value: object) -> Decimal:
    """Parse a share quantity into a positive finite Decimal.

    Quantities finer than LEDGER_QUANTUM are rejected rather than rounded.

    Raises:
        InvalidQuantityError: If the value is not a positive number.
    """
    parsed = _to_decimal(value)
    if parsed is None or parsed <= 0 or to_ledger_scale(parsed) != parsed:
        raise InvalidQuantityError(value)
    return to_ledger_scale(parsed)


def parse_price(symbol: str, value: object) -> Decimal:
    """Parse a reference price into a positive Decimal at ledger scale.

    Raises:
        InvalidPriceError: If the value is not a positive number.
    """
    parsed = _to_decimal(value)
    if parsed is None:
        raise InvalidPriceError(symbol, value)
    parsed = to_ledger_scale(parsed)
    if parsed <= 0:
        raise InvalidPriceError(symbol, value)
    return parsed


def _to_decimal(value: object) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = repr(value)
    if isinstance(value, str):
        value = value.strip()
    try:
        parsed = Decimal(value)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not parsed.is_finite() or abs(parsed) >= LEDGER_MAX:
        return None
    return parsed


def next_position(
    current: Optional[Position],
    user_id: str,
    symbol: str,
    side: TradeSide,
    quantity: Decimal,
    price: Decimal,
) -> Optional[Position]:
    """Return the position after applying a validated trade.

    Buys re-weight the average price. Sells keep it unchanged. A sell that
    empties the position returns None.
    """
    if side is TradeSide.BUY:
        if current is None:
            return Position(
                user_id=user_id,
                symbol=symbol,
                quantity=quantity,
                average_price=price,
            )
        new_quantity = current.quantity + quantity
        new_average = to_ledger_scale(
            (current.quantity * current.average_price + quantity * price) / new_quantity
        )
        return Position(
            user_id=user_id,
            symbol=symbol,
            quantity=new_quantity,
            average_price=new_average,
        )

    if current is None:
        # Callers validate holdings first.
        raise InsufficientHoldingsError(symbol, str(quantity), "0")
    new_quantity = current.quantity - quantity
    if new_quantity == 0:
        return None
    return Position(
        user_id=user_id,
        symbol=symbol,
        quantity=new_quantity,
        average_price=current.average_price,
    )


class UserLockRegistry:
    """Hands out one mutex per user id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(user_id, threading.Lock())
        with lock:
            yield


class LedgerEngine:
    """Single code path for every mutation of balances and positions."""

    def __init__(
        self,
        store: LedgerStore,
        publisher: Optional[LedgerEventPublisher] = None,
        locks: Optional[UserLockRegistry] = None,
        clock: Callable = utcnow,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._locks = locks or UserLockRegistry()
        self._clock = clock

    def open_account(self, user_id: Optional[str], starting_balance: Decimal) -> Balance:
        """Create the user's balance if it does not exist yet.

        Returns:
            The existing or newly created balance.

        Raises:
            UnauthenticatedError: If no user id was given.
        """
        if not user_id:
            raise UnauthenticatedError()

        with self._locks.hold(user_id):
            with self._store.unit_of_work() as session:
                existing = session.get_balance(user_id, for_update=True)
                if existing is not None:
                    return existing
                balance = Balance(user_id=user_id, balance=to_ledger_scale(starting_balance))
                session.create_balance(balance)

        logger.info("Opened trading account for user=%s", user_id)
        return balance

    def execute_trade(
        self,
        user_id: Optional[str],
        symbol: str,
        side: TradeSide,
        quantity: object,
        reference_price: object,
        client_order_id: Optional[str] = None,
    ) -> TradeResult:
        """Execute one paper trade atomically.

        Args:
            user_id: The acting user, or None when unauthenticated.
            symbol: Stock ticker.
            side: Buy or sell.
            quantity: Number of shares; any positive number or numeric string.
            reference_price: Market price at trade time.
            client_order_id: Optional idempotency key. A repeated key returns
                the current state without writing anything.

        Returns:
            The transaction and the resulting balance and position.

        Raises:
            InvalidQuantityError: Quantity is not a positive number.
            UnauthenticatedError: No user.
            AccountNotFoundError: The user has no balance.
            InvalidPriceError: The reference price is not positive.
            InsufficientFundsError: A buy costs more than the balance.
            InsufficientHoldingsError: A sell exceeds the shares held.
            PersistenceFailureError: The store rejected a write.
        """
        symbol = symbol.strip().upper()
        try:
            return self._execute(
                user_id, symbol, side, quantity, reference_price, client_order_id
            )
        except REJECTED_ORDER_ERRORS as exc:
            logger.warning(
                "Rejected order: user=%s side=%s symbol=%s code=%s",
                user_id,
                side.value,
                symbol,
                exc.code,
            )
            raise

    def _execute(
        self,
        user_id: Optional[str],
        symbol: str,
        side: TradeSide,
        quantity: object,
        reference_price: object,
        client_order_id: Optional[str],
    ) -> TradeResult:
        shares = parse_quantity(quantity)
        if not user_id:
            raise UnauthenticatedError()

        with self._locks.hold(user_id):
            with self._store.unit_of_work() as session:
                balance = session.get_balance(user_id, for_update=True)
                if balance is None:
                    raise AccountNotFoundError(user_id)

                if client_order_id:
                    previous = session.find_transaction(user_id, client_order_id)
                    if previous is not None:
                        logger.info(
                            "Replayed trade user=%s client_order_id=%s",
                            user_id,
                            client_order_id,
                        )
                        return TradeResult(
                            transaction=previous,
                            balance=balance,
                            position=session.get_position(user_id, previous.symbol),
                            replayed=True,
                        )

                result = self._apply(
                    session, balance, symbol, side, shares, reference_price, client_order_id
                )

        logger.info(
            "Trade executed: user=%s side=%s symbol=%s quantity=%s price=%s",
            user_id,
            side.value,
            symbol,
            shares,
            result.transaction.price,
        )
        self._announce(result.transaction)
        return result

    def _apply(
        self,
        session: LedgerSession,
        balance: Balance,
        symbol: str,
        side: TradeSide,
        shares: Decimal,
        reference_price: object,
        client_order_id: Optional[str],
    ) -> TradeResult:
        user_id = balance.user_id
        price = parse_price(symbol, reference_price)
        total_amount = to_ledger_scale(shares * price)

        if side is TradeSide.BUY and total_amount > balance.balance:
            raise InsufficientFundsError(str(total_amount), str(balance.balance))

        position = session.get_position(user_id, symbol)
        if side is TradeSide.SELL and (position is None or shares > position.quantity):
            held = position.quantity if position is not None else Decimal("0")
            raise InsufficientHoldingsError(symbol, str(shares), str(held))

        transaction = Transaction(
            user_id=user_id,
            symbol=symbol,
            transaction_type=side,
            quantity=shares,
            price=price,
            total_amount=total_amount,
            created_at=self._clock(),
            client_order_id=client_order_id,
        )
        session.append_transaction(transaction)

        updated = next_position(position, user_id, symbol, side, shares, price)
        if updated is None:
            session.delete_position(user_id, symbol)
        else:
            session.save_position(updated)

        if side is TradeSide.BUY:
            new_amount = balance.balance - total_amount
        else:
            new_amount = balance.balance + total_amount
        session.set_balance(user_id, new_amount)

        return TradeResult(
            transaction=transaction,
            balance=Balance(user_id=user_id, balance=new_amount),
            position=updated,
        )

    def _announce(self, transaction: Transaction) -> None:
        if self._publisher is None:
            return
        change = LedgerChange(
            user_id=transaction.user_id,
            symbol=transaction.symbol,
            transaction_id=transaction.id,
        )
        try:
            self._publisher.publish(change)
        except Exception:
            # The trade is committed; a failed notification only delays cache refresh.
            logger.exception("Failed to publish ledger change for user=%s", change.user_id)
