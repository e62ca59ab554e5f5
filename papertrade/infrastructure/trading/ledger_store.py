"""
Adapter: Ledger storage.

Implements the LedgerStore and LedgerSession ports on SQLAlchemy Core.
Each unit of work is one database transaction; the balance row is locked
with SELECT ... FOR UPDATE on dialects that support it.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import SQLAlchemyError

from papertrade.domain.trading.entities import (
    Balance,
    Position,
    TradeSide,
    Transaction,
    utcnow,
)
from papertrade.domain.trading.errors import PersistenceFailureError
from papertrade.domain.trading.ports import LedgerSession, LedgerStore
from papertrade.infrastructure.trading.tables import balances, positions, transactions

logger = logging.getLogger(__name__)


def _row_to_transaction(row: Row) -> Transaction:
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        symbol=row.symbol,
        transaction_type=TradeSide(row.transaction_type),
        quantity=Decimal(row.quantity),
        price=Decimal(row.price),
        total_amount=Decimal(row.total_amount),
        created_at=row.created_at,
        client_order_id=row.client_order_id,
    )


def _row_to_position(row: Row) -> Position:
    return Position(
        user_id=row.user_id,
        symbol=row.symbol,
        quantity=Decimal(row.quantity),
        average_price=Decimal(row.average_price),
    )


class SqlAlchemyLedgerSession(LedgerSession):
    """LedgerSession bound to one open connection and transaction."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def get_balance(self, user_id: str, for_update: bool = False) -> Optional[Balance]:
        stmt = select(balances.c.user_id, balances.c.balance).where(
            balances.c.user_id == user_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = self._conn.execute(stmt).first()
        if row is None:
            return None
        return Balance(user_id=row.user_id, balance=Decimal(row.balance))

    def create_balance(self, balance: Balance) -> None:
        now = utcnow()
        self._conn.execute(
            insert(balances).values(
                user_id=balance.user_id,
                balance=balance.balance,
                created_at=now,
                updated_at=now,
            )
        )

    def set_balance(self, user_id: str, amount: Decimal) -> None:
        result = self._conn.execute(
            update(balances)
            .where(balances.c.user_id == user_id)
            .values(balance=amount, updated_at=utcnow())
        )
        if result.rowcount != 1:
            raise PersistenceFailureError(f"balance row missing for user {user_id}")

    def get_position(self, user_id: str, symbol: str) -> Optional[Position]:
        row = self._conn.execute(
            select(positions).where(
                positions.c.user_id == user_id, positions.c.symbol == symbol
            )
        ).first()
        return _row_to_position(row) if row is not None else None

    def list_positions(self, user_id: str) -> list[Position]:
        rows = self._conn.execute(
            select(positions)
            .where(positions.c.user_id == user_id)
            .order_by(positions.c.symbol)
        ).all()
        return [_row_to_position(row) for row in rows]

    def save_position(self, position: Position) -> None:
        now = utcnow()
        result = self._conn.execute(
            update(positions)
            .where(
                positions.c.user_id == position.user_id,
                positions.c.symbol == position.symbol,
            )
            .values(
                quantity=position.quantity,
                average_price=position.average_price,
                updated_at=now,
            )
        )
        if result.rowcount == 0:
            self._conn.execute(
                insert(positions).values(
                    user_id=position.user_id,
                    symbol=position.symbol,
                    quantity=position.quantity,
                    average_price=position.average_price,
                    created_at=now,
                    updated_at=now,
                )
            )

    def delete_position(self, user_id: str, symbol: str) -> None:
        self._conn.execute(
            delete(positions).where(
                positions.c.user_id == user_id, positions.c.symbol == symbol
            )
        )

    def append_transaction(self, transaction: Transaction) -> None:
        self._conn.execute(
            insert(transactions).values(
                id=transaction.id,
                user_id=transaction.user_id,
                symbol=transaction.symbol,
                transaction_type=transaction.transaction_type.value,
                quantity=transaction.quantity,
                price=transaction.price,
                total_amount=transaction.total_amount,
                created_at=transaction.created_at,
                client_order_id=transaction.client_order_id,
            )
        )

    def find_transaction(
        self, user_id: str, client_order_id: str
    ) -> Optional[Transaction]:
        row = self._conn.execute(
            select(transactions).where(
                transactions.c.user_id == user_id,
                transactions.c.client_order_id == client_order_id,
            )
        ).first()
        return _row_to_transaction(row) if row is not None else None

    def list_transactions(
        self,
        user_id: str,
        symbol: Optional[str] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> list[Transaction]:
        stmt = select(transactions).where(transactions.c.user_id == user_id)
        if symbol:
            stmt = stmt.where(transactions.c.symbol == symbol)
        if newest_first:
            stmt = stmt.order_by(transactions.c.created_at.desc())
        else:
            stmt = stmt.order_by(transactions.c.created_at.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return [_row_to_transaction(row) for row in self._conn.execute(stmt).all()]


class SqlAlchemyLedgerStore(LedgerStore):
    """Ledger storage on any SQLAlchemy-supported database."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @contextmanager
    def unit_of_work(self) -> Iterator[LedgerSession]:
        """Open one database transaction.

        Commits on normal exit and rolls back on any exception.

        Raises:
            PersistenceFailureError: If the database rejected a statement
                or the commit.
        """
        try:
            with self._engine.begin() as conn:
                yield SqlAlchemyLedgerSession(conn)
        except SQLAlchemyError as exc:
            logger.error("Ledger transaction rolled back: %s", type(exc).__name__)
            raise PersistenceFailureError(type(exc).__name__) from exc
