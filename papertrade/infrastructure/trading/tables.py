"""
SQLAlchemy table definitions for ledger and market data storage.

Table layout:
    paper_trading_balances      one row per user
    paper_trading_positions     one row per (user, symbol), deleted at zero
    paper_trading_transactions  append-only trade log
    stocks                      symbols kept fresh by the refresh job
    stock_data_cache            latest quote snapshot per symbol
    watchlist                   symbols saved by a user
"""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
    Uuid,
    func,
)

# Naming convention for constraints (helps with migrations)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

MONEY = Numeric(24, 8, asdecimal=True)

balances = Table(
    "paper_trading_balances",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("balance", MONEY, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

positions = Table(
    "paper_trading_positions",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("symbol", String(16), primary_key=True),
    Column("quantity", MONEY, nullable=False),
    Column("average_price", MONEY, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("quantity > 0", name="positive_quantity"),
)

transactions = Table(
    "paper_trading_transactions",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("user_id", String(64), nullable=False),
    Column("symbol", String(16), nullable=False),
    Column("transaction_type", String(4), nullable=False),
    Column("quantity", MONEY, nullable=False),
    Column("price", MONEY, nullable=False),
    Column("total_amount", MONEY, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("client_order_id", String(64), nullable=True),
    CheckConstraint("transaction_type IN ('buy', 'sell')", name="transaction_type"),
    UniqueConstraint("user_id", "client_order_id", name="uq_transactions_client_order"),
    Index("idx_transactions_user_created", "user_id", "created_at"),
)

stocks = Table(
    "stocks",
    metadata,
    Column("symbol", String(16), primary_key=True),
    Column("status", String(16), nullable=False, server_default="active"),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

stock_data_cache = Table(
    "stock_data_cache",
    metadata,
    Column("symbol", String(16), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("data", JSON, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

watchlist = Table(
    "watchlist",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("symbol", String(16), primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)
