"""
Shared pytest fixtures.

The application settings are read at import time, so the test
environment is pinned here before any papertrade module is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_DEFAULT"] = "10000/minute"
os.environ["MARKET_REFRESH_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from decimal import Decimal

import pytest

from papertrade.domain.trading.entities import Quote
from papertrade.infrastructure.trading.database import create_db_engine, init_schema
from papertrade.infrastructure.trading.ledger_store import SqlAlchemyLedgerStore
from papertrade.infrastructure.trading.market_data_repository import (
    MarketDataRepositoryAdapter,
)


@pytest.fixture
def engine():
    """Fresh in-memory database with the full schema."""
    engine = create_db_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def ledger_store(engine) -> SqlAlchemyLedgerStore:
    return SqlAlchemyLedgerStore(engine)


@pytest.fixture
def market_data(engine) -> MarketDataRepositoryAdapter:
    return MarketDataRepositoryAdapter(engine)


@pytest.fixture
def seed_quote(market_data):
    """Store a quote in the market data cache and return it."""

    def _seed(symbol: str, price: str, name: str | None = None, change: str = "0") -> Quote:
        quote = Quote(
            symbol=symbol,
            name=name or f"{symbol} Inc.",
            price=Decimal(price),
            change=Decimal(change),
        )
        market_data.upsert_quote(quote)
        return quote

    return _seed
