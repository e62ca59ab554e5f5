"""
Tests for the SQL adapters.

Ledger store, market data cache and watchlist against SQLite in memory.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from papertrade.domain.trading.entities import (
    Balance,
    ChartPoint,
    NewsItem,
    Position,
    Quote,
    TradeSide,
    Transaction,
    WatchlistEntry,
)
from papertrade.domain.trading.errors import PersistenceFailureError
from papertrade.infrastructure.trading.database import create_db_engine
from papertrade.infrastructure.trading.market_data_repository import MarketDataRepositoryAdapter
from papertrade.infrastructure.trading.watchlist_repository import WatchlistRepositoryAdapter

USER = "user-1"


def _txn(symbol: str, minute: int, client_order_id: str | None = None) -> Transaction:
    return Transaction(
        user_id=USER,
        symbol=symbol,
        transaction_type=TradeSide.BUY,
        quantity=Decimal("1"),
        price=Decimal("10"),
        total_amount=Decimal("10"),
        created_at=datetime(2024, 1, 2, 15, minute, tzinfo=timezone.utc),
        client_order_id=client_order_id,
    )


class TestLedgerStore:
    """Tests for SqlAlchemyLedgerStore."""

    def test_unit_of_work_commits(self, ledger_store) -> None:
        with ledger_store.unit_of_work() as session:
            session.create_balance(Balance(USER, Decimal("100")))
        with ledger_store.unit_of_work() as session:
            assert session.get_balance(USER).balance == Decimal("100")

    def test_unit_of_work_rolls_back_on_error(self, ledger_store) -> None:
        with pytest.raises(RuntimeError):
            with ledger_store.unit_of_work() as session:
                session.create_balance(Balance(USER, Decimal("100")))
                raise RuntimeError("abort")
        with ledger_store.unit_of_work() as session:
            assert session.get_balance(USER) is None

    def test_duplicate_balance_becomes_persistence_failure(self, ledger_store) -> None:
        with ledger_store.unit_of_work() as session:
            session.create_balance(Balance(USER, Decimal("100")))
        with pytest.raises(PersistenceFailureError):
            with ledger_store.unit_of_work() as session:
                session.create_balance(Balance(USER, Decimal("200")))

    def test_set_balance_without_row_fails(self, ledger_store) -> None:
        with pytest.raises(PersistenceFailureError):
            with ledger_store.unit_of_work() as session:
                session.set_balance("ghost", Decimal("1"))

    def test_save_position_inserts_then_updates(self, ledger_store) -> None:
        with ledger_store.unit_of_work() as session:
            session.save_position(Position(USER, "AAPL", Decimal("1"), Decimal("10")))
            session.save_position(Position(USER, "AAPL", Decimal("3"), Decimal("12")))
            session.save_position(Position(USER, "MSFT", Decimal("2"), Decimal("300")))
        with ledger_store.unit_of_work() as session:
            positions = session.list_positions(USER)
        assert [p.symbol for p in positions] == ["AAPL", "MSFT"]
        assert positions[0].quantity == Decimal("3")
        assert positions[0].average_price == Decimal("12")

    def test_delete_position(self, ledger_store) -> None:
        with ledger_store.unit_of_work() as session:
            session.save_position(Position(USER, "AAPL", Decimal("1"), Decimal("10")))
            session.delete_position(USER, "AAPL")
            assert session.get_position(USER, "AAPL") is None

    def test_list_transactions_order_filter_and_limit(self, ledger_store) -> None:
        with ledger_store.unit_of_work() as session:
            session.append_transaction(_txn("AAPL", 1))
            session.append_transaction(_txn("MSFT", 2))
            session.append_transaction(_txn("AAPL", 3))
        with ledger_store.unit_of_work() as session:
            newest = session.list_transactions(USER)
            oldest = session.list_transactions(USER, newest_first=False)
            only_aapl = session.list_transactions(USER, symbol="AAPL")
            limited = session.list_transactions(USER, limit=1)

        assert [t.created_at.minute for t in newest] == [3, 2, 1]
        assert [t.created_at.minute for t in oldest] == [1, 2, 3]
        assert {t.symbol for t in only_aapl} == {"AAPL"}
        assert len(limited) == 1

    def test_find_transaction_by_client_order_id(self, ledger_store) -> None:
        txn = _txn("AAPL", 1, client_order_id="abc")
        with ledger_store.unit_of_work() as session:
            session.append_transaction(txn)
        with ledger_store.unit_of_work() as session:
            found = session.find_transaction(USER, "abc")
            assert session.find_transaction(USER, "other") is None
        assert found.id == txn.id
        assert found.transaction_type is TradeSide.BUY


class TestMarketDataRepository:
    """Tests for MarketDataRepositoryAdapter."""

    def test_round_trips_chart_and_news(self, market_data) -> None:
        market_data.upsert_quote(
            Quote(
                symbol="AAPL",
                name="Apple Inc.",
                price=Decimal("190.5"),
                change=Decimal("1.25"),
                volume=1000,
                description="Phones",
                chart=[ChartPoint("2024-01-02", Decimal("185"))],
                news=[NewsItem("n1", "Title", "Summary", "2024-01-02", "https://example.com")],
            )
        )
        quote = market_data.get_quote("aapl")
        assert quote.price == Decimal("190.5")
        assert quote.chart[0].value == Decimal("185")
        assert quote.news[0].title == "Title"
        assert quote.updated_at is not None

    def test_upsert_replaces_snapshot(self, seed_quote, market_data) -> None:
        seed_quote("AAPL", "100")
        seed_quote("AAPL", "101")
        assert market_data.get_quote("AAPL").price == Decimal("101")
        assert len(market_data.list_quotes()) == 1

    def test_get_quotes_omits_unknown(self, seed_quote, market_data) -> None:
        seed_quote("AAPL", "100")
        assert set(market_data.get_quotes(["AAPL", "NOPE"])) == {"AAPL"}
        assert market_data.get_quotes([]) == {}

    def test_search_prefers_symbol_prefix(self, seed_quote, market_data) -> None:
        seed_quote("AAPL", "100", name="Apple Inc.")
        seed_quote("MSFT", "300", name="Microsoft Corporation")
        seed_quote("MA", "400", name="Mastercard Incorporated")

        symbols = [q.symbol for q in market_data.search("ma")]
        assert symbols[0] == "MA"
        assert "AAPL" not in symbols

    def test_search_matches_company_name(self, seed_quote, market_data) -> None:
        seed_quote("MSFT", "300", name="Microsoft Corporation")
        assert [q.symbol for q in market_data.search("micro")] == ["MSFT"]

    def test_search_treats_wildcards_literally(self, seed_quote, market_data) -> None:
        seed_quote("AXC", "10", name="Axc Holdings")
        seed_quote("BRK_B", "400", name="Berkshire Hathaway")

        assert market_data.search("A%C") == []
        assert market_data.search("A_C") == []
        assert market_data.search("%") == []
        assert [q.symbol for q in market_data.search("K_B")] == ["BRK_B"]

    def test_upsert_failure_becomes_persistence_failure(self) -> None:
        bare = create_db_engine("sqlite://")
        try:
            with pytest.raises(PersistenceFailureError):
                MarketDataRepositoryAdapter(bare).upsert_quote(
                    Quote(symbol="AAPL", name="Apple", price=Decimal("1"), change=Decimal("0"))
                )
        finally:
            bare.dispose()

    def test_tracked_symbols(self, market_data) -> None:
        assert market_data.list_active_symbols() == []
        market_data.add_symbols(["msft", "AAPL"])
        market_data.add_symbols(["AAPL"])
        assert market_data.list_active_symbols() == ["AAPL", "MSFT"]


class TestWatchlistRepository:
    """Tests for WatchlistRepositoryAdapter."""

    def test_add_is_idempotent(self, engine) -> None:
        repo = WatchlistRepositoryAdapter(engine)
        assert repo.add(WatchlistEntry(USER, "AAPL")) is True
        assert repo.add(WatchlistEntry(USER, "AAPL")) is False
        assert [e.symbol for e in repo.list_for_user(USER)] == ["AAPL"]

    def test_list_newest_first(self, engine) -> None:
        repo = WatchlistRepositoryAdapter(engine)
        now = datetime.now(timezone.utc)
        repo.add(WatchlistEntry(USER, "AAPL", created_at=now - timedelta(days=1)))
        repo.add(WatchlistEntry(USER, "MSFT", created_at=now))
        assert [e.symbol for e in repo.list_for_user(USER)] == ["MSFT", "AAPL"]

    def test_remove(self, engine) -> None:
        repo = WatchlistRepositoryAdapter(engine)
        repo.add(WatchlistEntry(USER, "AAPL"))
        assert repo.remove(USER, "AAPL") is True
        assert repo.remove(USER, "AAPL") is False
        assert repo.list_for_user("someone-else") == []
