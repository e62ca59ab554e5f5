"""
Tests for the trading application layer (use cases).

Ledger and market data use real SQL adapters on SQLite in memory;
upstream services are replaced with mocks of their ports.
"""

import logging
from datetime import date
from decimal import Decimal
from unittest.mock import Mock

import httpx
import pytest

from papertrade.application.trading.dtos import (
    ExecuteTradeCommand,
    GetRecommendationsQuery,
    ListTransactionsQuery,
    OpenAccountCommand,
    SearchStocksQuery,
    WatchlistCommand,
)
from papertrade.application.trading.execute_trade import ExecuteTradeUseCase
from papertrade.application.trading.get_balance import GetBalanceUseCase
from papertrade.application.trading.get_portfolio import GetPortfolioUseCase
from papertrade.application.trading.get_quote import GetQuoteUseCase, ListQuotesUseCase
from papertrade.application.trading.get_recommendations import GetRecommendationsUseCase
from papertrade.application.trading.list_transactions import ListTransactionsUseCase
from papertrade.application.trading.open_account import OpenAccountUseCase
from papertrade.application.trading.portfolio_cache import PortfolioViewCache
from papertrade.application.trading.reconcile_ledger import ReconcileLedgerUseCase
from papertrade.application.trading.refresh_market_data import (
    DEFAULT_SYMBOLS,
    RefreshMarketDataUseCase,
)
from papertrade.application.trading.search_stocks import SearchStocksUseCase
from papertrade.application.trading.watchlist import (
    AddToWatchlistUseCase,
    ListWatchlistUseCase,
    RemoveFromWatchlistUseCase,
)
from papertrade.domain.trading.entities import (
    Position,
    Quote,
    QuoteChange,
    StockRecommendation,
    TradeSide,
)
from papertrade.domain.trading.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidQuantityError,
    PersistenceFailureError,
    SymbolNotFoundError,
    UnauthenticatedError,
    UpstreamUnavailableError,
)
from papertrade.domain.trading.ledger_engine import LedgerEngine
from papertrade.domain.trading.ports import (
    MarketDataProviderPort,
    QuoteChangePublisher,
    RecommendationPort,
)
from papertrade.infrastructure.trading.event_bus import InProcessEventBus
from papertrade.infrastructure.trading.market_data_repository import MarketDataRepositoryAdapter
from papertrade.infrastructure.trading.polygon_adapter import PolygonMarketDataAdapter
from papertrade.infrastructure.trading.watchlist_repository import WatchlistRepositoryAdapter

USER = "user-1"
START = Decimal("100000")


@pytest.fixture
def ledger_bus() -> InProcessEventBus:
    return InProcessEventBus(name="ledger")


@pytest.fixture
def ledger(ledger_store, ledger_bus) -> LedgerEngine:
    engine = LedgerEngine(store=ledger_store, publisher=ledger_bus)
    engine.open_account(USER, START)
    return engine


def _buy(ledger, market_data, symbol: str, quantity: str, **kwargs):
    return ExecuteTradeUseCase(ledger, market_data).execute(
        ExecuteTradeCommand(user_id=USER, symbol=symbol, side="buy", quantity=quantity, **kwargs)
    )


class TestExecuteTradeUseCase:
    """Tests for ExecuteTradeUseCase."""

    def test_trades_at_cached_price(self, ledger, market_data, seed_quote) -> None:
        seed_quote("AAPL", "150")
        result = _buy(ledger, market_data, "aapl", "2")

        assert result.symbol == "AAPL"
        assert result.side == "buy"
        assert result.price == Decimal("150")
        assert result.balance == Decimal("99700")
        assert result.position_quantity == Decimal("2")
        assert result.position_average_price == Decimal("150")

    def test_sell_everything_reports_closed_position(self, ledger, market_data, seed_quote) -> None:
        seed_quote("AAPL", "150")
        _buy(ledger, market_data, "AAPL", "2")
        result = ExecuteTradeUseCase(ledger, market_data).execute(
            ExecuteTradeCommand(user_id=USER, symbol="AAPL", side="sell", quantity="2")
        )
        assert result.position_quantity == Decimal("0")
        assert result.position_average_price is None

    def test_unknown_symbol(self, ledger, market_data) -> None:
        with pytest.raises(SymbolNotFoundError):
            _buy(ledger, market_data, "NOPE", "1")

    def test_invalid_quantity_before_symbol_lookup(self, ledger) -> None:
        market_data = Mock()
        with pytest.raises(InvalidQuantityError):
            ExecuteTradeUseCase(ledger, market_data).execute(
                ExecuteTradeCommand(user_id=USER, symbol="AAPL", side="buy", quantity="-3")
            )
        market_data.get_quote.assert_not_called()

    def test_unauthenticated_before_symbol_lookup(self, ledger) -> None:
        market_data = Mock()
        with pytest.raises(UnauthenticatedError):
            ExecuteTradeUseCase(ledger, market_data).execute(
                ExecuteTradeCommand(user_id=None, symbol="AAPL", side="buy", quantity="1")
            )
        market_data.get_quote.assert_not_called()


    def test_rejections_are_logged_as_warnings(self, ledger, market_data, seed_quote, caplog) -> None:
        seed_quote("AAPL", "150")
        with caplog.at_level(logging.WARNING, logger="papertrade"):
            with pytest.raises(SymbolNotFoundError):
                _buy(ledger, market_data, "NOPE", "1")
            with pytest.raises(InsufficientFundsError):
                _buy(ledger, market_data, "AAPL", "1000")

        rejected = [r for r in caplog.records if r.getMessage().startswith("Rejected order")]
        assert [r.levelno for r in rejected] == [logging.WARNING, logging.WARNING]
        assert "code=symbol_not_found" in rejected[0].getMessage()
        assert "code=insufficient_funds" in rejected[1].getMessage()
        assert rejected[1].name == "papertrade.domain.trading.ledger_engine"


class TestAccountUseCases:
    """Tests for OpenAccountUseCase and GetBalanceUseCase."""

    def test_open_then_read_balance(self, ledger_store) -> None:
        engine = LedgerEngine(store=ledger_store)
        opened = OpenAccountUseCase(engine, START).execute(OpenAccountCommand(user_id="u2"))
        assert opened.balance == START
        assert GetBalanceUseCase(ledger_store).execute("u2").balance == START

    def test_balance_of_unknown_account(self, ledger_store) -> None:
        with pytest.raises(AccountNotFoundError):
            GetBalanceUseCase(ledger_store).execute("nobody")

    def test_balance_requires_user(self, ledger_store) -> None:
        with pytest.raises(UnauthenticatedError):
            GetBalanceUseCase(ledger_store).execute(None)


class TestListTransactionsUseCase:
    def test_newest_first_with_symbol_filter(self, ledger, ledger_store, market_data, seed_quote) -> None:
        seed_quote("AAPL", "10")
        seed_quote("MSFT", "20")
        _buy(ledger, market_data, "AAPL", "1")
        _buy(ledger, market_data, "MSFT", "1")

        use_case = ListTransactionsUseCase(ledger_store)
        everything = use_case.execute(ListTransactionsQuery(user_id=USER))
        msft = use_case.execute(ListTransactionsQuery(user_id=USER, symbol="msft"))

        assert len(everything) == 2
        assert [t.symbol for t in msft] == ["MSFT"]
        assert msft[0].transaction_type == "buy"


class _TradeDuringQuoteRead:
    """Market data whose first quote read runs a callback beforehand."""

    def __init__(self, inner, callback) -> None:
        self._inner = inner
        self._callback = callback

    def get_quotes(self, symbols):
        if self._callback is not None:
            callback, self._callback = self._callback, None
            callback()
        return self._inner.get_quotes(symbols)

    def __getattr__(self, name):
        return getattr(self._inner, name)


class TestGetPortfolioUseCase:
    """Tests for GetPortfolioUseCase and its cache."""

    def test_values_positions_at_cached_prices(self, ledger, ledger_store, market_data, seed_quote) -> None:
        seed_quote("AAPL", "50")
        _buy(ledger, market_data, "AAPL", "10")
        seed_quote("AAPL", "55")

        view = GetPortfolioUseCase(ledger_store, market_data).execute(USER)

        assert view.balance == Decimal("99500")
        assert view.total_value == Decimal("550")
        assert view.total_gain_loss == Decimal("50")
        assert view.current_total == Decimal("100050")
        assert view.positions[0].gain_loss_percent == Decimal("10")

    def test_position_without_quote_has_no_valuation(self, ledger, ledger_store, market_data) -> None:
        ledger.execute_trade(USER, "XYZ", side=TradeSide.BUY, quantity="1", reference_price="10")
        view = GetPortfolioUseCase(ledger_store, market_data).execute(USER)

        assert view.positions[0].symbol == "XYZ"
        assert view.positions[0].current_price is None
        assert view.total_value == Decimal("0")

    def test_cached_view_is_dropped_after_trade(
        self, ledger, ledger_bus, ledger_store, market_data, seed_quote
    ) -> None:
        cache = PortfolioViewCache()
        ledger_bus.subscribe(cache.on_ledger_change)
        use_case = GetPortfolioUseCase(ledger_store, market_data, cache=cache)
        seed_quote("AAPL", "50")

        before = use_case.execute(USER)
        assert use_case.execute(USER) is before
        _buy(ledger, market_data, "AAPL", "1")
        after = use_case.execute(USER)

        assert after is not before
        assert after.balance == Decimal("99950")

    def test_quote_change_drops_views_holding_the_symbol(self, ledger, ledger_store, market_data, seed_quote) -> None:
        cache = PortfolioViewCache()
        use_case = GetPortfolioUseCase(ledger_store, market_data, cache=cache)
        seed_quote("AAPL", "50")
        _buy(ledger, market_data, "AAPL", "1")
        use_case.execute(USER)

        cache.on_quote_change(QuoteChange(symbol="MSFT", price=Decimal("1"), change=Decimal("0")))
        assert len(cache) == 1
        cache.on_quote_change(QuoteChange(symbol="AAPL", price=Decimal("51"), change=Decimal("2")))
        assert len(cache) == 0

    def test_trade_during_rebuild_is_not_cached(
        self, ledger, ledger_bus, ledger_store, market_data, seed_quote
    ) -> None:
        cache = PortfolioViewCache()
        ledger_bus.subscribe(cache.on_ledger_change)
        seed_quote("AAPL", "10")

        def buy_one() -> None:
            ledger.execute_trade(USER, "AAPL", side=TradeSide.BUY, quantity="1", reference_price="10")

        use_case = GetPortfolioUseCase(
            ledger_store, _TradeDuringQuoteRead(market_data, buy_one), cache=cache
        )
        first = use_case.execute(USER)
        assert first.balance == START
        assert len(cache) == 0

        second = use_case.execute(USER)
        assert second.balance == Decimal("99990")
        assert [p.symbol for p in second.positions] == ["AAPL"]
        assert use_case.execute(USER) is second

    def test_stale_generation_is_refused(self) -> None:
        cache = PortfolioViewCache()
        token = cache.generation(USER)
        cache.on_ledger_change(Mock(user_id=USER))
        view = Mock(user_id=USER, positions=[])

        assert cache.put(view, token) is False
        assert cache.get(USER) is None
        assert cache.put(view, cache.generation(USER)) is True

    def test_unknown_account(self, ledger_store, market_data) -> None:
        with pytest.raises(AccountNotFoundError):
            GetPortfolioUseCase(ledger_store, market_data).execute("nobody")


class TestReconcileLedgerUseCase:
    def test_engine_keeps_ledger_consistent(self, ledger, ledger_store, market_data, seed_quote) -> None:
        seed_quote("AAPL", "50")
        _buy(ledger, market_data, "AAPL", "10")
        ledger.execute_trade(USER, "AAPL", side=TradeSide.SELL, quantity="4", reference_price="70")

        result = ReconcileLedgerUseCase(ledger_store, START).execute(USER)

        assert result.consistent is True
        assert result.transaction_count == 2
        assert result.derived_cash == Decimal("99780")

    def test_tampered_position_is_reported(self, ledger, ledger_store, market_data, seed_quote) -> None:
        seed_quote("AAPL", "50")
        _buy(ledger, market_data, "AAPL", "10")
        with ledger_store.unit_of_work() as session:
            session.save_position(Position(USER, "AAPL", Decimal("99"), Decimal("50")))

        result = ReconcileLedgerUseCase(ledger_store, START).execute(USER)
        assert result.consistent is False
        assert result.discrepancies[0].kind == "mismatch"


class _FakeProvider(MarketDataProviderPort):
    def __init__(self, prices: dict[str, str], failing: set[str] = frozenset()) -> None:
        self.prices = prices
        self.failing = failing
        self.calls: list[str] = []

    def fetch_snapshot(self, symbol: str) -> Quote:
        self.calls.append(symbol)
        if symbol in self.failing:
            raise UpstreamUnavailableError("Market data provider", "boom")
        return Quote(symbol=symbol, name=f"{symbol} Inc.", price=Decimal(self.prices.get(symbol, "10")))


class _FailingUpserts(MarketDataRepositoryAdapter):
    def __init__(self, engine, failing: set[str]) -> None:
        super().__init__(engine)
        self.failing = failing

    def upsert_quote(self, quote: Quote) -> None:
        if quote.symbol in self.failing:
            raise PersistenceFailureError("OperationalError")
        super().upsert_quote(quote)


def _polygon(html_paths: list[str]) -> PolygonMarketDataAdapter:
    """Polygon adapter on a mock transport; listed path prefixes answer with HTML."""
    closes = {"AAPL": 10.0, "MSFT": 20.0}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if any(path.startswith(prefix) for prefix in html_paths):
            return httpx.Response(200, text="<html>maintenance</html>")
        symbol = path.split("/")[4] if path.startswith("/v2/aggs/") else None
        if path.endswith("/prev"):
            return httpx.Response(200, json={"results": [{"o": 1.0, "c": closes[symbol], "v": 5}]})
        if "/range/1/day/" in path:
            return httpx.Response(200, json={"results": [{"t": 1704153600000, "c": closes[symbol]}]})
        return httpx.Response(404)

    client = httpx.Client(base_url="https://api.test", transport=httpx.MockTransport(handler))
    return PolygonMarketDataAdapter(api_key="key", client=client, today=lambda: date(2024, 1, 4))


class TestRefreshMarketDataUseCase:
    """Tests for RefreshMarketDataUseCase."""

    def test_seeds_default_symbols_when_none_tracked(self, market_data) -> None:
        provider = _FakeProvider({})
        result = RefreshMarketDataUseCase(market_data, provider).execute()

        assert result.seeded is True
        assert result.symbols == DEFAULT_SYMBOLS
        assert sorted(market_data.list_active_symbols()) == sorted(DEFAULT_SYMBOLS)
        assert provider.calls == DEFAULT_SYMBOLS

    def test_failures_are_skipped(self, market_data) -> None:
        market_data.add_symbols(["AAPL", "MSFT"])
        provider = _FakeProvider({"MSFT": "300"}, failing={"AAPL"})

        result = RefreshMarketDataUseCase(market_data, provider).execute()

        assert result.updated == ["MSFT"]
        assert result.failed == ["AAPL"]
        assert market_data.get_quote("AAPL") is None
        assert market_data.get_quote("MSFT").price == Decimal("300")

    def test_publishes_only_price_moves(self, market_data, seed_quote) -> None:
        market_data.add_symbols(["AAPL", "MSFT"])
        seed_quote("AAPL", "100")
        seed_quote("MSFT", "300")
        publisher = Mock(spec=QuoteChangePublisher)
        provider = _FakeProvider({"AAPL": "101", "MSFT": "300"})

        RefreshMarketDataUseCase(market_data, provider, publisher=publisher).execute()

        publisher.publish.assert_called_once()
        change = publisher.publish.call_args.args[0]
        assert change.symbol == "AAPL"
        assert change.previous_price == Decimal("100")
        assert change.price == Decimal("101")

    def test_waits_between_symbols(self, market_data) -> None:
        market_data.add_symbols(["AAPL", "MSFT", "TSLA"])
        sleep = Mock()
        RefreshMarketDataUseCase(
            market_data, _FakeProvider({}), request_delay_seconds=0.5, sleep=sleep
        ).execute()
        assert sleep.call_count == 2

    def test_unreadable_chart_still_updates_symbol(self, market_data) -> None:
        market_data.add_symbols(["AAPL", "MSFT"])
        provider = _polygon(html_paths=["/v2/aggs/ticker/AAPL/range/"])

        result = RefreshMarketDataUseCase(market_data, provider).execute()

        assert result.updated == ["AAPL", "MSFT"]
        assert result.failed == []
        assert market_data.get_quote("AAPL").chart == []
        assert len(market_data.get_quote("MSFT").chart) == 1

    def test_unreadable_daily_data_fails_only_that_symbol(self, market_data) -> None:
        market_data.add_symbols(["AAPL", "MSFT"])
        provider = _polygon(html_paths=["/v2/aggs/ticker/AAPL/prev"])

        result = RefreshMarketDataUseCase(market_data, provider).execute()

        assert result.failed == ["AAPL"]
        assert result.updated == ["MSFT"]
        assert market_data.get_quote("MSFT").price == Decimal("20")

    def test_storage_failure_fails_only_that_symbol(self, engine, market_data) -> None:
        market_data.add_symbols(["AAPL", "MSFT"])
        repository = _FailingUpserts(engine, failing={"AAPL"})

        result = RefreshMarketDataUseCase(repository, _FakeProvider({})).execute()

        assert result.failed == ["AAPL"]
        assert result.updated == ["MSFT"]



class TestMarketDataQueries:
    """Tests for quote and search use cases."""

    def test_get_quote(self, market_data, seed_quote) -> None:
        seed_quote("AAPL", "190")
        assert GetQuoteUseCase(market_data).execute("aapl").price == Decimal("190")

    def test_get_unknown_quote(self, market_data) -> None:
        with pytest.raises(SymbolNotFoundError):
            GetQuoteUseCase(market_data).execute("NOPE")

    def test_list_quotes(self, market_data, seed_quote) -> None:
        seed_quote("MSFT", "300")
        seed_quote("AAPL", "190")
        assert [q.symbol for q in ListQuotesUseCase(market_data).execute()] == ["AAPL", "MSFT"]

    def test_blank_search_returns_nothing(self, market_data, seed_quote) -> None:
        seed_quote("AAPL", "190")
        assert SearchStocksUseCase(market_data).execute(SearchStocksQuery(term="  ")) == []


class TestGetRecommendationsUseCase:
    """Tests for GetRecommendationsUseCase."""

    def test_attaches_cached_prices(self, market_data, seed_quote) -> None:
        seed_quote("NVDA", "800")
        recommender = Mock(spec=RecommendationPort)
        recommender.recommend.return_value = [
            StockRecommendation("NVDA", "NVIDIA", "GPUs"),
            StockRecommendation("AMD", "AMD", "CPUs"),
        ]

        results = GetRecommendationsUseCase(recommender, market_data).execute(
            GetRecommendationsQuery(prompt="  AI chips  ")
        )

        recommender.recommend.assert_called_once_with("AI chips")
        assert results[0].price == Decimal("800")
        assert results[1].price is None

    def test_caps_results(self, market_data) -> None:
        recommender = Mock(spec=RecommendationPort)
        recommender.recommend.return_value = [
            StockRecommendation(f"S{i}", f"S{i}", "") for i in range(12)
        ]
        results = GetRecommendationsUseCase(recommender, market_data, max_items=10).execute(
            GetRecommendationsQuery(prompt="anything")
        )
        assert len(results) == 10

    def test_blank_prompt(self, market_data) -> None:
        with pytest.raises(ValueError):
            GetRecommendationsUseCase(Mock(spec=RecommendationPort), market_data).execute(
                GetRecommendationsQuery(prompt="   ")
            )


class TestWatchlistUseCases:
    """Tests for the watchlist use cases."""

    def test_add_list_remove(self, engine, market_data, seed_quote) -> None:
        repo = WatchlistRepositoryAdapter(engine)
        seed_quote("AAPL", "190", name="Apple Inc.")

        assert AddToWatchlistUseCase(repo, market_data).execute(WatchlistCommand(USER, "aapl"))
        items = ListWatchlistUseCase(repo, market_data).execute(USER)
        assert [(i.symbol, i.name, i.price) for i in items] == [("AAPL", "Apple Inc.", Decimal("190"))]
        assert RemoveFromWatchlistUseCase(repo).execute(WatchlistCommand(USER, "AAPL"))
        assert ListWatchlistUseCase(repo, market_data).execute(USER) == []

    def test_add_unknown_symbol(self, engine, market_data) -> None:
        with pytest.raises(SymbolNotFoundError):
            AddToWatchlistUseCase(WatchlistRepositoryAdapter(engine), market_data).execute(
                WatchlistCommand(USER, "NOPE")
            )

    def test_requires_user(self, engine, market_data) -> None:
        with pytest.raises(UnauthenticatedError):
            ListWatchlistUseCase(WatchlistRepositoryAdapter(engine), market_data).execute(None)
