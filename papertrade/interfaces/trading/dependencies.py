"""
Dependency injection for the paper trading API.

Provides FastAPI dependency functions that wire infrastructure
adapters into use cases via constructor injection.
This module is the composition root of the application.

Stateful collaborators (the ledger engine with its per-user locks, the
event buses, the portfolio cache, the quote feed and the scheduler) are
process-wide singletons. Use cases are cheap and built per request.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from papertrade.application.trading.execute_trade import ExecuteTradeUseCase
from papertrade.application.trading.get_balance import GetBalanceUseCase
from papertrade.application.trading.get_portfolio import GetPortfolioUseCase
from papertrade.application.trading.get_quote import GetQuoteUseCase, ListQuotesUseCase
from papertrade.application.trading.get_recommendations import GetRecommendationsUseCase
from papertrade.application.trading.list_transactions import ListTransactionsUseCase
from papertrade.application.trading.open_account import OpenAccountUseCase
from papertrade.application.trading.portfolio_cache import PortfolioViewCache
from papertrade.application.trading.reconcile_ledger import ReconcileLedgerUseCase
from papertrade.application.trading.refresh_market_data import RefreshMarketDataUseCase
from papertrade.application.trading.search_stocks import SearchStocksUseCase
from papertrade.application.trading.watchlist import (
    AddToWatchlistUseCase,
    ListWatchlistUseCase,
    RemoveFromWatchlistUseCase,
)
from papertrade.core.config import settings
from papertrade.domain.trading.ledger_engine import LedgerEngine
from papertrade.domain.trading.ports import IdentityProvider
from papertrade.infrastructure.trading.database import get_engine
from papertrade.infrastructure.trading.event_bus import InProcessEventBus
from papertrade.infrastructure.trading.identity_adapter import SupabaseIdentityAdapter
from papertrade.infrastructure.trading.ledger_store import SqlAlchemyLedgerStore
from papertrade.infrastructure.trading.market_data_repository import (
    MarketDataRepositoryAdapter,
)
from papertrade.infrastructure.trading.polygon_adapter import PolygonMarketDataAdapter
from papertrade.infrastructure.trading.recommendation_adapter import (
    OpenAIRecommendationAdapter,
)
from papertrade.infrastructure.trading.watchlist_repository import (
    WatchlistRepositoryAdapter,
)
from papertrade.realtime.scheduler import MarketRefreshScheduler
from papertrade.realtime.stream import QuoteChangeFeed

bearer_scheme = HTTPBearer(auto_error=False)


# ------------------------------------------------------------------
# Process-wide singletons
# ------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_portfolio_cache() -> PortfolioViewCache:
    return PortfolioViewCache()


@lru_cache(maxsize=1)
def get_quote_feed() -> QuoteChangeFeed:
    return QuoteChangeFeed()


@lru_cache(maxsize=1)
def get_ledger_bus() -> InProcessEventBus:
    """Ledger changes invalidate cached portfolio views."""
    bus = InProcessEventBus(name="ledger")
    bus.subscribe(get_portfolio_cache().on_ledger_change)
    return bus


@lru_cache(maxsize=1)
def get_quote_bus() -> InProcessEventBus:
    """Quote changes reach stream clients and drop stale portfolio views."""
    bus = InProcessEventBus(name="quotes")
    bus.subscribe(get_quote_feed().publish)
    bus.subscribe(get_portfolio_cache().on_quote_change)
    return bus


@lru_cache(maxsize=1)
def get_ledger_store() -> SqlAlchemyLedgerStore:
    return SqlAlchemyLedgerStore(get_engine())


@lru_cache(maxsize=1)
def get_ledger_engine() -> LedgerEngine:
    return LedgerEngine(store=get_ledger_store(), publisher=get_ledger_bus())


@lru_cache(maxsize=1)
def get_market_data_repository() -> MarketDataRepositoryAdapter:
    return MarketDataRepositoryAdapter(get_engine())


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    return SupabaseIdentityAdapter(
        base_url=settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        timeout=settings.http_timeout_seconds,
    )


def build_refresh_use_case() -> RefreshMarketDataUseCase:
    """Build RefreshMarketDataUseCase with its infrastructure dependencies."""
    return RefreshMarketDataUseCase(
        repository=get_market_data_repository(),
        provider=PolygonMarketDataAdapter(
            api_key=settings.polygon_api_key or "",
            base_url=settings.polygon_base_url,
            timeout=settings.http_timeout_seconds,
        ),
        publisher=get_quote_bus(),
        seed_symbols=settings.seed_symbols,
        request_delay_seconds=settings.market_request_delay_seconds,
    )


@lru_cache(maxsize=1)
def get_market_refresh_scheduler() -> MarketRefreshScheduler:
    return MarketRefreshScheduler(
        use_case=build_refresh_use_case(),
        interval_seconds=settings.market_refresh_interval_seconds,
    )


# ------------------------------------------------------------------
# Identity
# ------------------------------------------------------------------


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Optional[str]:
    """Resolve the acting user from the bearer token.

    Returns None when no token was sent or the provider rejects it; use
    cases turn that into UnauthenticatedError at the right step.
    """
    if credentials is None or not credentials.credentials:
        return None
    return identity.get_current_user(credentials.credentials)


# ------------------------------------------------------------------
# Use cases
# ------------------------------------------------------------------


def get_execute_trade_use_case() -> ExecuteTradeUseCase:
    """Build ExecuteTradeUseCase with its infrastructure dependencies."""
    return ExecuteTradeUseCase(
        engine=get_ledger_engine(),
        market_data=get_market_data_repository(),
    )


def get_open_account_use_case() -> OpenAccountUseCase:
    return OpenAccountUseCase(
        engine=get_ledger_engine(),
        starting_balance=settings.starting_balance,
    )


def get_balance_use_case() -> GetBalanceUseCase:
    return GetBalanceUseCase(store=get_ledger_store())


def get_list_transactions_use_case() -> ListTransactionsUseCase:
    return ListTransactionsUseCase(store=get_ledger_store())


def get_portfolio_use_case() -> GetPortfolioUseCase:
    """Build GetPortfolioUseCase backed by the shared view cache."""
    # The ledger bus must exist before views are cached so trades evict them.
    get_ledger_bus()
    return GetPortfolioUseCase(
        store=get_ledger_store(),
        market_data=get_market_data_repository(),
        cache=get_portfolio_cache(),
    )


def get_reconcile_ledger_use_case() -> ReconcileLedgerUseCase:
    return ReconcileLedgerUseCase(
        store=get_ledger_store(),
        starting_balance=settings.starting_balance,
    )


def get_quote_use_case() -> GetQuoteUseCase:
    return GetQuoteUseCase(market_data=get_market_data_repository())


def get_list_quotes_use_case() -> ListQuotesUseCase:
    return ListQuotesUseCase(market_data=get_market_data_repository())


def get_search_stocks_use_case() -> SearchStocksUseCase:
    return SearchStocksUseCase(market_data=get_market_data_repository())


@lru_cache(maxsize=1)
def get_recommendation_adapter() -> OpenAIRecommendationAdapter:
    return OpenAIRecommendationAdapter(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        count=settings.recommendation_count,
        max_items=settings.recommendation_max_items,
        timeout=settings.http_timeout_seconds,
    )


def get_recommendations_use_case() -> GetRecommendationsUseCase:
    """Build GetRecommendationsUseCase with its infrastructure dependencies."""
    return GetRecommendationsUseCase(
        recommender=get_recommendation_adapter(),
        market_data=get_market_data_repository(),
        max_items=settings.recommendation_max_items,
    )


def get_add_to_watchlist_use_case() -> AddToWatchlistUseCase:
    return AddToWatchlistUseCase(
        watchlist=WatchlistRepositoryAdapter(get_engine()),
        market_data=get_market_data_repository(),
    )


def get_remove_from_watchlist_use_case() -> RemoveFromWatchlistUseCase:
    return RemoveFromWatchlistUseCase(watchlist=WatchlistRepositoryAdapter(get_engine()))


def get_list_watchlist_use_case() -> ListWatchlistUseCase:
    return ListWatchlistUseCase(
        watchlist=WatchlistRepositoryAdapter(get_engine()),
        market_data=get_market_data_repository(),
    )
