"""
FastAPI router for cached market data.

Quotes are served from the market data store only. The provider is called
by the refresh job, never on a read.
"""

from fastapi import APIRouter, Depends, Query, Request

from papertrade.application.trading.dtos import QuoteResult, SearchStocksQuery
from papertrade.application.trading.get_quote import GetQuoteUseCase, ListQuotesUseCase
from papertrade.application.trading.search_stocks import SearchStocksUseCase
from papertrade.interfaces.trading.dependencies import (
    get_list_quotes_use_case,
    get_market_refresh_scheduler,
    get_quote_use_case,
    get_search_stocks_use_case,
)
from papertrade.interfaces.trading.schemas import (
    ChartPointItem,
    ErrorResponse,
    NewsItemSchema,
    QuoteListResponse,
    QuoteResponse,
    RefreshResponse,
)
from papertrade.realtime.scheduler import MarketRefreshScheduler
from papertrade.shared.security.rate_limiting import HEAVY_RATE_LIMIT, limiter

router = APIRouter(prefix="/market", tags=["market"])


def _to_response(result: QuoteResult) -> QuoteResponse:
    return QuoteResponse(
        symbol=result.symbol,
        name=result.name,
        price=result.price,
        change=result.change,
        volume=result.volume,
        description=result.description,
        updated_at=result.updated_at,
        chart=[ChartPointItem(date=d, value=v) for d, v in result.chart],
        news=[
            NewsItemSchema(id=n.id, title=n.title, summary=n.summary, date=n.date, url=n.url)
            for n in result.news
        ],
    )


@router.get(
    "/quotes",
    response_model=QuoteListResponse,
    summary="Browse cached quotes",
    description="Quotes for the swipe deck, ordered by symbol.",
)
def list_quotes(
    limit: int = Query(default=20, ge=1, le=100),
    use_case: ListQuotesUseCase = Depends(get_list_quotes_use_case),
) -> QuoteListResponse:
    return QuoteListResponse(quotes=[_to_response(r) for r in use_case.execute(limit)])


@router.get(
    "/quotes/{symbol}",
    response_model=QuoteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a quote",
    description="Price, daily change, one year of closes and recent news for a symbol.",
)
def get_quote(
    symbol: str,
    use_case: GetQuoteUseCase = Depends(get_quote_use_case),
) -> QuoteResponse:
    return _to_response(use_case.execute(symbol))


@router.get(
    "/search",
    response_model=QuoteListResponse,
    summary="Search stocks",
    description="Case-insensitive match on symbol or company name. Symbol prefix matches come first.",
)
def search_stocks(
    q: str = Query(default="", max_length=50),
    limit: int = Query(default=10, ge=1, le=50),
    use_case: SearchStocksUseCase = Depends(get_search_stocks_use_case),
) -> QuoteListResponse:
    results = use_case.execute(SearchStocksQuery(term=q, limit=limit))
    return QuoteListResponse(quotes=[_to_response(r) for r in results])


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    summary="Refresh market data now",
    description="Fetch a fresh snapshot for every tracked symbol, ignoring market hours.",
)
@limiter.limit(HEAVY_RATE_LIMIT)
def refresh_market_data(
    request: Request,
    scheduler: MarketRefreshScheduler = Depends(get_market_refresh_scheduler),
) -> RefreshResponse:
    result = scheduler.run_now()
    return RefreshResponse(
        status=result.status.value,
        symbols=result.details.get("symbols", []),
        updated=result.details.get("updated", []),
        failed=result.details.get("failed", []),
        seeded=result.details.get("seeded", False),
        duration_seconds=result.duration_seconds,
        error=result.error,
    )


@router.get(
    "/refresh/status",
    summary="Get refresh scheduler status",
    description="Whether the interval job runs, market hours, and the last run.",
)
def refresh_status(
    scheduler: MarketRefreshScheduler = Depends(get_market_refresh_scheduler),
) -> dict:
    return scheduler.get_status()
