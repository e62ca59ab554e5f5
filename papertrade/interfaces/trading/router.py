"""
FastAPI router for the paper trading ledger.

All routes delegate to use cases. No business logic here.
Input validation is handled by Pydantic schemas.
Error mapping is handled by centralized error handlers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from papertrade.application.trading.dtos import (
    ExecuteTradeCommand,
    ListTransactionsQuery,
    OpenAccountCommand,
    WatchlistCommand,
)
from papertrade.application.trading.execute_trade import ExecuteTradeUseCase
from papertrade.application.trading.get_balance import GetBalanceUseCase
from papertrade.application.trading.get_portfolio import GetPortfolioUseCase
from papertrade.application.trading.list_transactions import ListTransactionsUseCase
from papertrade.application.trading.open_account import OpenAccountUseCase
from papertrade.application.trading.reconcile_ledger import ReconcileLedgerUseCase
from papertrade.application.trading.watchlist import (
    AddToWatchlistUseCase,
    ListWatchlistUseCase,
    RemoveFromWatchlistUseCase,
)
from papertrade.interfaces.trading.dependencies import (
    get_add_to_watchlist_use_case,
    get_balance_use_case,
    get_current_user_id,
    get_execute_trade_use_case,
    get_list_transactions_use_case,
    get_list_watchlist_use_case,
    get_open_account_use_case,
    get_portfolio_use_case,
    get_reconcile_ledger_use_case,
    get_remove_from_watchlist_use_case,
)
from papertrade.interfaces.trading.schemas import (
    BalanceResponse,
    DiscrepancyItem,
    ErrorResponse,
    ExecuteTradeRequest,
    PortfolioResponse,
    PositionItem,
    ReconciliationResponse,
    TradeResponse,
    TransactionItem,
    TransactionListResponse,
    WatchlistAddRequest,
    WatchlistChangeResponse,
    WatchlistItem,
    WatchlistResponse,
)

router = APIRouter(prefix="/trading", tags=["trading"])

AUTH_RESPONSES = {401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.post(
    "/accounts",
    response_model=BalanceResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Open a paper trading account",
    description="Credit the starting cash to a new user. Repeated calls return the existing balance.",
)
def open_account(
    user_id: Optional[str] = Depends(get_current_user_id),
    use_case: OpenAccountUseCase = Depends(get_open_account_use_case),
) -> BalanceResponse:
    result = use_case.execute(OpenAccountCommand(user_id=user_id))
    return BalanceResponse(user_id=result.user_id, balance=result.balance)


@router.get(
    "/balance",
    response_model=BalanceResponse,
    responses=AUTH_RESPONSES,
    summary="Get cash balance",
)
def get_balance(
    user_id: Optional[str] = Depends(get_current_user_id),
    use_case: GetBalanceUseCase = Depends(get_balance_use_case),
) -> BalanceResponse:
    result = use_case.execute(user_id)
    return BalanceResponse(user_id=result.user_id, balance=result.balance)


@router.post(
    "/trades",
    response_model=TradeResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Execute a paper trade",
    description=(
        "Buy or sell shares at the latest cached price. The swipe deck, the "
        "trade form and position rows all use this endpoint."
    ),
)
def execute_trade(
    request: ExecuteTradeRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    use_case: ExecuteTradeUseCase = Depends(get_execute_trade_use_case),
) -> TradeResponse:
    """Execute a trade for the authenticated user."""
    command = ExecuteTradeCommand(
        user_id=user_id,
        symbol=request.symbol,
        side=request.side,
        quantity=request.quantity,
        client_order_id=request.client_order_id,
        source=request.source,
    )
    result = use_case.execute(command)
    return TradeResponse(
        transaction_id=result.transaction_id,
        symbol=result.symbol,
        side=result.side,
        quantity=result.quantity,
        price=result.price,
        total_amount=result.total_amount,
        executed_at=result.executed_at,
        balance=result.balance,
        position_quantity=result.position_quantity,
        position_average_price=result.position_average_price,
        replayed=result.replayed,
    )


@router.get(
    "/transactions",
    response_model=TransactionListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List transaction history",
    description="Return recorded trades, newest first.",
)
def list_transactions(
    symbol: Optional[str] = Query(default=None, max_length=10),
    limit: int = Query(default=50, ge=1, le=500),
    user_id: Optional[str] = Depends(get_current_user_id),
    use_case: ListTransactionsUseCase = Depends(get_list_transactions_use_case),
) -> TransactionListResponse:
    results = use_case.execute(
        ListTransactionsQuery(user_id=user_id, symbol=symbol, limit=limit)
    )
    return TransactionListResponse(
        transactions=[
            TransactionItem(
                id=r.id,
                symbol=r.symbol,
                transaction_type=r.transaction_type,
                quantity=r.quantity,
                price=r.price,
                total_amount=r.total_amount,
                created_at=r.created_at,
            )
            for r in results
        ]
    )


@router.get(
    "/portfolio",
    response_model=PortfolioResponse,
    responses=AUTH_RESPONSES,
    summary="Get portfolio",
    description="Cash, open positions valued at cached prices, and totals.",
)
def get_portfolio(
    user_id: Optional[str] = Depends(get_current_user_id),
    use_case: GetPortfolioUseCase = Depends(get_portfolio_use_case),
) -> PortfolioResponse:
    view = use_case.execute(user_id)
    return PortfolioResponse(
        balance=view.balance,
        total_value=view.total_value,
        total_gain_loss=view.total_gain_loss,
        current_total=view.current_total,
        positions=[
            PositionItem(
                symbol=p.symbol,
                quantity=p.quantity,
                average_price=p.average_price,
                cost_basis=p.cost_basis,
                current_price=p.current_price,
                market_value=p.market_value,
                gain_loss=p.gain_loss,
                gain_loss_percent=p.gain_loss_percent,
            )
            for p in view.positions
        ],
    )


@router.get(
    "/reconciliation",
    response_model=ReconciliationResponse,
    responses=AUTH_RESPONSES,
    summary="Audit the ledger",
    description="Replay the transaction log and compare it with stored cash and positions.",
)
def reconcile_ledger(
    user_id: Optional[str] = Depends(get_current_user_id),
    use_case: ReconcileLedgerUseCase = Depends(get_reconcile_ledger_use_case),
) -> ReconciliationResponse:
    result = use_case.execute(user_id)
    return ReconciliationResponse(
        consistent=result.consistent,
        stored_cash=result.stored_cash,
        derived_cash=result.derived_cash,
        cash_difference=result.cash_difference,
        transaction_count=result.transaction_count,
        discrepancies=[
            DiscrepancyItem(
                symbol=d.symbol,
                kind=d.kind,
                stored_quantity=d.stored_quantity,
                derived_quantity=d.derived_quantity,
                stored_average_price=d.stored_average_price,
                derived_average_price=d.derived_average_price,
            )
            for d in result.discrepancies
        ],
    )


# ------------------------------------------------------------------
# Watchlist
# ------------------------------------------------------------------


@router.get(
    "/watchlist",
    response_model=WatchlistResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List saved symbols",
)
def list_watchlist(
    user_id: Optional[str] = Depends(get_current_user_id),
    use_case: ListWatchlistUseCase = Depends(get_list_watchlist_use_case),
) -> WatchlistResponse:
    return WatchlistResponse(
        items=[
            WatchlistItem(
                symbol=i.symbol,
                saved_at=i.saved_at,
                name=i.name,
                price=i.price,
                change=i.change,
            )
            for i in use_case.execute(user_id)
        ]
    )


@router.post(
    "/watchlist",
    response_model=WatchlistChangeResponse,
    responses=AUTH_RESPONSES,
    summary="Save a symbol",
)
def add_to_watchlist(
    request: WatchlistAddRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    use_case: AddToWatchlistUseCase = Depends(get_add_to_watchlist_use_case),
) -> WatchlistChangeResponse:
    changed = use_case.execute(WatchlistCommand(user_id=user_id, symbol=request.symbol))
    return WatchlistChangeResponse(symbol=request.symbol.upper(), changed=changed)


@router.delete(
    "/watchlist/{symbol}",
    response_model=WatchlistChangeResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Forget a saved symbol",
)
def remove_from_watchlist(
    symbol: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    use_case: RemoveFromWatchlistUseCase = Depends(get_remove_from_watchlist_use_case),
) -> WatchlistChangeResponse:
    changed = use_case.execute(WatchlistCommand(user_id=user_id, symbol=symbol))
    return WatchlistChangeResponse(symbol=symbol.upper(), changed=changed)
