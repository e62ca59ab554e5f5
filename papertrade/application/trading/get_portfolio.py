"""
Use case: Show a user's portfolio.

Input: user_id
Output: PortfolioView (balance, valued positions, totals)
Side effects: Fills the PortfolioViewCache.
Failure cases: UnauthenticatedError, AccountNotFoundError.
"""

import logging
from decimal import Decimal
from typing import Optional

from papertrade.application.trading.dtos import PortfolioView, PositionView
from papertrade.application.trading.portfolio_cache import PortfolioViewCache
from papertrade.domain.trading.entities import Position
from papertrade.domain.trading.errors import AccountNotFoundError, UnauthenticatedError
from papertrade.domain.trading.portfolio_totals import compute_portfolio_totals
from papertrade.domain.trading.ports import LedgerStore, MarketDataRepository

logger = logging.getLogger(__name__)


class GetPortfolioUseCase:
    """Values open positions at the latest cached prices.

    Positions whose symbol has no cached quote are listed without a
    current price and contribute nothing to the totals.
    """

    def __init__(
        self,
        store: LedgerStore,
        market_data: MarketDataRepository,
        cache: Optional[PortfolioViewCache] = None,
    ) -> None:
        self._store = store
        self._market_data = market_data
        self._cache = cache

    def execute(self, user_id: Optional[str]) -> PortfolioView:
        if not user_id:
            raise UnauthenticatedError()

        generation = None
        if self._cache is not None:
            cached = self._cache.get(user_id)
            if cached is not None:
                return cached
            generation = self._cache.generation(user_id)

        # Balance and positions come from one storage transaction.
        with self._store.unit_of_work() as session:
            balance = session.get_balance(user_id)
            if balance is None:
                raise AccountNotFoundError(user_id)
            positions = session.list_positions(user_id)

        quotes = self._market_data.get_quotes([p.symbol for p in positions])
        prices = {symbol: quote.price for symbol, quote in quotes.items()}
        totals = compute_portfolio_totals(positions, prices, balance.balance)

        view = PortfolioView(
            user_id=user_id,
            balance=balance.balance,
            total_value=totals.total_value,
            total_gain_loss=totals.total_gain_loss,
            current_total=totals.current_total,
            positions=[_to_view(p, prices.get(p.symbol)) for p in positions],
        )
        if self._cache is not None:
            self._cache.put(view, generation)
        return view


def _to_view(position: Position, current_price: Optional[Decimal]) -> PositionView:
    if current_price is None:
        return PositionView(
            symbol=position.symbol,
            quantity=position.quantity,
            average_price=position.average_price,
            cost_basis=position.cost_basis,
        )
    market_value = position.quantity * current_price
    gain_loss = market_value - position.cost_basis
    percent = (
        gain_loss / position.cost_basis * 100 if position.cost_basis else Decimal("0")
    )
    return PositionView(
        symbol=position.symbol,
        quantity=position.quantity,
        average_price=position.average_price,
        cost_basis=position.cost_basis,
        current_price=current_price,
        market_value=market_value,
        gain_loss=gain_loss,
        gain_loss_percent=percent,
    )
