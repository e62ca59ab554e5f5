"""
Portfolio valuation.

Pure functions over positions and current prices. No IO.
"""

from decimal import Decimal
from typing import Mapping

from papertrade.domain.trading.entities import PortfolioTotals, Position, ValuedPosition


def value_positions(
    positions: list[Position], current_prices: Mapping[str, Decimal]
) -> list[ValuedPosition]:
    """Pair each position with its current price.

    Positions without a known price are left out.
    """
    return [
        ValuedPosition(position=position, current_price=current_prices[position.symbol])
        for position in positions
        if position.symbol in current_prices
    ]


def compute_portfolio_totals(
    positions: list[Position],
    current_prices: Mapping[str, Decimal],
    balance: Decimal,
) -> PortfolioTotals:
    """Aggregate market value and unrealized gain/loss.

    Args:
        positions: Open positions of one user.
        current_prices: Latest price per symbol. Positions whose symbol is
            missing contribute nothing.
        balance: Available cash.

    Returns:
        total_value = sum(quantity * price),
        total_gain_loss = sum((price - average_price) * quantity),
        current_total = balance + total_value.
    """
    total_value = Decimal("0")
    total_gain_loss = Decimal("0")
    for valued in value_positions(positions, current_prices):
        total_value += valued.market_value
        total_gain_loss += valued.gain_loss

    return PortfolioTotals(
        total_value=total_value,
        total_gain_loss=total_gain_loss,
        current_total=balance + total_value,
    )
