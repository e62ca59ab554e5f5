"""
Tests for portfolio valuation and ledger reconciliation.

Pure domain functions. No IO required.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from papertrade.domain.trading.entities import Position, TradeSide, Transaction
from papertrade.domain.trading.portfolio_totals import compute_portfolio_totals, value_positions
from papertrade.domain.trading.reconciliation import (
    DiscrepancyKind,
    derive_cash,
    reconcile,
    replay_transactions,
)

USER = "user-1"
T0 = datetime(2024, 3, 4, 15, 0, tzinfo=timezone.utc)


def _position(symbol: str, quantity: str, average: str) -> Position:
    return Position(USER, symbol, Decimal(quantity), Decimal(average))


def _txn(side: TradeSide, symbol: str, quantity: str, price: str, minute: int) -> Transaction:
    q, p = Decimal(quantity), Decimal(price)
    return Transaction(
        user_id=USER,
        symbol=symbol,
        transaction_type=side,
        quantity=q,
        price=p,
        total_amount=q * p,
        created_at=T0 + timedelta(minutes=minute),
    )


class TestPortfolioTotals:
    """Tests for compute_portfolio_totals."""

    def test_totals_over_priced_positions(self) -> None:
        positions = [_position("AAPL", "10", "50"), _position("MSFT", "2", "300")]
        prices = {"AAPL": Decimal("55"), "MSFT": Decimal("290")}

        totals = compute_portfolio_totals(positions, prices, Decimal("1000"))

        assert totals.total_value == Decimal("1130")
        assert totals.total_gain_loss == Decimal("30")
        assert totals.current_total == Decimal("2130")

    def test_position_without_price_is_skipped(self) -> None:
        positions = [_position("AAPL", "10", "50"), _position("XYZ", "5", "10")]

        totals = compute_portfolio_totals(positions, {"AAPL": Decimal("50")}, Decimal("0"))

        assert totals.total_value == Decimal("500")
        assert totals.total_gain_loss == Decimal("0")
        assert [v.position.symbol for v in value_positions(positions, {"AAPL": Decimal("50")})] == ["AAPL"]

    def test_empty_portfolio_is_all_cash(self) -> None:
        totals = compute_portfolio_totals([], {}, Decimal("100000"))
        assert totals.total_value == Decimal("0")
        assert totals.current_total == Decimal("100000")

    def test_gain_loss_percent(self) -> None:
        valued = value_positions([_position("AAPL", "4", "25")], {"AAPL": Decimal("30")})[0]
        assert valued.market_value == Decimal("120")
        assert valued.gain_loss == Decimal("20")
        assert valued.gain_loss_percent == Decimal("20")


class TestReplay:
    """Tests for rebuilding holdings from the log."""

    def test_replay_matches_engine_arithmetic(self) -> None:
        log = [
            _txn(TradeSide.BUY, "AAPL", "10", "50", 0),
            _txn(TradeSide.BUY, "AAPL", "5", "60", 1),
            _txn(TradeSide.SELL, "AAPL", "3", "70", 2),
        ]
        derived = replay_transactions(list(reversed(log)))["AAPL"]

        assert derived.quantity == Decimal("12")
        assert float(derived.average_price) == pytest.approx(800 / 15, abs=1e-6)

    def test_derive_cash(self) -> None:
        log = [
            _txn(TradeSide.BUY, "AAPL", "10", "50", 0),
            _txn(TradeSide.SELL, "AAPL", "10", "55", 1),
        ]
        assert derive_cash(Decimal("100000"), log) == Decimal("100050")


class TestReconcile:
    """Tests for the ledger audit."""

    def test_consistent_ledger(self) -> None:
        log = [_txn(TradeSide.BUY, "AAPL", "10", "50", 0)]
        report = reconcile(
            USER, Decimal("100000"), Decimal("99500"), [_position("AAPL", "10", "50")], log
        )
        assert report.is_consistent
        assert report.discrepancies == []
        assert report.transaction_count == 1

    def test_tampered_quantity_is_flagged(self) -> None:
        log = [_txn(TradeSide.BUY, "AAPL", "10", "50", 0)]
        report = reconcile(
            USER, Decimal("100000"), Decimal("99500"), [_position("AAPL", "12", "50")], log
        )
        assert not report.is_consistent
        assert report.discrepancies[0].kind is DiscrepancyKind.MISMATCH
        assert report.discrepancies[0].derived_quantity == Decimal("10")

    def test_cash_drift_is_flagged(self) -> None:
        log = [_txn(TradeSide.BUY, "AAPL", "10", "50", 0)]
        report = reconcile(
            USER, Decimal("100000"), Decimal("99600"), [_position("AAPL", "10", "50")], log
        )
        assert not report.is_consistent
        assert report.cash_difference == Decimal("100")

    def test_position_without_history(self) -> None:
        report = reconcile(USER, Decimal("100000"), Decimal("100000"), [_position("TSLA", "1", "200")], [])
        assert report.discrepancies[0].kind is DiscrepancyKind.UNTRACKED_POSITION

    def test_missing_position_with_history(self) -> None:
        log = [_txn(TradeSide.BUY, "AAPL", "10", "50", 0)]
        report = reconcile(USER, Decimal("100000"), Decimal("99500"), [], log)
        assert report.discrepancies[0].kind is DiscrepancyKind.ORPHANED_TRANSACTIONS

    def test_closed_position_needs_no_row(self) -> None:
        log = [
            _txn(TradeSide.BUY, "AAPL", "10", "50", 0),
            _txn(TradeSide.SELL, "AAPL", "10", "50", 1),
        ]
        report = reconcile(USER, Decimal("100000"), Decimal("100000"), [], log)
        assert report.is_consistent
