"""
test_equity.py - Unit tests for life stock trade computations

Tests pure functions for:
- brokerage
- compute_buy
- compute_sell
- compute_deposit
"""

import pytest
from datetime import datetime
from decimal import Decimal

from lifestock import (
    InsufficientFundsError,
    InsufficientHoldingError,
    LifeStock,
    NotFoundError,
    Position,
    ValidationError,
    brokerage,
    compute_buy,
    compute_deposit,
    compute_sell,
)
from lifestock.instruments import equity_key
from tests.fake_view import FakeView


NOW = datetime(2025, 1, 8, 12)
HEALTH = LifeStock(1, "Health", Decimal("1000"), weight=Decimal("2"))


def make_view(cash="10000000", positions=()):
    return FakeView(cash=cash, stocks=[HEALTH], positions=positions, time=NOW)


class TestBrokerage:

    def test_minimum_applies_to_small_trades(self):
        assert brokerage(1000) == Decimal("20")

    def test_rate_applies_to_large_trades(self):
        assert brokerage(1000000) == Decimal("300")

    def test_not_rounded(self):
        assert brokerage(Decimal("66700")) == Decimal("20.01")

    def test_custom_rate_and_minimum(self):
        assert brokerage(1000, rate=Decimal("0.01"), minimum=Decimal("5")) == Decimal("10")


class TestComputeBuy:

    def test_buy_ten_at_hundred(self):
        """10 @ 100: cost 1000 + brokerage 20."""
        pending = compute_buy(make_view(), 1, 10, 100)
        assert pending.action == "buy"
        assert pending.cash_delta == Decimal("-1020")
        assert pending.expected_cash == Decimal("10000000")
        (change,) = pending.position_changes
        assert change.opens
        assert change.new.quantity == Decimal("10")
        assert change.new.avg_price == Decimal("100")
        (record,) = pending.records
        assert record.brokerage_fee == Decimal("20")
        assert record.total_amount == Decimal("1020")

    def test_price_defaults_to_score_times_factor(self):
        pending = compute_buy(make_view(), 1, 10)
        assert pending.records[0].price == Decimal("100")

    def test_adds_to_existing_holding(self):
        existing = Position(equity_key(1), Decimal("10"), Decimal("100"))
        pending = compute_buy(make_view(positions=[existing]), 1, 10, 200)
        (change,) = pending.position_changes
        assert change.old == existing
        assert change.new.avg_price == Decimal("150")

    def test_insufficient_funds(self):
        with pytest.raises(InsufficientFundsError):
            compute_buy(make_view(cash="1019.99"), 1, 10, 100)

    def test_exact_funds_allowed(self):
        pending = compute_buy(make_view(cash="1020"), 1, 10, 100)
        assert pending.cash_delta == Decimal("-1020")

    @pytest.mark.parametrize("quantity,price", [(0, 100), (-1, 100), (10, 0), (10, -5)])
    def test_non_positive_inputs_rejected(self, quantity, price):
        with pytest.raises(ValidationError):
            compute_buy(make_view(), 1, quantity, price)

    def test_unknown_stock(self):
        with pytest.raises(NotFoundError):
            compute_buy(make_view(), 99, 1, 100)

    def test_zero_score_has_no_price(self):
        view = FakeView(stocks=[LifeStock(2, "Idle", Decimal("0"))], time=NOW)
        with pytest.raises(ValidationError):
            compute_buy(view, 2, 1)


class TestComputeSell:

    def held(self, quantity="10", avg="100"):
        return [Position(equity_key(1), Decimal(quantity), Decimal(avg))]

    def test_sell_four_at_one_fifty(self):
        """Proceeds 600 - brokerage 20 = 580; average unchanged."""
        pending = compute_sell(make_view(positions=self.held()), 1, 4, 150)
        assert pending.cash_delta == Decimal("580")
        (change,) = pending.position_changes
        assert change.new.quantity == Decimal("6")
        assert change.new.avg_price == Decimal("100")
        (record,) = pending.records
        assert record.action == "sell"
        assert record.total_amount == Decimal("580")
        assert record.entry_price == Decimal("100")
        assert record.realized_pnl == Decimal("180")

    def test_sell_everything_closes_holding(self):
        pending = compute_sell(make_view(positions=self.held()), 1, 10, 90)
        (change,) = pending.position_changes
        assert change.closes
        assert pending.records[0].realized_pnl == Decimal("-120")

    def test_more_than_held(self):
        with pytest.raises(InsufficientHoldingError):
            compute_sell(make_view(positions=self.held()), 1, 11, 150)

    def test_no_holding(self):
        with pytest.raises(InsufficientHoldingError):
            compute_sell(make_view(), 1, 1, 150)


class TestComputeDeposit:

    def test_deposit_credits_cash(self):
        pending = compute_deposit(make_view(), 5000)
        assert pending.action == "deposit"
        assert pending.cash_delta == Decimal("5000")
        assert pending.position_changes == ()
        assert not pending.is_empty()

    @pytest.mark.parametrize("amount", [0, -10, "abc"])
    def test_invalid_amount(self, amount):
        with pytest.raises(ValidationError):
            compute_deposit(make_view(), amount)
