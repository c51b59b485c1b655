"""
Atomicity Conformance Tests

INVARIANT: Trades are all-or-nothing.

    ∀ trade T:
        T succeeds ⟹ cash, holdings, logs and the movement trail all change
        T fails ⟹ none of them change
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from lifestock import (
    InsufficientFundsError,
    InsufficientHoldingError,
    StaleStateError,
    compute_buy,
)
from tests.conformance import make_desk


def snapshot(desk):
    return (
        desk.cash_balance(),
        desk.holdings(),
        desk.option_holdings(),
        desk.transactions(),
        desk.option_transactions(),
        desk.cash_movements(),
    )


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(st.integers(min_value=1, max_value=100), st.integers(min_value=1, max_value=100))
    @settings(max_examples=15, deadline=None)
    def test_oversell_changes_nothing(self, bought, extra):
        """
        PROPERTY: Selling more than is held raises and leaves every table untouched.
        """
        desk = make_desk()
        stock = desk.add_life_stock("Health", score=1000)
        desk.buy_stock(stock.id, bought)
        before = snapshot(desk)

        with pytest.raises(InsufficientHoldingError):
            desk.sell_stock(stock.id, bought + extra)
        assert snapshot(desk) == before

    @given(st.integers(min_value=1, max_value=20))
    @settings(max_examples=10, deadline=None)
    def test_uncovered_write_changes_nothing(self, extra_units):
        """
        PROPERTY: Writing more than cash can collateralize raises and leaves
        every table untouched.
        """
        desk = make_desk(initial_cash=Decimal("50000"))
        desk.record_index_value(9800)
        pe = [c for c in desk.ensure_weekly_contracts() if c.option_type == "PE"][0]
        affordable = int(Decimal("50000") // pe.strike_price)
        before = snapshot(desk)

        with pytest.raises(InsufficientFundsError):
            desk.write_option(pe.id, affordable + extra_units, 5)
        assert snapshot(desk) == before


class TestAtomicityExamples:
    """Explicit atomicity examples."""

    def test_stale_trade_writes_nothing(self):
        desk = make_desk()
        stock = desk.add_life_stock("Health", score=1000)
        pending = compute_buy(desk, stock.id, 10)
        desk.add_funds(1)
        before = snapshot(desk)

        with pytest.raises(StaleStateError):
            desk.execute(pending)
        assert snapshot(desk) == before
