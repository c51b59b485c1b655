"""
test_pricing.py - Unit tests for the weekly option premium model

Tests pure functions for:
- intrinsic_value
- option_premium (time value decay, floors, clamping)
- moneyness
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from lifestock import ValidationError, intrinsic_value, moneyness, option_premium
from lifestock.pricing import ATM, ITM, OTM, days_between


CREATED = datetime(2025, 1, 6)
EXPIRY = datetime(2025, 1, 13)          # exactly 7 days later
HALF_WEEK = CREATED + timedelta(days=3, hours=12)


# =============================================================================
# INTRINSIC VALUE
# =============================================================================

class TestIntrinsicValue:

    def test_call_in_the_money(self):
        assert intrinsic_value(10000, 9800, "CE") == Decimal("200")

    def test_call_out_of_the_money(self):
        assert intrinsic_value(9700, 9800, "CE") == Decimal("0")

    def test_put_in_the_money(self):
        assert intrinsic_value(9700, 9800, "PE") == Decimal("100")

    def test_put_out_of_the_money(self):
        assert intrinsic_value(9900, 9800, "PE") == Decimal("0")

    def test_unknown_option_type_rejected(self):
        with pytest.raises(ValidationError):
            intrinsic_value(9800, 9800, "call")


# =============================================================================
# PREMIUM
# =============================================================================

class TestOptionPremium:

    def test_days_between_is_fractional(self):
        assert days_between(CREATED, HALF_WEEK) == Decimal("3.5")

    def test_at_the_money_half_week(self):
        """Time value = 0.1 x 9800 x 3.5 / 7 = 490."""
        premium = option_premium(9800, 9800, EXPIRY, "CE", CREATED, now=HALF_WEEK)
        assert premium == Decimal("490")

    def test_rounded_to_currency_unit(self):
        """Time value = 0.1 x 9800 x (167/24) / 7 = 974.1666..., quoted as 974.17."""
        premium = option_premium(9800, 9800, EXPIRY, "CE", CREATED, now=CREATED + timedelta(hours=1))
        assert premium == Decimal("974.17")
        assert premium.as_tuple().exponent == -2

    def test_in_the_money_adds_intrinsic(self):
        premium = option_premium(10000, 9800, EXPIRY, "CE", CREATED, now=HALF_WEEK)
        assert premium == Decimal("200") + Decimal("500")

    def test_full_time_value_at_creation(self):
        premium = option_premium(9800, 9800, EXPIRY, "PE", CREATED, now=CREATED)
        assert premium == Decimal("980")

    def test_at_expiry_only_intrinsic(self):
        premium = option_premium(10000, 9800, EXPIRY, "CE", CREATED, now=EXPIRY)
        assert premium == Decimal("200")

    def test_after_expiry_time_value_clamped_to_zero(self):
        premium = option_premium(9700, 9800, EXPIRY, "PE", CREATED, now=EXPIRY + timedelta(days=2))
        assert premium == Decimal("100")

    def test_worthless_option_floored_at_one(self):
        premium = option_premium(9000, 9800, EXPIRY, "CE", CREATED, now=EXPIRY)
        assert premium == Decimal("1")

    def test_total_days_floored_at_one_day(self):
        """A contract listed 12 hours before expiry still divides by one full day."""
        created = EXPIRY - timedelta(hours=12)
        premium = option_premium(9800, 20000, EXPIRY, "CE", created, now=created)
        assert premium == Decimal("490")

    def test_custom_factor_and_floor(self):
        premium = option_premium(
            9800, 9800, EXPIRY, "CE", CREATED, now=HALF_WEEK,
            time_value_factor=Decimal("0.2"), min_premium=Decimal("5"),
        )
        assert premium == Decimal("980")
        floored = option_premium(
            1000, 9800, EXPIRY, "CE", CREATED, now=EXPIRY, min_premium=Decimal("5"),
        )
        assert floored == Decimal("5")

    def test_float_inputs_accepted(self):
        premium = option_premium(9800.0, 9800.0, EXPIRY, "CE", CREATED, now=HALF_WEEK)
        assert premium == Decimal("490")

    def test_invalid_type_rejected(self):
        with pytest.raises(ValidationError):
            option_premium(9800, 9800, EXPIRY, "XX", CREATED, now=HALF_WEEK)

    def test_non_positive_strike_rejected(self):
        with pytest.raises(ValidationError):
            option_premium(9800, 0, EXPIRY, "CE", CREATED, now=HALF_WEEK)


# =============================================================================
# MONEYNESS
# =============================================================================

class TestMoneyness:

    def test_within_one_percent_is_atm(self):
        assert moneyness(9850, 9800, "CE") == ATM
        assert moneyness(9750, 9800, "PE") == ATM

    def test_call_itm_and_otm(self):
        assert moneyness(10000, 9800, "CE") == ITM
        assert moneyness(9600, 9800, "CE") == OTM

    def test_put_itm_and_otm(self):
        assert moneyness(9600, 9800, "PE") == ITM
        assert moneyness(10000, 9800, "PE") == OTM
