"""
pricing.py - Weekly Option Premium Model

A deliberately simple model for index options that live one week:

    premium = max(min_premium, intrinsic + time_value)

    intrinsic   = max(0, S - K) for CE, max(0, K - S) for PE
    time_value  = factor * S * days_to_expiry / total_days

where days_to_expiry counts from now to expiry (never negative) and total_days
counts from contract creation to expiry (never below one day). Both are
fractional days, so the time value decays continuously through the week.
The premium is rounded to the currency unit (0.01) so that cash flows built
from it stay exact.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from .core import (
    DEFAULT_MIN_PREMIUM,
    DEFAULT_TIME_VALUE_FACTOR,
    OPTION_TYPE_CALL,
    OPTION_TYPES,
    ValidationError,
    ZERO,
    require_non_negative,
    require_positive,
    round_money,
    to_decimal,
)


SECONDS_PER_DAY = Decimal("86400")
ONE_DAY = Decimal("1")

# Within this fraction of the strike an option counts as at the money.
ATM_BAND = Decimal("0.01")

ITM = "ITM"
ATM = "ATM"
OTM = "OTM"


def _check_option_type(option_type: str) -> None:
    if option_type not in OPTION_TYPES:
        raise ValidationError(f"option_type must be 'CE' or 'PE', got {option_type!r}")


def days_between(start: datetime, end: datetime) -> Decimal:
    """Signed number of days from start to end, including the fractional part."""
    return Decimal(str((end - start).total_seconds())) / SECONDS_PER_DAY


def intrinsic_value(underlying, strike, option_type: str) -> Decimal:
    """Exercise value per unit: max(0, S - K) for CE, max(0, K - S) for PE."""
    _check_option_type(option_type)
    underlying = require_non_negative(underlying, "underlying")
    strike = require_positive(strike, "strike")
    if option_type == OPTION_TYPE_CALL:
        return max(ZERO, underlying - strike)
    return max(ZERO, strike - underlying)


def option_premium(
    underlying,
    strike,
    expiry: datetime,
    option_type: str,
    created_at: datetime,
    now: Optional[datetime] = None,
    time_value_factor=DEFAULT_TIME_VALUE_FACTOR,
    min_premium=DEFAULT_MIN_PREMIUM,
) -> Decimal:
    """
    Price one unit of a weekly option.

    Args:
        underlying: Current index value.
        strike: Contract strike.
        expiry: Contract expiry.
        option_type: "CE" or "PE".
        created_at: Contract creation time (start of the contract week).
        now: Pricing time. Defaults to the wall clock.
        time_value_factor: Fraction of the underlying paid as full-week time value.
        min_premium: Floor of the result.

    Returns:
        Premium per unit rounded to MONEY_QUANTUM, never below min_premium.
    """
    intrinsic = intrinsic_value(underlying, strike, option_type)
    underlying = to_decimal(underlying, "underlying")
    time_value_factor = require_non_negative(time_value_factor, "time_value_factor")
    min_premium = require_non_negative(min_premium, "min_premium")
    now = now or datetime.now()

    days_to_expiry = max(ZERO, days_between(now, expiry))
    total_days = max(ONE_DAY, days_between(created_at, expiry))
    time_value = time_value_factor * underlying * days_to_expiry / total_days

    return max(min_premium, round_money(intrinsic + time_value))


def moneyness(underlying, strike, option_type: str) -> str:
    """Classify an option as ITM, ATM (within 1% of the strike) or OTM."""
    _check_option_type(option_type)
    underlying = require_non_negative(underlying, "underlying")
    strike = require_positive(strike, "strike")
    if abs(underlying - strike) <= strike * ATM_BAND:
        return ATM
    if option_type == OPTION_TYPE_CALL:
        return ITM if underlying > strike else OTM
    return ITM if underlying < strike else OTM
