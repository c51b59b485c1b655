"""
contracts.py - Weekly Option Contract Ladder

Every week lists one CE and one PE at five strikes around the current index:

    base    = index rounded to the nearest strike step (halves round up)
    strikes = base - 2*step, ..., base + 2*step

Contracts are created Monday 00:00:00 and expire Sunday 23:59:59.999 of the
week containing `now`. Generation is pure; TradingDesk.ensure_weekly_contracts
persists the contracts that do not exist yet.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Set, Tuple

import numpy as np

from .core import (
    DEFAULT_STRIKE_LEVELS,
    DEFAULT_STRIKE_STEP,
    OPTION_TYPES,
    OptionContract,
    ValidationError,
    ZERO,
    require_positive,
)


def week_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """Return (Monday 00:00:00, Sunday 23:59:59.999) of the week containing now."""
    monday = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    sunday = (monday + timedelta(days=6)).replace(hour=23, minute=59, second=59, microsecond=999000)
    return monday, sunday


def ladder_strikes(underlying, step=DEFAULT_STRIKE_STEP, levels: int = DEFAULT_STRIKE_LEVELS) -> List[Decimal]:
    """
    Strikes centred on the underlying rounded to the nearest step.

    Non-positive strikes are left out, so a very low index yields a shorter
    ladder.

    Example:
        ladder_strikes(9849)  # [9600, 9700, 9800, 9900, 10000]
    """
    underlying = require_positive(underlying, "underlying")
    step = require_positive(step, "strike step")
    if levels < 0:
        raise ValidationError(f"strike levels must not be negative, got {levels}")

    base = (underlying / step).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * step
    offsets = np.arange(-levels, levels + 1)
    strikes = [base + step * int(offset) for offset in offsets]
    return [strike for strike in strikes if strike > ZERO]


def generate_ladder(
    underlying,
    now: datetime,
    step=DEFAULT_STRIKE_STEP,
    levels: int = DEFAULT_STRIKE_LEVELS,
) -> List[OptionContract]:
    """
    Build this week's contracts (id=None): one CE and one PE per strike.

    An underlying of at least 2.5 x step yields ten contracts. Below that the
    non-positive strikes are left out and the ladder is shorter, e.g. six
    contracts (strikes 100, 200, 300) for an underlying of 120.
    """
    underlying = require_positive(underlying, "underlying")
    created_at, expiry = week_bounds(now)
    return [
        OptionContract(
            id=None,
            strike_price=strike,
            expiry_date=expiry,
            option_type=option_type,
            underlying_at_creation=underlying,
            created_at=created_at,
        )
        for strike in ladder_strikes(underlying, step, levels)
        for option_type in OPTION_TYPES
    ]


def missing_contracts(
    ladder: Iterable[OptionContract], existing: Iterable[OptionContract]
) -> List[OptionContract]:
    """Contracts of the ladder whose (strike, expiry, type) is not already listed."""
    seen: Set[Tuple[Decimal, datetime, str]] = {contract.identity for contract in existing}
    result = []
    for contract in ladder:
        if contract.identity not in seen:
            seen.add(contract.identity)
            result.append(contract)
    return result
