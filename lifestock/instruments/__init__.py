"""
Instruments module - Pure trade computations.

- Equity: buying and selling life stocks, deposits, brokerage
- Option: buying, writing, exiting and settling weekly index options

All computations are re-exported here for convenience.
"""

# Equities
from .equity import (
    brokerage,
    equity_key,
    compute_buy,
    compute_sell,
    compute_deposit,
)

# Options
from .option import (
    option_key,
    underlying_value,
    current_premium,
    settlement_value,
    compute_option_buy,
    compute_option_write,
    compute_option_exit,
    compute_option_settlement,
    expired_positions,
)

__all__ = [
    'brokerage',
    'equity_key',
    'compute_buy',
    'compute_sell',
    'compute_deposit',
    'option_key',
    'underlying_value',
    'current_premium',
    'settlement_value',
    'compute_option_buy',
    'compute_option_write',
    'compute_option_exit',
    'compute_option_settlement',
    'expired_positions',
]
