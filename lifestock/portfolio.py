"""
portfolio.py - Portfolio Valuation

Values one user's desk: cash, collateral locked by written options, equity
holdings at current life stock prices, and option holdings at the current
model premium. Pure functions over a DeskView.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Tuple

from .core import (
    DeskView,
    DEFAULT_MIN_PREMIUM,
    DEFAULT_STOCK_PRICE_FACTOR,
    DEFAULT_TIME_VALUE_FACTOR,
    INSTRUMENT_EQUITY,
    INSTRUMENT_OPTION,
    PositionKey,
    ZERO,
)
from .instruments.option import current_premium
from .positions import realized_pnl


HUNDRED = Decimal("100")


@dataclass(frozen=True, slots=True)
class PositionLine:
    """
    Valuation of one open position.

    market_value is negative for short option positions: it is the cost of
    buying them back.
    """
    key: PositionKey
    label: str
    quantity: Decimal
    avg_price: Decimal
    market_price: Decimal
    market_value: Decimal
    unrealized_pnl: Decimal


@dataclass(frozen=True, slots=True)
class PortfolioSummary:
    cash: Decimal
    reserved_collateral: Decimal
    invested: Decimal
    equity_value: Decimal
    equity_pnl: Decimal
    equity_pnl_percent: Decimal
    option_value: Decimal
    option_pnl: Decimal
    lines: Tuple[PositionLine, ...]

    @property
    def total_value(self) -> Decimal:
        return self.cash + self.reserved_collateral + self.equity_value + self.option_value


def reserved_collateral(view: DeskView) -> Decimal:
    """Strike x quantity summed over every short option position."""
    total = ZERO
    for position in view.get_positions(INSTRUMENT_OPTION):
        if position.key.is_short:
            contract = view.get_contract(position.key.ref_id)
            total += contract.strike_price * position.quantity
    return total


def equity_lines(view: DeskView, price_factor=DEFAULT_STOCK_PRICE_FACTOR) -> List[PositionLine]:
    lines = []
    for position in view.get_positions(INSTRUMENT_EQUITY):
        stock = view.get_life_stock(position.key.ref_id)
        price = stock.price(price_factor)
        lines.append(PositionLine(
            key=position.key,
            label=stock.name,
            quantity=position.quantity,
            avg_price=position.avg_price,
            market_price=price,
            market_value=price * position.quantity,
            unrealized_pnl=realized_pnl(position, price, position.quantity),
        ))
    return lines


def option_lines(
    view: DeskView,
    time_value_factor=DEFAULT_TIME_VALUE_FACTOR,
    min_premium=DEFAULT_MIN_PREMIUM,
) -> List[PositionLine]:
    lines = []
    for position in view.get_positions(INSTRUMENT_OPTION):
        contract = view.get_contract(position.key.ref_id)
        premium = current_premium(view, contract, None, time_value_factor, min_premium)
        value = premium * position.quantity
        lines.append(PositionLine(
            key=position.key,
            label=f"{contract.label} {position.key.position_type}",
            quantity=position.quantity,
            avg_price=position.avg_price,
            market_price=premium,
            market_value=-value if position.key.is_short else value,
            unrealized_pnl=realized_pnl(position, premium, position.quantity),
        ))
    return lines


def summarize(
    view: DeskView,
    price_factor=DEFAULT_STOCK_PRICE_FACTOR,
    time_value_factor=DEFAULT_TIME_VALUE_FACTOR,
    min_premium=DEFAULT_MIN_PREMIUM,
) -> PortfolioSummary:
    """
    Value the whole desk.

    total_value = cash + collateral + equity value + long option value
                  - short option buy-back value
    """
    equities = equity_lines(view, price_factor)
    options = option_lines(view, time_value_factor, min_premium)

    invested = sum((line.avg_price * line.quantity for line in equities), ZERO)
    equity_value = sum((line.market_value for line in equities), ZERO)
    equity_pnl = equity_value - invested
    equity_pnl_percent = equity_pnl / invested * HUNDRED if invested > ZERO else ZERO

    return PortfolioSummary(
        cash=view.get_cash(),
        reserved_collateral=reserved_collateral(view),
        invested=invested,
        equity_value=equity_value,
        equity_pnl=equity_pnl,
        equity_pnl_percent=equity_pnl_percent,
        option_value=sum((line.market_value for line in options), ZERO),
        option_pnl=sum((line.unrealized_pnl for line in options), ZERO),
        lines=tuple(equities + options),
    )
