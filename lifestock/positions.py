"""
positions.py - Weighted-Average Position Bookkeeping

One implementation shared by equity holdings and option holdings:

    accumulate:  new_qty = old_qty + qty
                 new_avg = (old_qty * old_avg + qty * price) / new_qty
    reduce:      new_qty = old_qty - qty, average unchanged,
                 position closed (None) when nothing is left

All functions are pure. open_change / close_change read the current position
from a DeskView and return the PositionChange a PendingTrade carries.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from .core import (
    DeskView,
    InsufficientHoldingError,
    Position,
    PositionChange,
    PositionKey,
    QUANTITY_EPSILON,
    require_positive,
)


def accumulate(position: Optional[Position], key: PositionKey, quantity, price) -> Position:
    """
    Add quantity at price to a position, updating the weighted average.

    A missing position opens with avg_price = price.
    """
    quantity = require_positive(quantity, "quantity")
    price = require_positive(price, "price")
    if position is None:
        return Position(key=key, quantity=quantity, avg_price=price)

    new_quantity = position.quantity + quantity
    new_avg = (position.quantity * position.avg_price + quantity * price) / new_quantity
    return Position(key=key, quantity=new_quantity, avg_price=new_avg)


def reduce(position: Optional[Position], quantity) -> Optional[Position]:
    """
    Remove quantity from a position, keeping its average.

    Returns None when the position is fully closed.

    Raises:
        InsufficientHoldingError: If there is no position or quantity exceeds it.
    """
    quantity = require_positive(quantity, "quantity")
    if position is None:
        raise InsufficientHoldingError("No holding to reduce")
    if quantity > position.quantity:
        raise InsufficientHoldingError(
            f"Cannot reduce {position.key.position_type} holding of {position.quantity} by {quantity}"
        )
    remaining = position.quantity - quantity
    if abs(remaining) < QUANTITY_EPSILON:
        return None
    return Position(key=position.key, quantity=remaining, avg_price=position.avg_price)


def open_change(view: DeskView, key: PositionKey, quantity, price) -> PositionChange:
    old = view.get_position(key)
    return PositionChange(key=key, old=old, new=accumulate(old, key, quantity, price))


def close_change(view: DeskView, key: PositionKey, quantity) -> PositionChange:
    old = view.get_position(key)
    return PositionChange(key=key, old=old, new=reduce(old, quantity))


def realized_pnl(position: Position, exit_price: Decimal, quantity: Decimal) -> Decimal:
    """
    Profit of closing quantity units at exit_price.

    Long positions gain when the exit is above the average; short option
    positions gain when it is below.
    """
    if position.key.is_short:
        return (position.avg_price - exit_price) * quantity
    return (exit_price - position.avg_price) * quantity
