"""
equity.py - Pure Functions for Life Stock Trading and Deposits

Life stocks trade like equities at price = score x price factor. Every leg
pays brokerage of max(minimum, notional x rate). All functions take a
DeskView (read-only) and return an immutable PendingTrade.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Optional

from ..core import (
    DeskView, LifeStock, PendingTrade, PositionKey, TradeRecord,
    InsufficientFundsError, InsufficientHoldingError, ValidationError,
    INSTRUMENT_EQUITY, POSITION_LONG,
    ACTION_BUY, ACTION_SELL, ACTION_DEPOSIT,
    DEFAULT_BROKERAGE_RATE, DEFAULT_MIN_BROKERAGE, DEFAULT_STOCK_PRICE_FACTOR,
    ZERO,
    require_non_negative, require_positive,
)
from ..positions import close_change, open_change, realized_pnl


def equity_key(stock_id: int) -> PositionKey:
    return PositionKey(INSTRUMENT_EQUITY, stock_id, POSITION_LONG)


def brokerage(amount, rate=DEFAULT_BROKERAGE_RATE, minimum=DEFAULT_MIN_BROKERAGE) -> Decimal:
    """
    Brokerage for one equity leg: max(minimum, amount x rate). Not rounded.

    Example:
        brokerage(1000)     # Decimal('20')
        brokerage(1000000)  # Decimal('300.0000')
    """
    amount = require_non_negative(amount, "amount")
    rate = require_non_negative(rate, "brokerage rate")
    minimum = require_non_negative(minimum, "minimum brokerage")
    return max(minimum, amount * rate)


def _trade_price(stock: LifeStock, price: Optional[Decimal], price_factor) -> Decimal:
    if price is None:
        price = stock.price(require_positive(price_factor, "price factor"))
        if price <= ZERO:
            raise ValidationError(f"{stock.name} has no tradable price (score {stock.current_score})")
        return price
    return require_positive(price, "price")


def compute_buy(
    view: DeskView,
    stock_id: int,
    quantity,
    price=None,
    brokerage_rate=DEFAULT_BROKERAGE_RATE,
    min_brokerage=DEFAULT_MIN_BROKERAGE,
    price_factor=DEFAULT_STOCK_PRICE_FACTOR,
) -> PendingTrade:
    """
    Buy shares of a life stock.

    Args:
        view: Read-only desk view
        stock_id: Life stock to buy
        quantity: Shares to buy (must be positive)
        price: Price per share; defaults to the life stock's current price
        brokerage_rate: Brokerage as a fraction of notional
        min_brokerage: Brokerage floor
        price_factor: Score-to-price factor used when price is omitted

    Returns:
        PendingTrade debiting quantity x price + brokerage and growing the holding.

    Raises:
        ValidationError: If quantity or price is not positive.
        NotFoundError: If the life stock does not exist.
        InsufficientFundsError: If the total cost exceeds cash.

    Example:
        # 10 shares @ 100: cost 1000, brokerage 20, cash -1020
        pending = compute_buy(view, stock_id, 10, 100)
    """
    quantity = require_positive(quantity, "quantity")
    stock = view.get_life_stock(stock_id)
    price = _trade_price(stock, price, price_factor)

    cost = quantity * price
    fee = brokerage(cost, brokerage_rate, min_brokerage)
    total = cost + fee

    cash = view.get_cash()
    if total > cash:
        raise InsufficientFundsError(f"Insufficient funds: need {total}, have {cash}")

    change = open_change(view, equity_key(stock_id), quantity, price)
    record = TradeRecord(
        instrument=INSTRUMENT_EQUITY,
        action=ACTION_BUY,
        ref_id=stock_id,
        quantity=quantity,
        price=price,
        position_type=POSITION_LONG,
        brokerage_fee=fee,
        total_amount=total,
        cash_delta=-total,
    )
    return PendingTrade(
        action=ACTION_BUY,
        cash_delta=-total,
        position_changes=(change,),
        records=(record,),
        timestamp=view.current_time,
        expected_cash=cash,
        description=f"Buy {quantity} {stock.name} @ {price}",
    )


def compute_sell(
    view: DeskView,
    stock_id: int,
    quantity,
    price=None,
    brokerage_rate=DEFAULT_BROKERAGE_RATE,
    min_brokerage=DEFAULT_MIN_BROKERAGE,
    price_factor=DEFAULT_STOCK_PRICE_FACTOR,
) -> PendingTrade:
    """
    Sell shares of a life stock.

    The average buy price of the remaining shares is unchanged; the holding
    is closed when the last share is sold. The record carries the realized
    P&L: (price - avg) x quantity - brokerage.

    Raises:
        ValidationError: If quantity or price is not positive.
        NotFoundError: If the life stock does not exist.
        InsufficientHoldingError: If there is no holding or quantity exceeds it.
    """
    quantity = require_positive(quantity, "quantity")
    stock = view.get_life_stock(stock_id)
    price = _trade_price(stock, price, price_factor)

    key = equity_key(stock_id)
    position = view.get_position(key)
    if position is None:
        raise InsufficientHoldingError(f"No shares of {stock.name} owned")
    if quantity > position.quantity:
        raise InsufficientHoldingError(
            f"Cannot sell {quantity} {stock.name}: only {position.quantity} owned"
        )

    proceeds = quantity * price
    fee = brokerage(proceeds, brokerage_rate, min_brokerage)
    net = proceeds - fee
    pnl = realized_pnl(position, price, quantity) - fee

    cash = view.get_cash()
    change = close_change(view, key, quantity)
    record = TradeRecord(
        instrument=INSTRUMENT_EQUITY,
        action=ACTION_SELL,
        ref_id=stock_id,
        quantity=quantity,
        price=price,
        position_type=POSITION_LONG,
        brokerage_fee=fee,
        total_amount=net,
        entry_price=position.avg_price,
        realized_pnl=pnl,
        cash_delta=net,
    )
    return PendingTrade(
        action=ACTION_SELL,
        cash_delta=net,
        position_changes=(change,),
        records=(record,),
        timestamp=view.current_time,
        expected_cash=cash,
        description=f"Sell {quantity} {stock.name} @ {price}",
    )


def compute_deposit(view: DeskView, amount) -> PendingTrade:
    """Add funds to the cash account. The deposit is logged as a cash movement."""
    amount = require_positive(amount, "amount")
    return PendingTrade(
        action=ACTION_DEPOSIT,
        cash_delta=amount,
        position_changes=(),
        records=(),
        timestamp=view.current_time,
        expected_cash=view.get_cash(),
        description=f"Deposit {amount}",
    )
