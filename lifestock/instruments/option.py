"""
option.py - Pure Functions for Weekly Index Options

Users buy options (long), write options against full cash collateral
(short), exit before expiry at the model premium, and are settled in cash
after expiry. All functions take a DeskView (read-only) and return immutable
results.

Cash flows per unit, with K the strike, P the premium and S the settlement
value of the index:

    buy     -P
    write   -K (collateral) + P
    exit    long: +P_now          short: +K - P_now
    settle  long: +payoff         short: +K - payoff

where payoff = max(0, S - K) for CE and max(0, K - S) for PE.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..core import (
    DeskView, OptionContract, PendingTrade, Position, PositionKey, TradeRecord,
    InsufficientFundsError, InsufficientHoldingError, ValidationError,
    INSTRUMENT_OPTION, SIDE_LONG, SIDE_SHORT,
    ACTION_BUY_OPTION, ACTION_WRITE_OPTION, ACTION_EXIT_OPTION, ACTION_SETTLE_OPTION,
    DEFAULT_MIN_PREMIUM, DEFAULT_TIME_VALUE_FACTOR,
    empty_pending_trade, option_position_type, split_position_type,
    require_positive,
)
from ..positions import close_change, open_change, realized_pnl
from ..pricing import intrinsic_value, option_premium


def option_key(contract: OptionContract, side: str) -> PositionKey:
    return PositionKey(INSTRUMENT_OPTION, contract.id, option_position_type(side, contract.option_type))


def underlying_value(view: DeskView, contract: OptionContract, at: Optional[datetime] = None) -> Decimal:
    """Latest index value on or before `at`, falling back to the value at creation."""
    value = view.latest_index_value(at or view.current_time)
    return value if value is not None else contract.underlying_at_creation


def current_premium(
    view: DeskView,
    contract: OptionContract,
    at: Optional[datetime] = None,
    time_value_factor=DEFAULT_TIME_VALUE_FACTOR,
    min_premium=DEFAULT_MIN_PREMIUM,
) -> Decimal:
    """Model premium of a contract at `at` (defaults to the view's current time)."""
    at = at or view.current_time
    return option_premium(
        underlying_value(view, contract, at),
        contract.strike_price,
        contract.expiry_date,
        contract.option_type,
        contract.created_at,
        now=at,
        time_value_factor=time_value_factor,
        min_premium=min_premium,
    )


def settlement_value(view: DeskView, contract: OptionContract) -> Decimal:
    """Index value used to settle a contract: the latest value dated on or before expiry."""
    return underlying_value(view, contract, contract.expiry_date)


def _tradable_contract(view: DeskView, contract_id: int) -> OptionContract:
    contract = view.get_contract(contract_id)
    if contract.is_expired(view.current_time):
        raise ValidationError(f"Contract {contract.label} expired at {contract.expiry_date}")
    return contract


def _open_premium(view: DeskView, contract: OptionContract, premium, time_value_factor, min_premium) -> Decimal:
    if premium is None:
        return current_premium(view, contract, None, time_value_factor, min_premium)
    return require_positive(premium, "premium")


def compute_option_buy(
    view: DeskView,
    contract_id: int,
    quantity,
    premium=None,
    time_value_factor=DEFAULT_TIME_VALUE_FACTOR,
    min_premium=DEFAULT_MIN_PREMIUM,
) -> PendingTrade:
    """
    Buy (go long) an option contract.

    Args:
        view: Read-only desk view
        contract_id: Contract to buy
        quantity: Units to buy (must be positive)
        premium: Premium per unit; defaults to the current model premium

    Returns:
        PendingTrade debiting premium x quantity and growing the long holding.

    Raises:
        ValidationError: If quantity or premium is not positive, or the contract expired.
        NotFoundError: If the contract does not exist.
        InsufficientFundsError: If the premium exceeds cash.
    """
    quantity = require_positive(quantity, "quantity")
    contract = _tradable_contract(view, contract_id)
    premium = _open_premium(view, contract, premium, time_value_factor, min_premium)

    total = premium * quantity
    cash = view.get_cash()
    if total > cash:
        raise InsufficientFundsError(f"Insufficient funds: need {total}, have {cash}")

    key = option_key(contract, SIDE_LONG)
    change = open_change(view, key, quantity, premium)
    record = TradeRecord(
        instrument=INSTRUMENT_OPTION,
        action=ACTION_BUY_OPTION,
        ref_id=contract.id,
        quantity=quantity,
        price=premium,
        position_type=key.position_type,
        total_amount=total,
        cash_delta=-total,
    )
    return PendingTrade(
        action=ACTION_BUY_OPTION,
        cash_delta=-total,
        position_changes=(change,),
        records=(record,),
        timestamp=view.current_time,
        expected_cash=cash,
        description=f"Buy {quantity} {contract.label} @ {premium}",
    )


def compute_option_write(
    view: DeskView,
    contract_id: int,
    quantity,
    premium=None,
    time_value_factor=DEFAULT_TIME_VALUE_FACTOR,
    min_premium=DEFAULT_MIN_PREMIUM,
) -> PendingTrade:
    """
    Write (go short) an option contract.

    Collateral of strike x quantity is locked and the premium is received in
    the same step, so cash moves by -collateral + premium x quantity.

    Example:
        # PE strike 9800, 5 units @ 12: cash -49000 + 60 = -48940
        pending = compute_option_write(view, contract_id, 5, 12)

    Raises:
        ValidationError: If quantity or premium is not positive, or the contract expired.
        NotFoundError: If the contract does not exist.
        InsufficientFundsError: If the collateral exceeds cash.
    """
    quantity = require_positive(quantity, "quantity")
    contract = _tradable_contract(view, contract_id)
    premium = _open_premium(view, contract, premium, time_value_factor, min_premium)

    collateral = contract.strike_price * quantity
    cash = view.get_cash()
    if collateral > cash:
        raise InsufficientFundsError(
            f"Insufficient funds for collateral: need {collateral}, have {cash}"
        )

    total_premium = premium * quantity
    cash_delta = total_premium - collateral

    key = option_key(contract, SIDE_SHORT)
    change = open_change(view, key, quantity, premium)
    record = TradeRecord(
        instrument=INSTRUMENT_OPTION,
        action=ACTION_WRITE_OPTION,
        ref_id=contract.id,
        quantity=quantity,
        price=premium,
        position_type=key.position_type,
        total_amount=total_premium,
        cash_delta=cash_delta,
    )
    return PendingTrade(
        action=ACTION_WRITE_OPTION,
        cash_delta=cash_delta,
        position_changes=(change,),
        records=(record,),
        timestamp=view.current_time,
        expected_cash=cash,
        description=f"Write {quantity} {contract.label} @ {premium}",
    )


def compute_option_exit(
    view: DeskView,
    contract_id: int,
    position_type: str,
    quantity,
    time_value_factor=DEFAULT_TIME_VALUE_FACTOR,
    min_premium=DEFAULT_MIN_PREMIUM,
) -> PendingTrade:
    """
    Close all or part of an option holding at the current model premium.

    Long exits receive the premium. Short exits get the collateral back and
    pay the premium to buy the contract back in the same step.

    The record stores the exit premium, the entry average and the realized P&L.

    Raises:
        ValidationError: If quantity is not positive, the position type does
            not match the contract, or the contract expired (expired holdings
            are settled instead).
        NotFoundError: If the contract does not exist.
        InsufficientHoldingError: If there is no holding or quantity exceeds it.
        InsufficientFundsError: If cash cannot cover a short buy-back.
    """
    quantity = require_positive(quantity, "quantity")
    side, option_type = split_position_type(position_type)
    contract = _tradable_contract(view, contract_id)
    if option_type != contract.option_type:
        raise ValidationError(
            f"Position type {position_type} does not match {contract.option_type} contract {contract.label}"
        )

    key = option_key(contract, side)
    position = view.get_position(key)
    if position is None:
        raise InsufficientHoldingError(f"No {position_type} holding on {contract.label}")
    if quantity > position.quantity:
        raise InsufficientHoldingError(
            f"Cannot exit {quantity} {position_type} on {contract.label}: only {position.quantity} held"
        )

    exit_premium = current_premium(view, contract, None, time_value_factor, min_premium)
    if side == SIDE_LONG:
        cash_delta = exit_premium * quantity
    else:
        cash_delta = contract.strike_price * quantity - exit_premium * quantity

    cash = view.get_cash()
    if cash + cash_delta < 0:
        raise InsufficientFundsError(
            f"Insufficient funds to buy back {quantity} {contract.label}: need {-cash_delta}, have {cash}"
        )

    change = close_change(view, key, quantity)
    record = TradeRecord(
        instrument=INSTRUMENT_OPTION,
        action=ACTION_EXIT_OPTION,
        ref_id=contract.id,
        quantity=quantity,
        price=exit_premium,
        position_type=position_type,
        total_amount=exit_premium * quantity,
        entry_price=position.avg_price,
        realized_pnl=realized_pnl(position, exit_premium, quantity),
        cash_delta=cash_delta,
    )
    return PendingTrade(
        action=ACTION_EXIT_OPTION,
        cash_delta=cash_delta,
        position_changes=(change,),
        records=(record,),
        timestamp=view.current_time,
        expected_cash=cash,
        description=f"Exit {quantity} {position_type} {contract.label} @ {exit_premium}",
    )


# ============================================================================
# EXPIRY SETTLEMENT
# ============================================================================

def expired_positions(view: DeskView, at: Optional[datetime] = None) -> List[Position]:
    """Open option positions whose contract expired before `at`."""
    at = at or view.current_time
    expired = []
    for position in view.get_positions(INSTRUMENT_OPTION):
        contract = view.get_contract(position.key.ref_id)
        if contract.is_expired(at):
            expired.append(position)
    return expired


def compute_option_settlement(
    view: DeskView,
    key: PositionKey,
    at: Optional[datetime] = None,
) -> PendingTrade:
    """
    Cash-settle one expired option holding.

    Settlement uses the latest index value dated on or before expiry
    (falling back to the value at creation):

        long:  cash +payoff x qty,        realized (payoff - avg) x qty
        short: cash +(K - payoff) x qty,  realized (avg - payoff) x qty

    The short side already received its premium when writing, so only the
    collateral less the buyer's payoff comes back. The holding is closed.

    Returns an empty PendingTrade if the holding is gone or the contract has
    not expired at `at`.
    """
    at = at or view.current_time
    position = view.get_position(key)
    if position is None:
        return empty_pending_trade(view, ACTION_SETTLE_OPTION)
    contract = view.get_contract(key.ref_id)
    if not contract.is_expired(at):
        return empty_pending_trade(view, ACTION_SETTLE_OPTION)

    value = settlement_value(view, contract)
    payoff = intrinsic_value(value, contract.strike_price, contract.option_type)
    quantity = position.quantity
    if key.is_short:
        cash_delta = (contract.strike_price - payoff) * quantity
    else:
        cash_delta = payoff * quantity

    change = close_change(view, key, quantity)
    record = TradeRecord(
        instrument=INSTRUMENT_OPTION,
        action=ACTION_SETTLE_OPTION,
        ref_id=contract.id,
        quantity=quantity,
        price=payoff,
        position_type=key.position_type,
        total_amount=payoff * quantity,
        entry_price=position.avg_price,
        realized_pnl=realized_pnl(position, payoff, quantity),
        cash_delta=cash_delta,
    )
    return PendingTrade(
        action=ACTION_SETTLE_OPTION,
        cash_delta=cash_delta,
        position_changes=(change,),
        records=(record,),
        timestamp=at,
        expected_cash=view.get_cash(),
        description=f"Settle {quantity} {key.position_type} {contract.label} at index {value}",
    )
