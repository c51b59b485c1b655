"""
Core types and pure functions for the LifeStock trading ledger.

This module provides the foundational data structures and protocols:
1. Protocols: DeskView for read-only access to desk state
2. Immutable data structures: LifeStock, OptionContract, Position, PositionChange,
   TradeRecord, PendingTrade, TradeReceipt
3. Exceptions: LifeStockError and domain-specific error types
4. Constants: instrument kinds, option and position types, trade actions, defaults

All functions in this module are pure and operate on read-only views.
No function can mutate desk state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, getcontext
from typing import Any, List, Optional, Protocol, Tuple, Union, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Cash, prices and weighted averages are Decimal throughout. The global context
# is configured once at import time.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
#   - prec=50: enough headroom for repeated weighted-average updates
#   - rounding=ROUND_HALF_EVEN: banker's rounding
#
_LIFESTOCK_DECIMAL_CONTEXT = getcontext()
_LIFESTOCK_DECIMAL_CONTEXT.prec = 50
_LIFESTOCK_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Single-user application: every desk works for user 1 unless told otherwise.
DEFAULT_USER_ID = 1

# Key under which the serialized database blob is stored.
DEFAULT_STORAGE_KEY = "lifestock_sqlite_db"

# Instrument kinds (strings, not enum, matching how they are persisted).
INSTRUMENT_EQUITY = "EQUITY"
INSTRUMENT_OPTION = "OPTION"
INSTRUMENTS = (INSTRUMENT_EQUITY, INSTRUMENT_OPTION)

# Option types: call-equivalent and put-equivalent.
OPTION_TYPE_CALL = "CE"
OPTION_TYPE_PUT = "PE"
OPTION_TYPES = (OPTION_TYPE_CALL, OPTION_TYPE_PUT)

SIDE_LONG = "long"
SIDE_SHORT = "short"

# Position types. Equity holdings are always long.
POSITION_LONG = "long"
POSITION_LONG_CE = "long_ce"
POSITION_LONG_PE = "long_pe"
POSITION_SHORT_CE = "short_ce"
POSITION_SHORT_PE = "short_pe"
OPTION_POSITION_TYPES = (POSITION_LONG_CE, POSITION_LONG_PE, POSITION_SHORT_CE, POSITION_SHORT_PE)

# Trade actions. Also used as the `kind` of the matching cash movement.
ACTION_BUY = "buy"
ACTION_SELL = "sell"
ACTION_DEPOSIT = "deposit"
ACTION_OPENING_BALANCE = "opening_balance"
ACTION_BUY_OPTION = "buy_option"
ACTION_WRITE_OPTION = "write_option"
ACTION_EXIT_OPTION = "exit_option"
ACTION_SETTLE_OPTION = "settle_option"

# Quantities with absolute value below this threshold are treated as zero.
QUANTITY_EPSILON = Decimal("1e-12")

# Trading defaults. config.Settings exposes each of these as an override.
DEFAULT_INITIAL_CASH = Decimal("10000000")
DEFAULT_BROKERAGE_RATE = Decimal("0.0003")
DEFAULT_MIN_BROKERAGE = Decimal("20")
DEFAULT_TIME_VALUE_FACTOR = Decimal("0.1")
DEFAULT_MIN_PREMIUM = Decimal("1")
DEFAULT_STRIKE_STEP = Decimal("100")
DEFAULT_STRIKE_LEVELS = 2
DEFAULT_STOCK_PRICE_FACTOR = Decimal("0.1")
DEFAULT_STOCK_SCORE = Decimal("500")

ZERO = Decimal("0")

# Smallest currency unit. Model prices are rounded to it before they move cash.
MONEY_QUANTUM = Decimal("0.01")

DateLike = Union[date, datetime]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LifeStockError(Exception):
    """Base exception for all trading-desk errors."""
    pass


class ValidationError(LifeStockError):
    """Raised for non-positive quantities or prices, unknown types, or a missing selection."""
    pass


class InsufficientFundsError(LifeStockError):
    """Raised when cash cannot cover a cost or the collateral of a written option."""
    pass


class InsufficientHoldingError(LifeStockError):
    """Raised when a sell or exit is larger than the quantity held."""
    pass


class NotFoundError(LifeStockError):
    """Raised when an account, life stock, contract or holding row does not exist."""
    pass


class StaleStateError(LifeStockError):
    """Raised when desk state changed between computing a trade and executing it."""
    pass


class MigrationError(LifeStockError):
    """Raised when the migration list is malformed or a migration step fails."""
    pass


# ============================================================================
# NUMERIC HELPERS
# ============================================================================

def to_decimal(value: Any, name: str = "value") -> Decimal:
    """
    Convert an int, float, str or Decimal to a finite Decimal.

    Floats go through str() so that 0.1 becomes Decimal("0.1"), not its
    binary expansion.

    Raises:
        ValidationError: If the value is not numeric or not finite.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValidationError(f"{name} must be a number, got {value!r}") from exc
    else:
        raise ValidationError(f"{name} must be a number, got {type(value).__name__}")
    if not result.is_finite():
        raise ValidationError(f"{name} must be finite, got {value}")
    return result


def require_positive(value: Any, name: str) -> Decimal:
    """Convert to Decimal and reject zero or negative values."""
    result = to_decimal(value, name)
    if result <= ZERO:
        raise ValidationError(f"{name} must be positive, got {value}")
    return result


def require_non_negative(value: Any, name: str) -> Decimal:
    """Convert to Decimal and reject negative values."""
    result = to_decimal(value, name)
    if result < ZERO:
        raise ValidationError(f"{name} must not be negative, got {value}")
    return result


def normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string representation.

    Semantically equal values produce identical strings:
    Decimal("1.0") and Decimal("1.00") both become "1", and scientific
    notation is never produced.
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def round_money(value: Any) -> Decimal:
    """Round an amount to MONEY_QUANTUM with banker's rounding."""
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_EVEN)


def as_date(value: DateLike) -> date:
    """Return the calendar date of a date or datetime."""
    if isinstance(value, datetime):
        return value.date()
    return value


# ============================================================================
# POSITION TYPES
# ============================================================================

def option_position_type(side: str, option_type: str) -> str:
    """
    Combine a side and an option type into a position type.

    Example:
        option_position_type("short", "PE")  # "short_pe"
    """
    if side not in (SIDE_LONG, SIDE_SHORT):
        raise ValidationError(f"side must be 'long' or 'short', got {side!r}")
    if option_type not in OPTION_TYPES:
        raise ValidationError(f"option_type must be 'CE' or 'PE', got {option_type!r}")
    return f"{side}_{option_type.lower()}"


def split_position_type(position_type: str) -> Tuple[str, str]:
    """Split an option position type into (side, option_type)."""
    if position_type not in OPTION_POSITION_TYPES:
        raise ValidationError(
            f"position_type must be one of {', '.join(OPTION_POSITION_TYPES)}, got {position_type!r}"
        )
    side, option_type = position_type.split("_")
    return side, option_type.upper()


# ============================================================================
# DOMAIN RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class LifeStock:
    """
    A user-defined life category whose score behaves like an equity price.

    Attributes:
        id: Row id of the stock.
        name: Display name, unique per user (e.g. "Health").
        current_score: Performance score; the tradable price is score x price factor.
        weight: Relative weight of the stock in the user's index.
        category: Optional grouping label.
        color: Optional display color.
    """
    id: int
    name: str
    current_score: Decimal
    weight: Decimal = Decimal("1")
    category: Optional[str] = None
    color: Optional[str] = None

    def price(self, factor: Decimal = DEFAULT_STOCK_PRICE_FACTOR) -> Decimal:
        """Tradable price of the stock."""
        return self.current_score * factor


@dataclass(frozen=True, slots=True)
class OptionContract:
    """
    A weekly index option contract. Immutable after creation.

    Attributes:
        id: Row id, None until persisted.
        strike_price: Strike of the contract.
        expiry_date: Sunday 23:59:59 of the contract week.
        option_type: "CE" or "PE".
        underlying_at_creation: Index value when the ladder was generated.
        created_at: Monday 00:00:00 of the contract week.
    """
    id: Optional[int]
    strike_price: Decimal
    expiry_date: datetime
    option_type: str
    underlying_at_creation: Decimal
    created_at: datetime

    def __post_init__(self):
        if self.option_type not in OPTION_TYPES:
            raise ValidationError(f"option_type must be 'CE' or 'PE', got {self.option_type!r}")
        if self.strike_price <= ZERO:
            raise ValidationError(f"strike must be positive, got {self.strike_price}")

    @property
    def identity(self) -> Tuple[Decimal, datetime, str]:
        """The (strike, expiry, type) triple that makes a contract unique."""
        return (self.strike_price, self.expiry_date, self.option_type)

    @property
    def label(self) -> str:
        return f"{normalize_decimal(self.strike_price)} {self.option_type}"

    def is_expired(self, at: datetime) -> bool:
        return self.expiry_date < at


@dataclass(frozen=True, slots=True)
class IndexPoint:
    """One recorded day of the life index."""
    on: date
    value: Decimal
    daily_change: Decimal = ZERO
    change_percent: Decimal = ZERO


@dataclass(frozen=True, slots=True)
class PositionKey:
    """
    Identifies a position: instrument kind, referenced row and position type.

    Equity positions reference a life stock and are always "long". Option
    positions reference a contract and carry one of long_ce, long_pe,
    short_ce, short_pe.
    """
    instrument: str
    ref_id: int
    position_type: str = POSITION_LONG

    def __post_init__(self):
        if self.instrument == INSTRUMENT_EQUITY:
            if self.position_type != POSITION_LONG:
                raise ValidationError(f"equity positions are long only, got {self.position_type!r}")
        elif self.instrument == INSTRUMENT_OPTION:
            if self.position_type not in OPTION_POSITION_TYPES:
                raise ValidationError(f"unknown option position type {self.position_type!r}")
        else:
            raise ValidationError(f"unknown instrument {self.instrument!r}")

    @property
    def is_short(self) -> bool:
        return self.position_type.startswith(SIDE_SHORT)


@dataclass(frozen=True, slots=True)
class Position:
    """
    An open position with its running weighted-average price.

    For equities avg_price is the weighted average buy price; for options it
    is the weighted average premium.
    """
    key: PositionKey
    quantity: Decimal
    avg_price: Decimal

    @property
    def cost_basis(self) -> Decimal:
        return self.quantity * self.avg_price


@dataclass(frozen=True, slots=True)
class PositionChange:
    """
    Before/after snapshots of one position.

    old is None when the trade opens a position; new is None when it closes
    one (the row is deleted).
    """
    key: PositionKey
    old: Optional[Position]
    new: Optional[Position]

    def __post_init__(self):
        if self.old is None and self.new is None:
            raise ValueError("PositionChange needs an old or a new position")
        for snapshot in (self.old, self.new):
            if snapshot is not None and snapshot.key != self.key:
                raise ValueError(f"Position {snapshot.key} does not match change key {self.key}")

    @property
    def opens(self) -> bool:
        return self.old is None

    @property
    def closes(self) -> bool:
        return self.new is None


@dataclass(frozen=True, slots=True)
class TradeRecord:
    """
    One immutable row of the equity or option transaction log.

    Attributes:
        instrument: EQUITY or OPTION (selects the log table).
        action: buy, sell, buy_option, write_option, exit_option, settle_option.
        ref_id: Life stock id or contract id.
        quantity: Units traded.
        price: Price per unit (trade price, premium, exit premium or settlement payoff).
        position_type: Position type affected.
        brokerage_fee: Equity brokerage charged on this leg.
        total_amount: Gross amount of the leg including fees.
        entry_price: Weighted average of the position being reduced.
        realized_pnl: Profit or loss realized by a closing leg.
        cash_delta: Net change to cash caused by this record.
        timestamp: Execution time (set when read back from the log).
        id: Row id (set when read back from the log).
    """
    instrument: str
    action: str
    ref_id: Optional[int]
    quantity: Decimal
    price: Decimal
    position_type: Optional[str] = None
    brokerage_fee: Decimal = ZERO
    total_amount: Decimal = ZERO
    entry_price: Optional[Decimal] = None
    realized_pnl: Optional[Decimal] = None
    cash_delta: Decimal = ZERO
    timestamp: Optional[datetime] = None
    id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class CashMovement:
    """Audit row for every change to the cash balance."""
    kind: str
    amount: Decimal
    balance_after: Decimal
    reference: str
    created_at: datetime
    id: Optional[int] = None


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class DeskView(Protocol):
    """
    Read-only interface to the state of one user's trading desk.

    Computation functions accept a DeskView to declare their read-only intent.
    TradingDesk implements this protocol over the database; tests use FakeView.
    """

    @property
    def current_time(self) -> datetime:
        """Return the desk's current time."""
        ...

    def get_cash(self) -> Decimal:
        """Return the user's cash balance."""
        ...

    def get_position(self, key: PositionKey) -> Optional[Position]:
        """Return the open position for a key, or None."""
        ...

    def get_positions(self, instrument: str) -> List[Position]:
        """Return all open positions of an instrument kind."""
        ...

    def get_contract(self, contract_id: int) -> OptionContract:
        """Return an option contract. Raises NotFoundError if missing."""
        ...

    def list_contracts(self) -> List[OptionContract]:
        """Return all persisted option contracts."""
        ...

    def get_life_stock(self, stock_id: int) -> LifeStock:
        """Return a life stock. Raises NotFoundError if missing."""
        ...

    def latest_index_value(self, at: Optional[DateLike] = None) -> Optional[Decimal]:
        """Return the latest recorded index value dated on or before `at`."""
        ...


# ============================================================================
# PENDING TRADES AND RECEIPTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PendingTrade:
    """
    A trade description before execution - represents INTENT.

    Created by the computation functions in lifestock.instruments and handed
    to TradingDesk.execute(), which re-checks the "before" state and applies
    everything in one database transaction.

    Attributes:
        action: Trade action; also the kind of the resulting cash movement.
        cash_delta: Signed change to the cash balance.
        position_changes: Before/after snapshots of every affected position.
        records: Log rows to append.
        timestamp: When the trade was computed.
        expected_cash: Cash balance the computation was based on.
        description: Human-readable summary.
    """
    action: str
    cash_delta: Decimal
    position_changes: Tuple[PositionChange, ...]
    records: Tuple[TradeRecord, ...]
    timestamp: datetime
    expected_cash: Decimal
    description: str = ""

    def is_empty(self) -> bool:
        """Return True if this trade changes nothing."""
        return not self.position_changes and not self.records and self.cash_delta == ZERO

    def __repr__(self) -> str:
        return (
            f"PendingTrade({self.action}, cash {self.cash_delta:+}, "
            f"{len(self.position_changes)} positions, {len(self.records)} records)"
        )


def empty_pending_trade(view: DeskView, action: str = "noop") -> PendingTrade:
    """
    Create an empty PendingTrade.

    Use this when a computation has nothing to do (e.g. settlement of a
    contract that has not expired yet).
    """
    return PendingTrade(
        action=action,
        cash_delta=ZERO,
        position_changes=(),
        records=(),
        timestamp=view.current_time,
        expected_cash=ZERO,
    )


BOX_WIDTH = 88


def box_pad(text: str, width: int = BOX_WIDTH) -> str:
    """Fit text to one line of a receipt box, truncating with '...'."""
    if len(text) > width:
        return text[:width-3] + "..."
    return text + " " * (width - len(text))


@dataclass(frozen=True, slots=True)
class TradeReceipt:
    """
    An executed, immutable record of a trade - represents FACT.

    Attributes:
        action: Trade action.
        description: Human-readable summary.
        cash_before: Cash balance before execution.
        cash_after: Cash balance after execution.
        position_changes: Applied position snapshots.
        records: Appended log rows.
        timestamp: Execution time.
        movement_id: Id of the cash movement row written for this trade.
    """
    action: str
    description: str
    cash_before: Decimal
    cash_after: Decimal
    position_changes: Tuple[PositionChange, ...]
    records: Tuple[TradeRecord, ...]
    timestamp: datetime
    movement_id: Optional[int] = None

    @property
    def cash_delta(self) -> Decimal:
        return self.cash_after - self.cash_before

    def __repr__(self) -> str:
        bar = "─" * BOX_WIDTH
        pad = box_pad

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' ' + self.action.upper() + ': ' + self.description)}│",
            f"├{bar}┤",
            f"│{pad('   timestamp   : ' + str(self.timestamp))}│",
            f"│{pad('   cash before : ' + str(self.cash_before))}│",
            f"│{pad('   cash after  : ' + str(self.cash_after))}│",
            f"│{pad('   cash delta  : ' + format(self.cash_delta, '+'))}│",
        ]
        if self.position_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Positions (' + str(len(self.position_changes)) + '):')}│")
            for change in self.position_changes:
                key = change.key
                before = f"{change.old.quantity} @ {change.old.avg_price}" if change.old else "-"
                after = f"{change.new.quantity} @ {change.new.avg_price}" if change.new else "closed"
                lines.append(f"│{pad(f'   {key.instrument}:{key.ref_id}:{key.position_type}  {before} → {after}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)
