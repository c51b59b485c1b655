"""
models.py - SQLAlchemy ORM Rows

One class per table created by lifestock.migrations. The schema itself is
owned by the migrations; these mappings only read and write rows.

Decimal amounts are stored as normalized decimal strings (DecimalString) so
that cash balances and weighted averages survive the round trip exactly.

Each row class converts to and from the immutable records in lifestock.core
(to_domain / to_position / to_record), so nothing outside the desk ever
handles ORM objects.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Query, declarative_base
from sqlalchemy.types import TypeDecorator

from .core import (
    CashMovement,
    IndexPoint,
    INSTRUMENT_EQUITY,
    INSTRUMENT_OPTION,
    LifeStock,
    OptionContract,
    Position,
    PositionKey,
    POSITION_LONG,
    TradeRecord,
    ACTION_BUY,
    ZERO,
    normalize_decimal,
    to_decimal,
)


Base = declarative_base()


class DecimalString(TypeDecorator):
    """Stores a Decimal as its normalized string form."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return normalize_decimal(to_decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))


# ============================================================================
# ACCOUNT, LIFE STOCKS, INDEX
# ============================================================================

class UserModel(Base):
    """The cash account. One row per user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String, nullable=False, unique=True)
    cash_balance = Column(DecimalString, nullable=False, default=ZERO)
    created_at = Column(DateTime, nullable=True)


class StockModel(Base):
    __tablename__ = "stocks"
    __table_args__ = (UniqueConstraint("user_id", "name"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    color = Column(String, nullable=True)
    weight = Column(DecimalString, nullable=False)
    current_score = Column(DecimalString, nullable=False)
    last_activity_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=True)

    def to_domain(self) -> LifeStock:
        return LifeStock(
            id=self.id,
            name=self.name,
            current_score=self.current_score,
            weight=self.weight,
            category=self.category,
            color=self.color,
        )


class IndexHistoryModel(Base):
    __tablename__ = "index_history"
    __table_args__ = (UniqueConstraint("user_id", "date"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    index_value = Column(DecimalString, nullable=False)
    daily_change = Column(DecimalString, nullable=False, default=ZERO)
    change_percent = Column(DecimalString, nullable=False, default=ZERO)
    created_at = Column(DateTime, nullable=True)

    def to_domain(self) -> IndexPoint:
        return IndexPoint(
            on=self.date,
            value=self.index_value,
            daily_change=self.daily_change,
            change_percent=self.change_percent,
        )


# ============================================================================
# EQUITIES
# ============================================================================

class HoldingModel(Base):
    __tablename__ = "holdings"
    __table_args__ = (UniqueConstraint("user_id", "stock_id"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    stock_id = Column(Integer, nullable=False)
    quantity = Column(DecimalString, nullable=False)
    avg_buy_price = Column(DecimalString, nullable=False)

    def to_position(self) -> Position:
        key = PositionKey(INSTRUMENT_EQUITY, self.stock_id, POSITION_LONG)
        return Position(key=key, quantity=self.quantity, avg_price=self.avg_buy_price)

    def update_from(self, position: Position) -> None:
        self.quantity = position.quantity
        self.avg_buy_price = position.avg_price

    @classmethod
    def from_position(cls, user_id: int, position: Position) -> "HoldingModel":
        return cls(
            user_id=user_id,
            stock_id=position.key.ref_id,
            quantity=position.quantity,
            avg_buy_price=position.avg_price,
        )

    @classmethod
    def matching(cls, query: Query, user_id: int, key: PositionKey) -> Query:
        return query.filter(cls.user_id == user_id, cls.stock_id == key.ref_id)


class TransactionModel(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    stock_id = Column(Integer, nullable=True)
    type = Column(String, nullable=False)  # buy | sell
    quantity = Column(DecimalString, nullable=False)
    price = Column(DecimalString, nullable=False)
    brokerage_fee = Column(DecimalString, nullable=False, default=ZERO)
    realized_pnl = Column(DecimalString, nullable=True)
    total_amount = Column(DecimalString, nullable=False)
    transaction_date = Column(DateTime, nullable=False)

    @classmethod
    def from_record(cls, user_id: int, record: TradeRecord, timestamp: datetime) -> "TransactionModel":
        return cls(
            user_id=user_id,
            stock_id=record.ref_id,
            type=record.action,
            quantity=record.quantity,
            price=record.price,
            brokerage_fee=record.brokerage_fee,
            realized_pnl=record.realized_pnl,
            total_amount=record.total_amount,
            transaction_date=timestamp,
        )

    def to_record(self) -> TradeRecord:
        # buys store the gross cost, sells the net proceeds
        cash_delta = -self.total_amount if self.type == ACTION_BUY else self.total_amount
        return TradeRecord(
            instrument=INSTRUMENT_EQUITY,
            action=self.type,
            ref_id=self.stock_id,
            quantity=self.quantity,
            price=self.price,
            position_type=POSITION_LONG,
            brokerage_fee=self.brokerage_fee,
            total_amount=self.total_amount,
            realized_pnl=self.realized_pnl,
            cash_delta=cash_delta,
            timestamp=self.transaction_date,
            id=self.id,
        )


# ============================================================================
# OPTIONS
# ============================================================================

class OptionContractModel(Base):
    __tablename__ = "option_contracts"
    __table_args__ = (UniqueConstraint("strike_price", "expiry_date", "option_type"),)

    id = Column(Integer, primary_key=True)
    strike_price = Column(DecimalString, nullable=False)
    expiry_date = Column(DateTime, nullable=False)
    option_type = Column(String, nullable=False)  # CE | PE
    underlying_index_value_at_creation = Column(DecimalString, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def to_domain(self) -> OptionContract:
        return OptionContract(
            id=self.id,
            strike_price=self.strike_price,
            expiry_date=self.expiry_date,
            option_type=self.option_type,
            underlying_at_creation=self.underlying_index_value_at_creation,
            created_at=self.created_at,
        )

    @classmethod
    def from_domain(cls, contract: OptionContract) -> "OptionContractModel":
        return cls(
            strike_price=contract.strike_price,
            expiry_date=contract.expiry_date,
            option_type=contract.option_type,
            underlying_index_value_at_creation=contract.underlying_at_creation,
            created_at=contract.created_at,
        )


class OptionHoldingModel(Base):
    __tablename__ = "user_option_holdings"
    __table_args__ = (UniqueConstraint("user_id", "contract_id", "type"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    contract_id = Column(Integer, nullable=False)
    type = Column(String, nullable=False)  # long_ce | long_pe | short_ce | short_pe
    quantity = Column(DecimalString, nullable=False)
    avg_premium = Column(DecimalString, nullable=False)

    def to_position(self) -> Position:
        key = PositionKey(INSTRUMENT_OPTION, self.contract_id, self.type)
        return Position(key=key, quantity=self.quantity, avg_price=self.avg_premium)

    def update_from(self, position: Position) -> None:
        self.quantity = position.quantity
        self.avg_premium = position.avg_price

    @classmethod
    def from_position(cls, user_id: int, position: Position) -> "OptionHoldingModel":
        return cls(
            user_id=user_id,
            contract_id=position.key.ref_id,
            type=position.key.position_type,
            quantity=position.quantity,
            avg_premium=position.avg_price,
        )

    @classmethod
    def matching(cls, query: Query, user_id: int, key: PositionKey) -> Query:
        return query.filter(
            cls.user_id == user_id,
            cls.contract_id == key.ref_id,
            cls.type == key.position_type,
        )


class OptionTransactionModel(Base):
    __tablename__ = "option_transactions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    contract_id = Column(Integer, nullable=False)
    action = Column(String, nullable=False)
    position_type = Column(String, nullable=False)
    quantity = Column(DecimalString, nullable=False)
    premium_per_unit = Column(DecimalString, nullable=False)
    entry_premium = Column(DecimalString, nullable=True)
    cash_delta = Column(DecimalString, nullable=False)
    realized_pnl = Column(DecimalString, nullable=True)
    transaction_date = Column(DateTime, nullable=False)

    @classmethod
    def from_record(cls, user_id: int, record: TradeRecord, timestamp: datetime) -> "OptionTransactionModel":
        return cls(
            user_id=user_id,
            contract_id=record.ref_id,
            action=record.action,
            position_type=record.position_type,
            quantity=record.quantity,
            premium_per_unit=record.price,
            entry_premium=record.entry_price,
            cash_delta=record.cash_delta,
            realized_pnl=record.realized_pnl,
            transaction_date=timestamp,
        )

    def to_record(self) -> TradeRecord:
        return TradeRecord(
            instrument=INSTRUMENT_OPTION,
            action=self.action,
            ref_id=self.contract_id,
            quantity=self.quantity,
            price=self.premium_per_unit,
            position_type=self.position_type,
            total_amount=self.quantity * self.premium_per_unit,
            entry_price=self.entry_premium,
            realized_pnl=self.realized_pnl,
            cash_delta=self.cash_delta,
            timestamp=self.transaction_date,
            id=self.id,
        )


# ============================================================================
# CASH AUDIT TRAIL
# ============================================================================

class CashMovementModel(Base):
    __tablename__ = "cash_movements"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    kind = Column(String, nullable=False)
    amount = Column(DecimalString, nullable=False)
    balance_after = Column(DecimalString, nullable=False)
    reference = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)

    def to_domain(self) -> CashMovement:
        return CashMovement(
            kind=self.kind,
            amount=self.amount,
            balance_after=self.balance_after,
            reference=self.reference or "",
            created_at=self.created_at,
            id=self.id,
        )


# Row classes per instrument kind. Both position classes share the
# to_position / update_from / from_position / matching interface and both
# log classes share from_record / to_record.
POSITION_MODELS = {
    INSTRUMENT_EQUITY: HoldingModel,
    INSTRUMENT_OPTION: OptionHoldingModel,
}

LOG_MODELS = {
    INSTRUMENT_EQUITY: TransactionModel,
    INSTRUMENT_OPTION: OptionTransactionModel,
}
