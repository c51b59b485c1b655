"""
desk.py - Stateful Trading Desk

The TradingDesk is the central state manager of the LifeStock simulator.
It is the only module that writes to the database, ensuring controlled and
auditable changes.

Key responsibilities:
    - Implements the DeskView protocol for read-only access by pure functions
    - Executes pending trades atomically (one database transaction each)
    - Rejects stale trades whose "before" state no longer matches the database
    - Records every cash change in the cash movement audit trail
    - Persists the database blob after every change
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional
import logging

from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .contracts import generate_ladder, missing_contracts
from .core import (
    # Types
    CashMovement, DateLike, IndexPoint, LifeStock, OptionContract,
    PendingTrade, Position, PositionKey, TradeReceipt, TradeRecord,
    # Constants
    BOX_WIDTH, DEFAULT_USER_ID, INSTRUMENT_EQUITY, INSTRUMENT_OPTION, ACTION_OPENING_BALANCE,
    ZERO,
    # Exceptions
    LifeStockError, NotFoundError, StaleStateError, ValidationError,
    # Helpers
    as_date, box_pad, require_non_negative, require_positive,
)
from .index_source import compute_index_value
from .instruments.equity import compute_buy, compute_deposit, compute_sell
from .instruments.option import (
    compute_option_buy, compute_option_exit, compute_option_settlement,
    compute_option_write, current_premium, expired_positions,
)
from .models import (
    CashMovementModel, IndexHistoryModel, OptionContractModel, OptionHoldingModel,
    OptionTransactionModel, StockModel, TransactionModel, UserModel,
    LOG_MODELS, POSITION_MODELS,
)
from .portfolio import PortfolioSummary, reserved_collateral, summarize
from .lifecycle_engine import LifecycleEngine
from .store import BlobStorage, Store, StoreHandle, open_store


logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


class TradingDesk:
    """
    One user's cash account, life stocks, holdings and logs.

    Implements the DeskView protocol, allowing the desk to be passed to pure
    functions that access only read-only methods. Every public operation
    computes a PendingTrade with a pure function, then executes it.

    Thread Safety:
        Not thread-safe. The underlying store shares one SQLite connection.

    Example:
        desk = TradingDesk(StoreHandle(MemoryBlobStorage()))
        health = desk.add_life_stock("Health", weight=2)
        desk.buy_stock(health.id, 10)
        desk.portfolio().total_value
    """

    def __init__(
        self,
        handle: StoreHandle,
        user_id: int = DEFAULT_USER_ID,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        verbose: Optional[bool] = None,
        autopersist: bool = True,
    ):
        """
        Create a desk.

        Args:
            handle: Store handle shared by every desk on the same database
            user_id: Account the desk trades for
            settings: Runtime settings (default: get_settings())
            clock: Callable returning the current time (default: datetime.now)
            verbose: Print receipts and rejections (default: settings.verbose)
            autopersist: Save the database blob after every change
        """
        self.handle = handle
        self.user_id = user_id
        self.settings = settings or get_settings()
        self.clock = clock or datetime.now
        self.verbose = self.settings.verbose if verbose is None else verbose
        self.autopersist = autopersist

    @property
    def store(self) -> Store:
        return self.handle.get()

    # ========================================================================
    # DeskView
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        return self.clock()

    def get_cash(self) -> Decimal:
        with self.store.session() as session:
            return self._account(session).cash_balance

    def get_position(self, key: PositionKey) -> Optional[Position]:
        with self.store.session() as session:
            row = self._position_row(session, key)
            return row.to_position() if row is not None else None

    def get_positions(self, instrument: str) -> List[Position]:
        model = POSITION_MODELS.get(instrument)
        if model is None:
            raise ValidationError(f"unknown instrument {instrument!r}")
        with self.store.session() as session:
            rows = (
                session.query(model)
                .filter(model.user_id == self.user_id)
                .order_by(model.id)
                .all()
            )
            return [row.to_position() for row in rows]

    def get_contract(self, contract_id: int) -> OptionContract:
        with self.store.session() as session:
            row = session.get(OptionContractModel, contract_id)
            if row is None:
                raise NotFoundError(f"Option contract {contract_id} not found")
            return row.to_domain()

    def list_contracts(self, expiry: Optional[datetime] = None) -> List[OptionContract]:
        with self.store.session() as session:
            query = session.query(OptionContractModel)
            if expiry is not None:
                query = query.filter(OptionContractModel.expiry_date == expiry)
            contracts = [row.to_domain() for row in query.all()]
        return sorted(contracts, key=lambda c: (c.expiry_date, c.strike_price, c.option_type))

    def get_life_stock(self, stock_id: int) -> LifeStock:
        with self.store.session() as session:
            return self._stock_row(session, stock_id).to_domain()

    def latest_index_value(self, at: Optional[DateLike] = None) -> Optional[Decimal]:
        on = as_date(at or self.current_time)
        with self.store.session() as session:
            row = (
                session.query(IndexHistoryModel)
                .filter(IndexHistoryModel.user_id == self.user_id, IndexHistoryModel.date <= on)
                .order_by(IndexHistoryModel.date.desc())
                .first()
            )
            return row.index_value if row is not None else None

    # ========================================================================
    # Row helpers (callers own the session)
    # ========================================================================

    def _account(self, session: Session) -> UserModel:
        account = session.get(UserModel, self.user_id)
        if account is None:
            opening = require_non_negative(self.settings.initial_cash, "initial cash")
            now = self.current_time
            account = UserModel(
                id=self.user_id,
                username=f"user{self.user_id}",
                cash_balance=opening,
                created_at=now,
            )
            session.add(account)
            session.add(CashMovementModel(
                user_id=self.user_id,
                kind=ACTION_OPENING_BALANCE,
                amount=opening,
                balance_after=opening,
                reference="Opening balance",
                created_at=now,
            ))
            session.flush()
            logger.info("Created cash account for user %d with %s", self.user_id, opening)
        return account

    def _position_row(self, session: Session, key: PositionKey):
        model = POSITION_MODELS[key.instrument]
        return model.matching(session.query(model), self.user_id, key).first()

    def _stock_row(self, session: Session, stock_id: int) -> StockModel:
        row = session.get(StockModel, stock_id)
        if row is None or row.user_id != self.user_id:
            raise NotFoundError(f"Life stock {stock_id} not found")
        return row

    # ========================================================================
    # Execution
    # ========================================================================

    def execute(self, pending: PendingTrade) -> Optional[TradeReceipt]:
        """
        Execute a PendingTrade atomically.

        The cash balance and every position named in the trade are re-read
        inside one session and compared with the state the trade was computed
        from. Any difference raises StaleStateError and nothing is written.

        Args:
            pending: PendingTrade to execute

        Returns:
            TradeReceipt of the applied trade, or None for an empty trade.

        Raises:
            StaleStateError: If the desk changed since the trade was computed.
        """
        if pending.is_empty():
            return None

        try:
            with self.store.session() as session:
                account = self._account(session)
                cash_before = account.cash_balance
                if cash_before != pending.expected_cash:
                    raise StaleStateError(
                        f"Cash changed since the trade was computed: "
                        f"expected {pending.expected_cash}, found {cash_before}"
                    )

                for change in pending.position_changes:
                    row = self._position_row(session, change.key)
                    current = row.to_position() if row is not None else None
                    if current != change.old:
                        raise StaleStateError(
                            f"Position {change.key.instrument}:{change.key.ref_id}:"
                            f"{change.key.position_type} changed since the trade was computed"
                        )
                    model = POSITION_MODELS[change.key.instrument]
                    if change.new is None:
                        session.delete(row)
                    elif row is None:
                        session.add(model.from_position(self.user_id, change.new))
                    else:
                        row.update_from(change.new)

                cash_after = cash_before + pending.cash_delta
                account.cash_balance = cash_after
                movement = CashMovementModel(
                    user_id=self.user_id,
                    kind=pending.action,
                    amount=pending.cash_delta,
                    balance_after=cash_after,
                    reference=pending.description,
                    created_at=pending.timestamp,
                )
                session.add(movement)
                for record in pending.records:
                    session.add(LOG_MODELS[record.instrument].from_record(
                        self.user_id, record, pending.timestamp
                    ))
                session.flush()
                movement_id = movement.id
        except StaleStateError as exc:
            self._reject(exc)
            raise

        receipt = TradeReceipt(
            action=pending.action,
            description=pending.description,
            cash_before=cash_before,
            cash_after=cash_after,
            position_changes=pending.position_changes,
            records=pending.records,
            timestamp=pending.timestamp,
            movement_id=movement_id,
        )
        self._persist()
        if self.verbose:
            self._print_receipt(receipt, "APPLIED", "✓")
        return receipt

    def _submit(self, compute: Callable[..., PendingTrade], *args, **kwargs) -> Optional[TradeReceipt]:
        try:
            pending = compute(self, *args, **kwargs)
        except LifeStockError as exc:
            self._reject(exc)
            raise
        return self.execute(pending)

    def _reject(self, exc: LifeStockError) -> None:
        logger.debug("Rejected: %s", exc)
        if self.verbose:
            print(f"✗ REJECTED: {exc}")

    def _persist(self) -> None:
        if self.autopersist:
            self.store.persist()

    def _print_receipt(self, receipt: TradeReceipt, result: str, icon: str) -> None:
        lines = repr(receipt).split('\n')
        bar = "─" * BOX_WIDTH
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{box_pad(' ' + icon + ' ' + result)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    # ========================================================================
    # Life stocks and the index
    # ========================================================================

    def add_life_stock(
        self,
        name: str,
        weight=1,
        category: Optional[str] = None,
        color: Optional[str] = None,
        score=None,
    ) -> LifeStock:
        """Create a life stock. Names are unique per user."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Life stock name must not be empty")
        weight = require_positive(weight, "weight")
        score = self.settings.default_stock_score if score is None else score
        score = require_non_negative(score, "score")

        now = self.current_time
        with self.store.session() as session:
            self._account(session)
            duplicate = (
                session.query(StockModel)
                .filter(StockModel.user_id == self.user_id, StockModel.name == name)
                .first()
            )
            if duplicate is not None:
                raise ValidationError(f"Life stock {name!r} already exists")
            row = StockModel(
                user_id=self.user_id,
                name=name,
                category=category,
                color=color,
                weight=weight,
                current_score=score,
                last_activity_at=now,
                created_at=now,
            )
            session.add(row)
            session.flush()
            stock = row.to_domain()
        self._persist()
        if self.verbose:
            print(f"📝 Added life stock: {stock.name} (score {stock.current_score}, weight {stock.weight})")
        return stock

    def update_score(self, stock_id: int, score) -> LifeStock:
        score = require_non_negative(score, "score")
        with self.store.session() as session:
            row = self._stock_row(session, stock_id)
            row.current_score = score
            row.last_activity_at = self.current_time
            stock = row.to_domain()
        self._persist()
        return stock

    def list_life_stocks(self) -> List[LifeStock]:
        with self.store.session() as session:
            rows = (
                session.query(StockModel)
                .filter(StockModel.user_id == self.user_id)
                .order_by(StockModel.id)
                .all()
            )
            return [row.to_domain() for row in rows]

    def index_value(self) -> Optional[Decimal]:
        """The life index computed from the current life stock scores."""
        return compute_index_value(self.list_life_stocks())

    def current_underlying(self, at: Optional[DateLike] = None) -> Optional[Decimal]:
        """Latest recorded index value, or the computed index when none is recorded."""
        value = self.latest_index_value(at)
        return value if value is not None else self.index_value()

    def record_index_value(self, value=None, on: Optional[DateLike] = None) -> IndexPoint:
        """
        Record the index value for a day, replacing any value already recorded that day.

        The daily change is measured against the latest earlier day (no
        change when there is none).

        Raises:
            NotFoundError: If value is omitted and there are no weighted life stocks.
        """
        if value is None:
            value = self.index_value()
            if value is None:
                raise NotFoundError("No life stocks to compute the index from")
        value = require_non_negative(value, "index value")
        day = as_date(on or self.current_time)

        with self.store.session() as session:
            previous = (
                session.query(IndexHistoryModel)
                .filter(IndexHistoryModel.user_id == self.user_id, IndexHistoryModel.date < day)
                .order_by(IndexHistoryModel.date.desc())
                .first()
            )
            previous_value = previous.index_value if previous is not None else value
            daily_change = value - previous_value
            change_percent = daily_change / previous_value * HUNDRED if previous_value else ZERO

            row = (
                session.query(IndexHistoryModel)
                .filter(IndexHistoryModel.user_id == self.user_id, IndexHistoryModel.date == day)
                .first()
            )
            if row is None:
                row = IndexHistoryModel(user_id=self.user_id, date=day, created_at=self.current_time)
                session.add(row)
            row.index_value = value
            row.daily_change = daily_change
            row.change_percent = change_percent
            session.flush()
            point = row.to_domain()
        self._persist()
        logger.debug("Recorded index %s for %s", value, day)
        return point

    def index_history(self, limit: Optional[int] = None) -> List[IndexPoint]:
        """Recorded index values, oldest first (the most recent `limit` when given)."""
        with self.store.session() as session:
            query = (
                session.query(IndexHistoryModel)
                .filter(IndexHistoryModel.user_id == self.user_id)
                .order_by(IndexHistoryModel.date.desc())
            )
            if limit is not None:
                query = query.limit(limit)
            points = [row.to_domain() for row in query.all()]
        return list(reversed(points))

    # ========================================================================
    # Equities
    # ========================================================================

    def _equity_kwargs(self) -> dict:
        return dict(
            brokerage_rate=self.settings.brokerage_rate,
            min_brokerage=self.settings.min_brokerage,
            price_factor=self.settings.stock_price_factor,
        )

    def buy_stock(self, stock_id: int, quantity, price=None) -> TradeReceipt:
        return self._submit(compute_buy, stock_id, quantity, price, **self._equity_kwargs())

    def sell_stock(self, stock_id: int, quantity, price=None) -> TradeReceipt:
        return self._submit(compute_sell, stock_id, quantity, price, **self._equity_kwargs())

    def add_funds(self, amount) -> TradeReceipt:
        return self._submit(compute_deposit, amount)

    # ========================================================================
    # Options
    # ========================================================================

    def _option_kwargs(self) -> dict:
        return dict(
            time_value_factor=self.settings.time_value_factor,
            min_premium=self.settings.min_premium,
        )

    def ensure_weekly_contracts(self, underlying=None, now: Optional[datetime] = None) -> List[OptionContract]:
        """
        Make sure this week's contract ladder exists.

        Only contracts whose (strike, expiry, type) is not listed yet are
        inserted, so repeated calls are harmless.

        Args:
            underlying: Index value to centre the ladder on (default: current_underlying())
            now: Any time in the target week (default: current_time)

        Returns:
            The newly inserted contracts.

        Raises:
            NotFoundError: If no underlying is given and none can be determined.
        """
        now = now or self.current_time
        if underlying is None:
            underlying = self.current_underlying(now)
            if underlying is None:
                raise NotFoundError("No index value available to build the weekly ladder")
        ladder = generate_ladder(
            underlying, now, step=self.settings.strike_step, levels=self.settings.strike_levels
        )
        if not ladder:
            return []

        with self.store.session() as session:
            existing = (
                session.query(OptionContractModel)
                .filter(OptionContractModel.expiry_date == ladder[0].expiry_date)
                .all()
            )
            rows = [
                OptionContractModel.from_domain(contract)
                for contract in missing_contracts(ladder, [row.to_domain() for row in existing])
            ]
            session.add_all(rows)
            session.flush()
            created = [row.to_domain() for row in rows]

        if created:
            self._persist()
            logger.info("Listed %d contracts expiring %s", len(created), ladder[0].expiry_date)
        return created

    def quote_option(self, contract_id: int) -> Decimal:
        """Current model premium of a contract."""
        return current_premium(self, self.get_contract(contract_id), None, **self._option_kwargs())

    def buy_option(self, contract_id: int, quantity, premium=None) -> TradeReceipt:
        return self._submit(compute_option_buy, contract_id, quantity, premium, **self._option_kwargs())

    def write_option(self, contract_id: int, quantity, premium=None) -> TradeReceipt:
        return self._submit(compute_option_write, contract_id, quantity, premium, **self._option_kwargs())

    def exit_option(self, contract_id: int, position_type: str, quantity) -> TradeReceipt:
        return self._submit(compute_option_exit, contract_id, position_type, quantity, **self._option_kwargs())

    def settle_expired(self, at: Optional[datetime] = None) -> List[TradeReceipt]:
        """
        Cash-settle every option holding whose contract expired before `at`.

        Each holding is computed and executed on its own, so every settlement
        sees the cash left by the previous one.
        """
        at = at or self.current_time
        receipts = []
        for position in expired_positions(self, at):
            receipt = self.execute(compute_option_settlement(self, position.key, at))
            if receipt is not None:
                receipts.append(receipt)
        if receipts:
            logger.info("Settled %d expired option holdings", len(receipts))
        return receipts

    def delete_strike(self, strike, expiry: Optional[datetime] = None) -> int:
        """
        Delete every contract at a strike (optionally only one expiry).

        Returns:
            Number of contracts deleted.

        Raises:
            NotFoundError: If no contract matches.
            ValidationError: If any holding still references a matching contract.
        """
        strike = require_positive(strike, "strike")
        with self.store.session() as session:
            query = session.query(OptionContractModel).filter(OptionContractModel.strike_price == strike)
            if expiry is not None:
                query = query.filter(OptionContractModel.expiry_date == expiry)
            contracts = query.all()
            if not contracts:
                raise NotFoundError(f"No contracts at strike {strike}")
            ids = [contract.id for contract in contracts]
            open_holdings = (
                session.query(OptionHoldingModel)
                .filter(OptionHoldingModel.contract_id.in_(ids))
                .count()
            )
            if open_holdings:
                raise ValidationError(
                    f"Cannot delete strike {strike}: {open_holdings} open holdings reference it"
                )
            for contract in contracts:
                session.delete(contract)
        self._persist()
        logger.info("Deleted %d contracts at strike %s", len(ids), strike)
        return len(ids)

    # ========================================================================
    # Reporting
    # ========================================================================

    def cash_balance(self) -> Decimal:
        return self.get_cash()

    def holdings(self) -> List[Position]:
        return self.get_positions(INSTRUMENT_EQUITY)

    def option_holdings(self) -> List[Position]:
        return self.get_positions(INSTRUMENT_OPTION)

    def transactions(self) -> List[TradeRecord]:
        with self.store.session() as session:
            rows = (
                session.query(TransactionModel)
                .filter(TransactionModel.user_id == self.user_id)
                .order_by(TransactionModel.id)
                .all()
            )
            return [row.to_record() for row in rows]

    def option_transactions(self) -> List[TradeRecord]:
        with self.store.session() as session:
            rows = (
                session.query(OptionTransactionModel)
                .filter(OptionTransactionModel.user_id == self.user_id)
                .order_by(OptionTransactionModel.id)
                .all()
            )
            return [row.to_record() for row in rows]

    def cash_movements(self) -> List[CashMovement]:
        with self.store.session() as session:
            rows = (
                session.query(CashMovementModel)
                .filter(CashMovementModel.user_id == self.user_id)
                .order_by(CashMovementModel.id)
                .all()
            )
            return [row.to_domain() for row in rows]

    def reserved_collateral(self) -> Decimal:
        return reserved_collateral(self)

    def portfolio(self) -> PortfolioSummary:
        return summarize(
            self,
            price_factor=self.settings.stock_price_factor,
            **self._option_kwargs(),
        )

    def reset(self) -> None:
        """Delete ALL data: every account, life stock, contract and log."""
        self.handle.reset()
        if self.verbose:
            print("⚠️  All data deleted")

    def __repr__(self):
        return f"TradingDesk(user={self.user_id}, store={self.handle.key!r})"


def open_desk(
    settings: Optional[Settings] = None,
    storage: Optional[BlobStorage] = None,
    user_id: int = DEFAULT_USER_ID,
    clock: Optional[Callable[[], datetime]] = None,
    verbose: Optional[bool] = None,
) -> TradingDesk:
    """
    Open a desk and run the lifecycle once.

    Uses a FileBlobStorage under settings.data_dir unless a storage backend
    is given. On load, this week's ladder is listed (when an index value is
    known) and expired option holdings are settled.
    """
    settings = settings or get_settings()
    handle = open_store(settings) if storage is None else StoreHandle(storage, settings.storage_key)
    desk = TradingDesk(handle, user_id=user_id, settings=settings, clock=clock, verbose=verbose)
    LifecycleEngine(desk).step()
    return desk
