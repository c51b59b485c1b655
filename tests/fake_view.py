"""
fake_view.py - Test Helper for DeskView

Provides a minimal DeskView implementation for testing the pure trade
computations without a database, plus helpers to build option contracts
inside one fixed contract week.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from lifestock import LifeStock, NotFoundError, OptionContract, Position, PositionKey
from lifestock.contracts import week_bounds
from lifestock.core import DateLike, to_decimal
from lifestock.index_source import TimeSeriesIndexSource


# Wednesday in the week of Monday 2025-01-06 .. Sunday 2025-01-12.
NOW = datetime(2025, 1, 8, 12, 0, 0)
MONDAY, SUNDAY = week_bounds(NOW)


def make_contract(
    contract_id: int,
    strike,
    option_type: str,
    underlying="9800",
    created_at: datetime = MONDAY,
    expiry: datetime = SUNDAY,
) -> OptionContract:
    """Create a persisted-looking contract for FakeView tests."""
    return OptionContract(
        id=contract_id,
        strike_price=Decimal(str(strike)),
        expiry_date=expiry,
        option_type=option_type,
        underlying_at_creation=Decimal(str(underlying)),
        created_at=created_at,
    )


def find_contract(contracts: Iterable[OptionContract], strike, option_type: str) -> OptionContract:
    """Pick the contract with the given strike and type out of a ladder."""
    strike = Decimal(str(strike))
    for contract in contracts:
        if contract.strike_price == strike and contract.option_type == option_type:
            return contract
    raise LookupError(f"No {strike} {option_type} contract in ladder")


class FakeView:
    """
    Minimal DeskView implementation for testing computation functions.

    Example:
        view = FakeView(
            cash=10_000_000,
            stocks=[LifeStock(1, "Health", Decimal("1000"))],
            positions=[Position(equity_key(1), Decimal("10"), Decimal("100"))],
            time=datetime(2025, 1, 8),
        )
    """

    def __init__(
        self,
        cash=Decimal("10000000"),
        stocks: Iterable[LifeStock] = (),
        contracts: Iterable[OptionContract] = (),
        positions: Iterable[Position] = (),
        index_points: Iterable[Tuple[DateLike, Decimal]] = (),
        time: Optional[datetime] = None,
    ):
        self._cash = to_decimal(cash)
        self._stocks: Dict[int, LifeStock] = {s.id: s for s in stocks}
        self._contracts: Dict[int, OptionContract] = {c.id: c for c in contracts}
        self._positions: Dict[PositionKey, Position] = {p.key: p for p in positions}
        self._index = TimeSeriesIndexSource(list(index_points))
        self._time = time or datetime.now()

    @property
    def current_time(self) -> datetime:
        return self._time

    def get_cash(self) -> Decimal:
        return self._cash

    def get_position(self, key: PositionKey) -> Optional[Position]:
        return self._positions.get(key)

    def get_positions(self, instrument: str) -> List[Position]:
        return [p for p in self._positions.values() if p.key.instrument == instrument]

    def get_contract(self, contract_id: int) -> OptionContract:
        if contract_id not in self._contracts:
            raise NotFoundError(f"Option contract {contract_id} not found")
        return self._contracts[contract_id]

    def list_contracts(self) -> List[OptionContract]:
        return list(self._contracts.values())

    def get_life_stock(self, stock_id: int) -> LifeStock:
        if stock_id not in self._stocks:
            raise NotFoundError(f"Life stock {stock_id} not found")
        return self._stocks[stock_id]

    def latest_index_value(self, at: Optional[DateLike] = None) -> Optional[Decimal]:
        return self._index.value_at(at or self._time)
