"""
index_source.py - Life Index Aggregation and Index Sources

The life index is the weight-normalized average of the user's life stock
scores. It is the underlying of every option contract.

Functions:
- compute_index_value: aggregate life stocks into one index value

Classes:
- IndexSource: Protocol for looking up the index value at a point in time
- StaticIndexSource: Time-independent index value
- TimeSeriesIndexSource: Dated index values with point-in-time lookup
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_EVEN
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable
from bisect import bisect_right

import numpy as np

from .core import DateLike, LifeStock, as_date, to_decimal


INDEX_QUANTUM = Decimal("0.01")


def compute_index_value(stocks: Sequence[LifeStock]) -> Optional[Decimal]:
    """
    Weight-normalized average of life stock scores, rounded to 2 places.

    Returns None for an empty portfolio or when the weights sum to zero.
    """
    if not stocks:
        return None
    weights = np.array([float(stock.weight) for stock in stocks])
    scores = np.array([float(stock.current_score) for stock in stocks])
    if weights.sum() <= 0:
        return None
    value = np.average(scores, weights=weights)
    return Decimal(str(value)).quantize(INDEX_QUANTUM, rounding=ROUND_HALF_EVEN)


@runtime_checkable
class IndexSource(Protocol):
    """
    Protocol for index sources.

    An index source returns the life index value in force at a point in time,
    or None when nothing is known yet.
    """

    def value_at(self, at: DateLike) -> Optional[Decimal]:
        """Get the index value at or before `at`."""
        ...


class StaticIndexSource:
    """Index source with a single value (time-independent)."""

    def __init__(self, value):
        self.value = to_decimal(value, "index value")

    def value_at(self, at: DateLike) -> Optional[Decimal]:
        """Get the static value (`at` is ignored)."""
        return self.value

    def update_value(self, value):
        self.value = to_decimal(value, "index value")

    def __repr__(self):
        return f"StaticIndexSource({self.value})"


class TimeSeriesIndexSource:
    """
    Index source with dated values.

    Uses the most recent value dated on or before the requested day, so a
    lookup with a datetime sees every value recorded that calendar day.

    Examples:
        source = TimeSeriesIndexSource([(date(2025, 1, 6), 500), (date(2025, 1, 8), 520)])
        source.value_at(datetime(2025, 1, 7, 12))  # Decimal('500')
    """

    def __init__(self, points: Optional[List[Tuple[DateLike, Decimal]]] = None):
        self.history: List[Tuple[DateLike, Decimal]] = []
        for on, value in points or []:
            self.add_value(on, value)

    def add_value(self, on: DateLike, value):
        """Record the index value for a day, replacing an earlier value for the same day."""
        day = as_date(on)
        value = to_decimal(value, "index value")
        self.history = [(d, v) for d, v in self.history if d != day]
        self.history.append((day, value))
        self.history.sort(key=lambda x: x[0])

    def value_at(self, at: DateLike) -> Optional[Decimal]:
        """
        Get the value dated on or before `at`.

        Returns None if no value is recorded that early.
        Uses binary search for O(log n) lookup.
        """
        days = [d for d, _ in self.history]
        idx = bisect_right(days, as_date(at))
        if idx == 0:
            return None
        return self.history[idx - 1][1]

    def dates(self) -> List[date]:
        return [d for d, _ in self.history]

    def __repr__(self):
        return f"TimeSeriesIndexSource({len(self.history)} values)"
