"""
lifecycle_engine.py - Lifecycle Engine

Keeps a desk's option market current. Execution order each step():
1. Record the index value from the index source (when one is attached)
2. List this week's contract ladder (when an underlying is known)
3. Settle every option holding whose contract has expired

Every settlement is executed through TradingDesk.execute(), so the cash
movement log is the audit trail.
"""

from __future__ import annotations
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, List, Optional
import logging

from .core import TradeReceipt
from .index_source import IndexSource

if TYPE_CHECKING:
    from .desk import TradingDesk


logger = logging.getLogger(__name__)


class LifecycleEngine:
    """
    Periodic maintenance of a TradingDesk.

    The engine owns no schedule: call step() when the application loads or
    on a timer, or run() over a sequence of timestamps for a simulation.
    """

    def __init__(self, desk: TradingDesk, index_source: Optional[IndexSource] = None):
        """
        Initialize lifecycle engine.

        Args:
            desk: The desk to operate on
            index_source: Optional source of index values recorded at each step
        """
        self.desk = desk
        self.index_source = index_source
        self.verbose = desk.verbose

    def step(self, timestamp: Optional[datetime] = None) -> List[TradeReceipt]:
        """
        Run one maintenance pass at `timestamp` (default: the desk's current time).

        Returns:
            Receipts of the settlements executed in this pass.
        """
        timestamp = timestamp or self.desk.current_time

        if self.index_source is not None:
            value = self.index_source.value_at(timestamp)
            if value is not None:
                self.desk.record_index_value(value, on=timestamp)

        underlying = self.desk.current_underlying(timestamp)
        if underlying is not None and underlying > 0:
            created = self.desk.ensure_weekly_contracts(underlying, now=timestamp)
            if created and self.verbose:
                print(f"[LIFECYCLE] Listed {len(created)} contracts around {underlying}")

        receipts = self.desk.settle_expired(at=timestamp)
        if receipts and self.verbose:
            print(f"[LIFECYCLE] Settled {len(receipts)} expired holdings")
        logger.debug("Lifecycle step at %s: %d settlements", timestamp, len(receipts))
        return receipts

    def run(self, timestamps: Iterable[datetime]) -> List[TradeReceipt]:
        """
        Run engine through a sequence of timestamps.

        Returns:
            All settlement receipts, in execution order.
        """
        receipts: List[TradeReceipt] = []
        for timestamp in timestamps:
            receipts.extend(self.step(timestamp))
        return receipts
