"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the LifeStock trading desk.

The tests are organized by invariant:
1. test_averages.py - Weighted-average position bookkeeping
2. test_pricing_bounds.py - Brokerage, premium and ladder bounds
3. test_atomicity.py - All-or-nothing trade execution
4. test_conservation.py - Cash reconciles with the movement audit trail
5. test_idempotency.py - Repeated contract listing

These tests use hypothesis for property-based testing. Desks are built
inside each example so that no state is shared between examples.
"""

from lifestock import MemoryBlobStorage, Settings, StoreHandle, TradingDesk
from tests.fake_view import NOW


def make_desk(**kwargs) -> TradingDesk:
    """In-memory desk at a fixed time that never saves its blob."""
    return TradingDesk(
        StoreHandle(MemoryBlobStorage()),
        settings=Settings(_env_file=None, **kwargs),
        clock=lambda: NOW,
        verbose=False,
        autopersist=False,
    )
