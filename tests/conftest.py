"""
conftest.py - Shared pytest fixtures for LifeStock tests

Provides common fixtures used across unit and functional tests:
- A controllable clock fixed inside one contract week
- Settings that ignore the environment's .env file
- In-memory stores and desks (empty, with a life stock, with an option ladder)
"""

import pytest
from datetime import datetime, timedelta
from typing import List

from lifestock import (
    LifeStock,
    MemoryBlobStorage,
    OptionContract,
    Settings,
    StoreHandle,
    TradingDesk,
)
from tests.fake_view import MONDAY, NOW


class FakeClock:
    """Callable clock for TradingDesk(clock=...) that tests can move."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    """Default settings, isolated from any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def storage():
    return MemoryBlobStorage()


@pytest.fixture
def handle(storage):
    store_handle = StoreHandle(storage)
    yield store_handle
    store_handle.close()


@pytest.fixture
def desk(handle, test_settings, clock):
    """Empty desk: opening cash 10,000,000, no life stocks."""
    return TradingDesk(handle, settings=test_settings, clock=clock, verbose=False)


@pytest.fixture
def health(desk) -> LifeStock:
    """Life stock with score 1000, so its equity price is 100."""
    return desk.add_life_stock("Health", weight=2, category="body", score=1000)


@pytest.fixture
def ladder(desk) -> List[OptionContract]:
    """This week's contracts around an index of 9800 (strikes 9600..10000)."""
    desk.record_index_value(9800, on=MONDAY)
    return desk.ensure_weekly_contracts()
