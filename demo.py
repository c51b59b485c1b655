#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the LifeStock Desk Step by Step

A pedagogical walk through one trading week. Each step builds on the
previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation   - The cash account, life stocks, the life index
  4-5:  Equities     - Buying and selling with brokerage, rejected trades
  6-8:  Options      - The weekly ladder, premiums, writing against collateral
  9-10: Expiry       - Lifecycle engine, cash settlement, the audit trail

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from lifestock import (
    InsufficientFundsError,
    InsufficientHoldingError,
    LifecycleEngine,
    MemoryBlobStorage,
    Settings,
    StoreHandle,
    TimeSeriesIndexSource,
    TradingDesk,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    # Monday of the demo week
    start_time: datetime = datetime(2025, 1, 6, 9, 0, 0)

    # Life stocks: (name, weight, score)
    stocks: tuple = (
        ("Health", 2, 1000),
        ("Career", 3, 800),
        ("Mind", 1, 600),
    )

    # Index closes the week lower than it opened
    closing_scores: dict = field(default_factory=lambda: {"Health": 900, "Career": 760, "Mind": 560})

    shares_to_buy: int = 50
    options_to_write: int = 3


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


class DemoClock:
    """Clock the tutorial moves forward by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_open_desk(clock: DemoClock) -> TradingDesk:
    step_header(1, "The Cash Account",
        "A desk starts with one cash account and an opening balance.")

    print(">>> desk = TradingDesk(StoreHandle(MemoryBlobStorage()), clock=clock, verbose=True)")
    desk = TradingDesk(
        StoreHandle(MemoryBlobStorage()),
        settings=Settings(_env_file=None),
        clock=clock,
        verbose=True,
    )

    section_header("Initial State")
    print(f"Cash balance:    {desk.cash_balance()}")
    print(f"Life stocks:     {desk.list_life_stocks()}")
    print(f"Cash movements:  {[m.kind for m in desk.cash_movements()]}")

    wait_for_enter()
    return desk


def step_02_life_stocks(desk: TradingDesk):
    step_header(2, "Life Stocks",
        "Each life area is a stock whose price is its score x 0.1.")

    for name, weight, score in CONFIG.stocks:
        desk.add_life_stock(name, weight=weight, score=score)

    section_header("Prices")
    for stock in desk.list_life_stocks():
        print(f"  {stock.name:8s} score {stock.current_score:>6}  price {stock.price()}")

    wait_for_enter()


def step_03_life_index(desk: TradingDesk):
    step_header(3, "The Life Index",
        "The index is the weight-averaged score of all life stocks.")

    point = desk.record_index_value()
    print(">>> desk.record_index_value()")
    print(f"Index on {point.on}: {point.value}")

    wait_for_enter()


# ============================================================================
# PHASE 2: EQUITIES
# ============================================================================

def step_04_trade_stock(desk: TradingDesk):
    step_header(4, "Buying and Selling",
        "Every leg pays brokerage of max(20, 0.03% of notional).")

    health = desk.list_life_stocks()[0]
    desk.buy_stock(health.id, CONFIG.shares_to_buy)
    desk.update_score(health.id, 1100)
    desk.sell_stock(health.id, CONFIG.shares_to_buy // 2)

    section_header("Holding")
    for holding in desk.holdings():
        print(f"  {holding.quantity} @ avg {holding.avg_price}")
    print(f"  realized on the sale: {desk.transactions()[-1].realized_pnl}")

    wait_for_enter()


def step_05_rejections(desk: TradingDesk):
    step_header(5, "Rejected Trades",
        "A trade that cannot be covered changes nothing at all.")

    health = desk.list_life_stocks()[0]
    before = desk.cash_balance()
    try:
        desk.sell_stock(health.id, 10_000)
    except InsufficientHoldingError:
        pass
    try:
        desk.buy_stock(health.id, 10_000_000)
    except InsufficientFundsError:
        pass
    print(f"Cash before: {before}   after: {desk.cash_balance()}")

    wait_for_enter()


# ============================================================================
# PHASE 3: OPTIONS
# ============================================================================

def step_06_weekly_ladder(desk: TradingDesk):
    step_header(6, "The Weekly Ladder",
        "Five strikes around the index, CE and PE, expiring Sunday night.")

    contracts = desk.ensure_weekly_contracts()
    for contract in contracts:
        print(f"  #{contract.id:<3} {contract.label:10s} expires {contract.expiry_date}")
    print(f"\nSecond call lists nothing new: {desk.ensure_weekly_contracts()}")

    wait_for_enter()


def step_07_premiums(desk: TradingDesk):
    step_header(7, "Premiums",
        "Premium = intrinsic value + 10% of the index, decaying to expiry.")

    for contract in desk.list_contracts():
        print(f"  {contract.label:10s} {desk.quote_option(contract.id)}")

    wait_for_enter()


def step_08_write_option(desk: TradingDesk, clock: DemoClock):
    step_header(8, "Writing an Option",
        "The writer locks strike x quantity as collateral and receives the premium.")

    clock.now += timedelta(days=2)
    at_the_money = [c for c in desk.list_contracts() if c.option_type == "PE"][2]
    desk.write_option(at_the_money.id, CONFIG.options_to_write)

    summary = desk.portfolio()
    section_header("Portfolio")
    print(f"Cash:                {summary.cash}")
    print(f"Reserved collateral: {summary.reserved_collateral}")
    print(f"Option value:        {summary.option_value}")
    print(f"Total value:         {summary.total_value}")

    wait_for_enter()


# ============================================================================
# PHASE 4: EXPIRY
# ============================================================================

def step_09_lifecycle(desk: TradingDesk, clock: DemoClock):
    step_header(9, "Expiry and Settlement",
        "After Sunday the lifecycle engine settles every expired holding in cash.")

    for stock in desk.list_life_stocks():
        desk.update_score(stock.id, CONFIG.closing_scores[stock.name])
    friday = CONFIG.start_time + timedelta(days=4)
    source = TimeSeriesIndexSource([(friday, desk.index_value())])

    engine = LifecycleEngine(desk, source)
    next_monday = CONFIG.start_time + timedelta(days=7)
    clock.now = next_monday
    receipts = engine.run([friday, next_monday])
    print(f"\nSettled {len(receipts)} holdings; open options: {desk.option_holdings()}")

    wait_for_enter()


def step_10_audit_trail(desk: TradingDesk):
    step_header(10, "The Audit Trail",
        "Every change to cash is a movement; their sum is the balance.")

    total = Decimal("0")
    for movement in desk.cash_movements():
        total += movement.amount
        print(f"  {movement.kind:16s} {movement.amount:>14}  -> {movement.balance_after}")
    print(f"\nSum of movements: {total}")
    print(f"Cash balance:     {desk.cash_balance()}")


def main():
    clock = DemoClock(CONFIG.start_time)
    desk = step_01_open_desk(clock)
    step_02_life_stocks(desk)
    step_03_life_index(desk)
    step_04_trade_stock(desk)
    step_05_rejections(desk)
    step_06_weekly_ladder(desk)
    step_07_premiums(desk)
    step_08_write_option(desk, clock)
    step_09_lifecycle(desk, clock)
    step_10_audit_trail(desk)


if __name__ == "__main__":
    main()
