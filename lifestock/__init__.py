"""
lifestock - Life Stock Trading Ledger

A paper-trading simulator over a user's "life stocks": life areas whose
scores trade like equities, with weekly cash-settled options on the
weighted life index.

Usage:
    from lifestock import TradingDesk, StoreHandle, MemoryBlobStorage

    desk = TradingDesk(StoreHandle(MemoryBlobStorage()))
    health = desk.add_life_stock("Health", weight=2)
    desk.buy_stock(health.id, 10)

    desk.record_index_value()
    contracts = desk.ensure_weekly_contracts()
    desk.write_option(contracts[0].id, 1)
"""

__version__ = "1.0.0"

# Core types
from .core import (
    DeskView,
    LifeStock,
    OptionContract,
    IndexPoint,
    PositionKey,
    Position,
    PositionChange,
    TradeRecord,
    CashMovement,
    PendingTrade,
    TradeReceipt,
    empty_pending_trade,
    LifeStockError,
    ValidationError,
    InsufficientFundsError,
    InsufficientHoldingError,
    NotFoundError,
    StaleStateError,
    MigrationError,
    INSTRUMENT_EQUITY,
    INSTRUMENT_OPTION,
    OPTION_TYPE_CALL,
    OPTION_TYPE_PUT,
    POSITION_LONG,
    POSITION_LONG_CE,
    POSITION_LONG_PE,
    POSITION_SHORT_CE,
    POSITION_SHORT_PE,
    ACTION_BUY,
    ACTION_SELL,
    ACTION_DEPOSIT,
    ACTION_BUY_OPTION,
    ACTION_WRITE_OPTION,
    ACTION_EXIT_OPTION,
    ACTION_SETTLE_OPTION,
)

# Configuration
from .config import Settings, get_settings

# Persistence
from .store import (
    BlobStorage,
    MemoryBlobStorage,
    FileBlobStorage,
    Store,
    StoreHandle,
    open_store,
)
from .migrations import Migration, MIGRATIONS, apply_migrations

# Pricing, index and contracts
from .pricing import option_premium, intrinsic_value, moneyness
from .index_source import (
    compute_index_value,
    IndexSource,
    StaticIndexSource,
    TimeSeriesIndexSource,
)
from .contracts import week_bounds, ladder_strikes, generate_ladder

# Positions and trade computations
from .positions import accumulate, reduce
from .instruments import (
    brokerage,
    compute_buy,
    compute_sell,
    compute_deposit,
    compute_option_buy,
    compute_option_write,
    compute_option_exit,
    compute_option_settlement,
)

# Valuation
from .portfolio import PortfolioSummary, PositionLine, summarize

# Desk and lifecycle
from .desk import TradingDesk, open_desk
from .lifecycle_engine import LifecycleEngine

__all__ = [
    # Core
    'DeskView', 'LifeStock', 'OptionContract', 'IndexPoint', 'PositionKey',
    'Position', 'PositionChange', 'TradeRecord', 'CashMovement',
    'PendingTrade', 'TradeReceipt', 'empty_pending_trade',
    'LifeStockError', 'ValidationError', 'InsufficientFundsError',
    'InsufficientHoldingError', 'NotFoundError', 'StaleStateError', 'MigrationError',
    'INSTRUMENT_EQUITY', 'INSTRUMENT_OPTION', 'OPTION_TYPE_CALL', 'OPTION_TYPE_PUT',
    'POSITION_LONG', 'POSITION_LONG_CE', 'POSITION_LONG_PE',
    'POSITION_SHORT_CE', 'POSITION_SHORT_PE',
    'ACTION_BUY', 'ACTION_SELL', 'ACTION_DEPOSIT', 'ACTION_BUY_OPTION',
    'ACTION_WRITE_OPTION', 'ACTION_EXIT_OPTION', 'ACTION_SETTLE_OPTION',
    # Configuration
    'Settings', 'get_settings',
    # Persistence
    'BlobStorage', 'MemoryBlobStorage', 'FileBlobStorage', 'Store', 'StoreHandle',
    'open_store', 'Migration', 'MIGRATIONS', 'apply_migrations',
    # Pricing, index and contracts
    'option_premium', 'intrinsic_value', 'moneyness',
    'compute_index_value', 'IndexSource', 'StaticIndexSource', 'TimeSeriesIndexSource',
    'week_bounds', 'ladder_strikes', 'generate_ladder',
    # Positions and trade computations
    'accumulate', 'reduce', 'brokerage',
    'compute_buy', 'compute_sell', 'compute_deposit',
    'compute_option_buy', 'compute_option_write', 'compute_option_exit',
    'compute_option_settlement',
    # Valuation
    'PortfolioSummary', 'PositionLine', 'summarize',
    # Desk and lifecycle
    'TradingDesk', 'open_desk', 'LifecycleEngine',
]
