"""
config.py - Runtime Settings

Settings are read from the environment (prefix LIFESTOCK_) and an optional
.env file, e.g. LIFESTOCK_INITIAL_CASH=500000 or LIFESTOCK_VERBOSE=true.
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .core import (
    DEFAULT_STORAGE_KEY,
    DEFAULT_INITIAL_CASH,
    DEFAULT_BROKERAGE_RATE,
    DEFAULT_MIN_BROKERAGE,
    DEFAULT_TIME_VALUE_FACTOR,
    DEFAULT_MIN_PREMIUM,
    DEFAULT_STRIKE_STEP,
    DEFAULT_STRIKE_LEVELS,
    DEFAULT_STOCK_PRICE_FACTOR,
    DEFAULT_STOCK_SCORE,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LIFESTOCK_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Storage
    data_dir: Path = Path("./data")
    storage_key: str = DEFAULT_STORAGE_KEY

    # Account
    initial_cash: Decimal = DEFAULT_INITIAL_CASH

    # Equity trading
    brokerage_rate: Decimal = DEFAULT_BROKERAGE_RATE
    min_brokerage: Decimal = DEFAULT_MIN_BROKERAGE
    stock_price_factor: Decimal = DEFAULT_STOCK_PRICE_FACTOR
    default_stock_score: Decimal = DEFAULT_STOCK_SCORE

    # Options
    time_value_factor: Decimal = DEFAULT_TIME_VALUE_FACTOR
    min_premium: Decimal = DEFAULT_MIN_PREMIUM
    strike_step: Decimal = DEFAULT_STRIKE_STEP
    strike_levels: int = DEFAULT_STRIKE_LEVELS

    # Output
    verbose: bool = False

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()
