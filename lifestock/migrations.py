"""
migrations.py - Versioned Schema Migrations

Each Migration has a version, a description, and either plain SQL statements
or an apply(connection) callable for steps that must inspect the schema first.
MIGRATIONS is ordered by version; apply_migrations() records every applied
version in the schema_version table and skips the ones already recorded.

Every step is idempotent (CREATE ... IF NOT EXISTS, add a column only when it
is missing), so a database written by an older build, or one whose version
table was lost, can be brought up to date safely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .core import MigrationError


logger = logging.getLogger(__name__)


SCHEMA_VERSION_DDL = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        description TEXT NOT NULL,
        applied_at TEXT NOT NULL
    )
"""


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    statements: Tuple[str, ...] = ()
    apply: Optional[Callable[[Connection], None]] = None

    def run(self, connection: Connection) -> None:
        for statement in self.statements:
            connection.exec_driver_sql(statement)
        if self.apply is not None:
            self.apply(connection)


# ============================================================================
# STEPS
# ============================================================================

V001_ACCOUNTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        cash_balance TEXT NOT NULL DEFAULT '0',
        created_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS stocks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        category TEXT,
        color TEXT,
        weight TEXT NOT NULL DEFAULT '1',
        current_score TEXT NOT NULL DEFAULT '500',
        last_activity_at TEXT,
        created_at TEXT,
        UNIQUE(user_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS index_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        date TEXT NOT NULL,
        index_value TEXT NOT NULL,
        daily_change TEXT NOT NULL DEFAULT '0',
        change_percent TEXT NOT NULL DEFAULT '0',
        created_at TEXT,
        UNIQUE(user_id, date)
    )
    """,
)

V002_EQUITIES = (
    """
    CREATE TABLE IF NOT EXISTS holdings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        stock_id INTEGER NOT NULL,
        quantity TEXT NOT NULL,
        avg_buy_price TEXT NOT NULL,
        UNIQUE(user_id, stock_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        stock_id INTEGER,
        type TEXT NOT NULL,
        quantity TEXT NOT NULL,
        price TEXT NOT NULL,
        total_amount TEXT NOT NULL,
        transaction_date TEXT NOT NULL
    )
    """,
)

V003_OPTIONS = (
    """
    CREATE TABLE IF NOT EXISTS option_contracts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        strike_price TEXT NOT NULL,
        expiry_date TEXT NOT NULL,
        option_type TEXT NOT NULL,
        underlying_index_value_at_creation TEXT NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE(strike_price, expiry_date, option_type)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_option_holdings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        contract_id INTEGER NOT NULL,
        type TEXT NOT NULL,
        quantity TEXT NOT NULL,
        avg_premium TEXT NOT NULL,
        UNIQUE(user_id, contract_id, type)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS option_transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        contract_id INTEGER NOT NULL,
        action TEXT NOT NULL,
        position_type TEXT NOT NULL,
        quantity TEXT NOT NULL,
        premium_per_unit TEXT NOT NULL,
        entry_premium TEXT,
        cash_delta TEXT NOT NULL,
        realized_pnl TEXT,
        transaction_date TEXT NOT NULL
    )
    """,
)

V005_CASH_MOVEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS cash_movements (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        kind TEXT NOT NULL,
        amount TEXT NOT NULL,
        balance_after TEXT NOT NULL,
        reference TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_cash_movements_user ON cash_movements (user_id)",
)


def table_columns(connection: Connection, table: str) -> List[str]:
    rows = connection.exec_driver_sql(f"PRAGMA table_info({table})").fetchall()
    return [row[1] for row in rows]


def _add_transaction_fee_columns(connection: Connection) -> None:
    columns = table_columns(connection, "transactions")
    if "brokerage_fee" not in columns:
        connection.exec_driver_sql(
            "ALTER TABLE transactions ADD COLUMN brokerage_fee TEXT NOT NULL DEFAULT '0'"
        )
    if "realized_pnl" not in columns:
        connection.exec_driver_sql("ALTER TABLE transactions ADD COLUMN realized_pnl TEXT")


MIGRATIONS: Tuple[Migration, ...] = (
    Migration(1, "cash accounts, life stocks and index history", statements=V001_ACCOUNTS),
    Migration(2, "equity holdings and transactions", statements=V002_EQUITIES),
    Migration(3, "option contracts, holdings and transactions", statements=V003_OPTIONS),
    Migration(4, "brokerage fee and realized P&L on equity transactions",
              apply=_add_transaction_fee_columns),
    Migration(5, "cash movement audit trail", statements=V005_CASH_MOVEMENTS),
)


# ============================================================================
# RUNNER
# ============================================================================

def check_order(migrations: Sequence[Migration]) -> None:
    """Raise MigrationError unless versions are strictly increasing."""
    previous = 0
    for migration in migrations:
        if migration.version <= previous:
            raise MigrationError(
                f"Migration versions must be strictly increasing: "
                f"{migration.version} follows {previous}"
            )
        previous = migration.version


def current_version(engine: Engine) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    with engine.begin() as connection:
        connection.exec_driver_sql(SCHEMA_VERSION_DDL)
        version = connection.exec_driver_sql("SELECT MAX(version) FROM schema_version").scalar()
    return version or 0


def apply_migrations(engine: Engine, migrations: Sequence[Migration] = MIGRATIONS) -> List[int]:
    """
    Apply every migration newer than the recorded schema version.

    Each migration runs in its own transaction together with the row that
    records it.

    Returns:
        Versions applied by this call, in order.

    Raises:
        MigrationError: If the versions are not strictly increasing or a step fails.
    """
    check_order(migrations)
    current = current_version(engine)
    applied = []
    for migration in migrations:
        if migration.version <= current:
            continue
        try:
            with engine.begin() as connection:
                migration.run(connection)
                connection.execute(
                    text(
                        "INSERT INTO schema_version (version, description, applied_at) "
                        "VALUES (:version, :description, :applied_at)"
                    ),
                    {
                        "version": migration.version,
                        "description": migration.description,
                        "applied_at": datetime.now().isoformat(),
                    },
                )
        except SQLAlchemyError as exc:
            raise MigrationError(
                f"Migration {migration.version} ({migration.description}) failed: {exc}"
            ) from exc
        logger.info("Applied migration %d: %s", migration.version, migration.description)
        applied.append(migration.version)
    return applied
