"""
Base repository with connection management and schema initialization.

All bookkeeping repositories are mixins over this class.
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional, Any, Union

import duckdb

from bookkeeping.config import config
from bookkeeping.observability import get_logger

logger = get_logger(__name__)

MEMORY_DB = ":memory:"


def utcnow() -> datetime:
    """Naive UTC timestamp for TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return float(value)


def as_iso(value: Any) -> Optional[str]:
    """DATE/TIMESTAMP column value -> ISO string."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat(timespec="microseconds")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def as_date(value: Union[str, date]) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class BaseRepository:
    """
    Base repository with DuckDB connection management.

    Usage:
        class ExpensesRepository(BaseRepository):
            async def get_expense(self, expense_id: str):
                async with self.connection() as conn:
                    return conn.execute("SELECT * FROM financial_expenses WHERE id = ?", [expense_id]).fetchone()
    """

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = str(db_path or config.store.db_path)
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()
        self._schema_initialized = False

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        if self.db_path != MEMORY_DB:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        async with self._lock:
            if self._connection is None:
                self._connection = duckdb.connect(self.db_path)
                if not self._schema_initialized:
                    await self._init_schema()
                    self._schema_initialized = True
                logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        async with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
                self._schema_initialized = False
                logger.info("DuckDB connection closed")

    @asynccontextmanager
    async def connection(self):
        """Get database connection, connecting on first use."""
        if self._connection is None:
            await self.connect()
        yield self._connection

    async def execute(self, sql: str, params: list = None) -> Any:
        """Execute SQL query and return result."""
        async with self.connection() as conn:
            if params:
                return conn.execute(sql, params)
            return conn.execute(sql)

    async def fetchone(self, sql: str, params: list = None) -> Optional[tuple]:
        """Execute query and fetch one result."""
        result = await self.execute(sql, params)
        return result.fetchone()

    async def fetchall(self, sql: str, params: list = None) -> list:
        """Execute query and fetch all results."""
        result = await self.execute(sql, params)
        return result.fetchall()

    async def _init_schema(self) -> None:
        """Create database schema if not exists."""
        schema_sql = """
        -- Manually entered and bulk-imported expenses
        CREATE TABLE IF NOT EXISTS financial_expenses (
            id VARCHAR PRIMARY KEY,
            category VARCHAR NOT NULL,
            amount DECIMAL(12, 2) NOT NULL,
            date DATE NOT NULL,
            month VARCHAR(7) NOT NULL,
            expense_type VARCHAR(10) NOT NULL DEFAULT 'operating',
            notes VARCHAR,
            product_id VARCHAR,
            product_name VARCHAR,
            quantity INTEGER,
            unit_cost DECIMAL(12, 2),
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );

        -- Manually entered shipments (tag-derived ones are never stored)
        CREATE TABLE IF NOT EXISTS shipping_records (
            id VARCHAR PRIMARY KEY,
            order_id VARCHAR,
            type VARCHAR(10) NOT NULL,
            customer_shipping_charged DECIMAL(12, 2) NOT NULL DEFAULT 0,
            actual_shipping_cost DECIMAL(12, 2) NOT NULL DEFAULT 0,
            status VARCHAR(10) NOT NULL DEFAULT 'Delivered',
            date DATE NOT NULL,
            month VARCHAR(7) NOT NULL,
            invoice_id VARCHAR,
            notes VARCHAR,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );

        -- Per-unit product cost basis
        CREATE TABLE IF NOT EXISTS product_costs (
            id VARCHAR PRIMARY KEY,
            product_id VARCHAR NOT NULL,
            product_name VARCHAR NOT NULL,
            crochet_labor_per_unit DECIMAL(12, 2) NOT NULL DEFAULT 0,
            yarn_cost_per_unit DECIMAL(12, 2) NOT NULL DEFAULT 0,
            helper_colors_cost_per_unit DECIMAL(12, 2) NOT NULL DEFAULT 0,
            laser_felt_cost_per_unit DECIMAL(12, 2) NOT NULL DEFAULT 0,
            packaging_per_unit DECIMAL(12, 2) NOT NULL DEFAULT 0,
            total_unit_cost DECIMAL(12, 2) NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );

        -- Payout split (single row, id = 1)
        CREATE TABLE IF NOT EXISTS payout_config (
            id INTEGER PRIMARY KEY,
            media_buyer_percent DOUBLE NOT NULL,
            ops_percent DOUBLE NOT NULL,
            crm_percent DOUBLE NOT NULL,
            owner_pay_type VARCHAR(10) NOT NULL,
            owner_pay_value DOUBLE NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );

        -- Monthly profit snapshots (one row per month, overwritten on recalculation)
        CREATE TABLE IF NOT EXISTS monthly_profits (
            month VARCHAR(7) PRIMARY KEY,
            revenue DOUBLE NOT NULL,
            cogs DOUBLE NOT NULL,
            gross_profit DOUBLE NOT NULL,
            total_expenses DOUBLE NOT NULL,
            operating_expenses DOUBLE NOT NULL,
            production_costs_paid DOUBLE NOT NULL,
            shipping_cost DOUBLE NOT NULL,
            customer_shipping_charged DOUBLE NOT NULL,
            shipping_loss DOUBLE NOT NULL,
            operating_profit DOUBLE NOT NULL,
            dpp DOUBLE NOT NULL,
            cash_dpp DOUBLE NOT NULL,
            order_count INTEGER NOT NULL,
            cancelled_count INTEGER NOT NULL,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );

        -- Monthly payout snapshots
        CREATE TABLE IF NOT EXISTS monthly_payouts (
            month VARCHAR(7) PRIMARY KEY,
            dpp DOUBLE NOT NULL,
            media_buyer_amount DOUBLE NOT NULL,
            ops_amount DOUBLE NOT NULL,
            crm_amount DOUBLE NOT NULL,
            owner_amount DOUBLE NOT NULL,
            net_business_profit DOUBLE NOT NULL,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );
        """
        self._connection.execute(schema_sql)
        logger.info("DuckDB schema initialized")
