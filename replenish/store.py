"""
DuckDB store for synced orders, products, exchange rates and expenses.

Domain-specific query methods are organized into repository mixins:
- OrdersMixin: Order upsert with line-item replacement, sales aggregates
- ProductsMixin: Product upsert and locally-maintained product fields
- FinanceMixin: Append-only exchange rates and expenses
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Union, Dict, Any

import duckdb

from replenish.config import config
from replenish.repositories import OrdersMixin, ProductsMixin, FinanceMixin

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS seq_orders_id START 1;
CREATE TABLE IF NOT EXISTS orders (
    id INTEGER PRIMARY KEY DEFAULT nextval('seq_orders_id'),
    external_id VARCHAR NOT NULL UNIQUE,
    customer_name VARCHAR,
    customer_city VARCHAR,
    status VARCHAR,
    total DECIMAL(12, 2) NOT NULL,
    currency VARCHAR NOT NULL DEFAULT 'RUB',
    order_date TIMESTAMP NOT NULL,
    paid_at TIMESTAMP,
    shipped_at TIMESTAMP,
    bonus DECIMAL(12, 2),
    delivery_cost DECIMAL(12, 2),
    bank_card VARCHAR,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
);

-- Line items are owned by their order and replaced on every re-sync
CREATE SEQUENCE IF NOT EXISTS seq_order_items_id START 1;
CREATE TABLE IF NOT EXISTS order_items (
    id INTEGER PRIMARY KEY DEFAULT nextval('seq_order_items_id'),
    order_id INTEGER NOT NULL,
    name VARCHAR NOT NULL,
    quantity INTEGER NOT NULL,
    price DECIMAL(12, 2) NOT NULL,
    total DECIMAL(14, 2) NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS seq_products_id START 1;
CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY DEFAULT nextval('seq_products_id'),
    external_id VARCHAR NOT NULL UNIQUE,
    name VARCHAR NOT NULL,
    brand VARCHAR,
    description VARCHAR,
    price DECIMAL(12, 2) NOT NULL,
    cost_price_try DECIMAL(12, 2) DEFAULT 0,
    cost_price_rub DECIMAL(12, 2) DEFAULT 0,
    stock INTEGER NOT NULL DEFAULT 0,
    main_ingredient VARCHAR,
    dosage_form VARCHAR,
    package_quantity VARCHAR,
    weight VARCHAR,
    is_hidden BOOLEAN NOT NULL DEFAULT FALSE,
    in_transit INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
);

CREATE SEQUENCE IF NOT EXISTS seq_exchange_rates_id START 1;
CREATE TABLE IF NOT EXISTS exchange_rates (
    id INTEGER PRIMARY KEY DEFAULT nextval('seq_exchange_rates_id'),
    currency VARCHAR NOT NULL,
    rate DECIMAL(14, 6) NOT NULL,
    rate_with_buffer DECIMAL(14, 6) NOT NULL,
    buffer_percent DECIMAL(6, 2) NOT NULL DEFAULT 0,
    source VARCHAR NOT NULL DEFAULT 'manual',
    effective_date DATE NOT NULL,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
);

CREATE SEQUENCE IF NOT EXISTS seq_expenses_id START 1;
CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY DEFAULT nextval('seq_expenses_id'),
    category VARCHAR NOT NULL,
    amount DECIMAL(12, 2) NOT NULL,
    expense_date DATE NOT NULL,
    product_id INTEGER,
    description VARCHAR,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_order_items_order_id ON order_items(order_id);
CREATE INDEX IF NOT EXISTS idx_exchange_rates_currency ON exchange_rates(currency, effective_date);
CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(expense_date);
"""


class Store(OrdersMixin, ProductsMixin, FinanceMixin):
    """
    Async-compatible DuckDB store.

    A single connection is shared; every access goes through ``connection()``,
    which serializes callers with an asyncio lock.

    Pass ``":memory:"`` as db_path for a throwaway database.
    """

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = str(db_path or config.store.path)
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the database and create the schema if needed."""
        if self.db_path != IN_MEMORY:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        async with self._lock:
            if self._connection is None:
                self._connection = duckdb.connect(self.db_path)
                self._connection.execute(SCHEMA_SQL)
                logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        async with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    @asynccontextmanager
    async def connection(self):
        """Get the database connection, connecting on first use.

        Acquires the lock so only one coroutine uses the connection at a time.
        """
        if self._connection is None:
            await self.connect()
        async with self._lock:
            yield self._connection

    def get_connection_info(self) -> Dict[str, Any]:
        return {
            "status": "active" if self._connection else "not_initialized",
            "db_path": self.db_path,
        }
