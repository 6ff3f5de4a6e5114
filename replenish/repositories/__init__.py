"""
Domain repository mixins composed into replenish.store.Store.

Each mixin expects the host class to provide an async ``connection()``
context manager yielding a DuckDB connection.
"""
from replenish.repositories.orders import OrdersMixin
from replenish.repositories.products import ProductsMixin
from replenish.repositories.finance import FinanceMixin

__all__ = [
    "OrdersMixin",
    "ProductsMixin",
    "FinanceMixin",
]
