"""
Pytest configuration and shared fixtures.
"""
import pytest
import pytest_asyncio
from datetime import datetime
from typing import Dict, List, Any, Callable
from unittest.mock import AsyncMock

from replenish.store import Store


@pytest.fixture
def raw_order() -> Dict[str, Any]:
    """Sample order from the upstream API."""
    return {
        "id": 1001,
        "status": "completed",
        "total_amount": "2500.00",
        "bonus": 50,
        "bank_card": "4276****1234",
        "delivery_cost": 300,
        "paid_at": "05.06.2025 21:31:26",
        "shipped_at": "06.06.2025 10:00:00",
        "created_at": "04.06.2025 09:15:00",
        "user": {"id": 77, "city": "Moscow", "full_name": "Ivan Petrov"},
        "order_items": [
            {"name": "Omega 3", "quantity": 2, "price": "1000.00"},
            {"name": "Vitamin D", "quantity": 1, "price": "500"},
        ],
    }


@pytest.fixture
def make_order() -> Callable[..., Dict[str, Any]]:
    """Factory for raw orders with sensible defaults."""
    def _make(order_id, items=None, status="completed", total="1000.00",
              created_at="01.06.2025 12:00:00", paid_at=None, **extra):
        order = {
            "id": order_id,
            "status": status,
            "total_amount": total,
            "bonus": 0,
            "bank_card": None,
            "delivery_cost": 0,
            "paid_at": paid_at,
            "shipped_at": None,
            "created_at": created_at,
            "user": {"id": 1, "city": "Kazan", "full_name": "Test Buyer"},
            "order_items": items if items is not None else [
                {"name": "Omega 3", "quantity": 1, "price": "1000.00"},
            ],
        }
        order.update(extra)
        return order
    return _make


@pytest.fixture
def raw_product() -> Dict[str, Any]:
    """Sample product from the upstream API."""
    return {
        "id": 501,
        "name": "Omega 3",
        "description": "Fish oil 1000mg",
        "price": "1000.00",
        "stock_quantity": 40,
        "brand": "Nutrilife",
        "main_ingredient": "Fish oil",
        "dosage_form": "capsules",
        "package_quantity": 90,
        "weight": "120g",
    }


@pytest.fixture
def make_product() -> Callable[..., Dict[str, Any]]:
    """Factory for raw products."""
    def _make(product_id, name=None, price="1000.00", stock=10, **extra):
        product = {
            "id": product_id,
            "name": name or f"Product {product_id}",
            "description": None,
            "price": price,
            "stock_quantity": stock,
            "brand": "Brand",
            "main_ingredient": None,
            "dosage_form": None,
            "package_quantity": None,
            "weight": None,
        }
        product.update(extra)
        return product
    return _make


@pytest_asyncio.fixture
async def store():
    """Fresh in-memory store per test."""
    db = Store(":memory:")
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 6, 30, 12, 0, 0)


@pytest.fixture
def mock_client() -> AsyncMock:
    """Upstream client double returning empty lists."""
    client = AsyncMock()
    client.fetch_orders = AsyncMock(return_value=[])
    client.fetch_products = AsyncMock(return_value=[])
    return client
