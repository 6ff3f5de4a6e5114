"""
Integration tests for AnalyticsEngine over an in-memory store.

All tests use the window 2025-06-01..2025-06-30 with the clock at
2025-06-30 12:00, which gives 30 elapsed days.
"""
from datetime import date

import pytest

from replenish.analytics import AnalyticsEngine
from replenish.config import AnalyticsConfig
from replenish.currency import record_exchange_rate
from replenish.models import UrgencyLevel
from replenish.syncers import OrderSyncer, ProductSyncer

FROM = date(2025, 6, 1)
TO = date(2025, 6, 30)


async def seed(store, make_order, make_product, products, orders, costs=None, rate=2.0):
    """Sync products and orders, then set TRY costs by external id."""
    await ProductSyncer(store).sync(products)
    await OrderSyncer(store).sync(orders)
    for external_id, cost in (costs or {}).items():
        product = await store.get_product_by_external_id(external_id)
        await store.set_product_costs(product["id"], cost, rate)
    if rate is not None:
        await record_exchange_rate(store, rate, buffer_percent=0, effective_date=FROM)


@pytest.fixture
def engine(store, fixed_now):
    return AnalyticsEngine(store, clock=lambda: fixed_now)


class TestProductAnalytics:
    """Per-product figures."""

    @pytest.mark.asyncio
    async def test_margin(self, store, engine, make_order, make_product):
        """100 TRY at 2.0 plus 350 delivery against a 1000 retail price."""
        await seed(
            store, make_order, make_product,
            products=[make_product(1, name="Omega 3", stock=10)],
            orders=[make_order(1, items=[{"name": "Omega 3", "quantity": 1, "price": "1000"}])],
            costs={"1": 100.0},
        )

        [row] = await engine.compute_products_analytics(FROM, TO)

        assert row.cost_price_rub == 200.0
        assert row.full_unit_cost == 550.0
        assert row.margin == 450.0
        assert row.margin_percent == 81.82
        assert row.has_sales_data

    @pytest.mark.asyncio
    async def test_margin_percent_on_sub_kopeck_cost(self, store, fixed_now, make_order, make_product):
        """A unit cost that rounds to 0.00 still yields a margin percent."""
        engine = AnalyticsEngine(
            store,
            settings=AnalyticsConfig(delivery_cost_per_unit=0.0),
            clock=lambda: fixed_now,
        )
        await seed(
            store, make_order, make_product,
            products=[make_product(1, name="Sticker", price="1.00")],
            orders=[make_order(1, items=[{"name": "Sticker", "quantity": 1, "price": "1.00"}])],
            costs={"1": 1.0},
            rate=0.004,
        )

        [row] = await engine.compute_products_analytics(FROM, TO)

        assert row.full_unit_cost == 0.0
        assert row.margin_percent == 24900.0

    @pytest.mark.asyncio
    async def test_days_until_zero(self, store, engine, make_order, make_product):
        """15 units over 30 days is 0.5/day, so 10 in stock lasts 20 days."""
        await seed(
            store, make_order, make_product,
            products=[make_product(1, name="Omega 3", stock=10)],
            orders=[make_order(1, items=[{"name": "Omega 3", "quantity": 15, "price": "1000"}])],
        )

        [row] = await engine.compute_products_analytics(FROM, TO)

        assert row.avg_daily_consumption == 0.5
        assert row.days_until_zero == 20
        assert row.units_sold == 15
        assert row.revenue == 15000.0

    @pytest.mark.asyncio
    async def test_no_sales(self, store, engine, make_product, make_order):
        """Unsold products use the list price and the no-consumption sentinel."""
        await seed(
            store, make_order, make_product,
            products=[make_product(1, name="Zinc", price="800.00", stock=4)],
            orders=[],
        )

        [row] = await engine.compute_products_analytics(FROM, TO)

        assert row.days_until_zero == 999
        assert not row.has_sales_data
        assert row.avg_retail_price == 800.0
        assert row.avg_daily_consumption == 0

    @pytest.mark.asyncio
    async def test_shared_expenses_per_unit(self, store, engine, make_order, make_product):
        """Window expenses are spread over every unit sold."""
        await seed(
            store, make_order, make_product,
            products=[make_product(1, name="Omega 3"), make_product(2, name="Zinc")],
            orders=[make_order(1, items=[
                {"name": "Omega 3", "quantity": 10, "price": "1000"},
                {"name": "Zinc", "quantity": 5, "price": "500"},
            ])],
        )
        await store.add_expense("Logistics", 300.0, date(2025, 6, 10))
        await store.add_expense("Advertising", 150.0, date(2025, 6, 20))
        await store.add_expense("Advertising", 999.0, date(2025, 7, 2))

        rows = await engine.compute_products_analytics(FROM, TO)

        for row in rows:
            assert row.expenses.delivery == 350.0
            assert row.expenses.logistics == 20.0
            assert row.expenses.advertising == 10.0
            assert row.expenses.other == 0.0
            assert row.full_unit_cost == 380.0

    @pytest.mark.asyncio
    async def test_excluded_statuses(self, store, engine, make_order, make_product):
        """Cancelled and refunded orders do not count as sales."""
        await seed(
            store, make_order, make_product,
            products=[make_product(1, name="Omega 3")],
            orders=[
                make_order(1, items=[{"name": "Omega 3", "quantity": 2, "price": "1000"}]),
                make_order(2, status="Cancelled", items=[{"name": "Omega 3", "quantity": 50, "price": "1000"}]),
                make_order(3, status="refunded", items=[{"name": "Omega 3", "quantity": 50, "price": "1000"}]),
            ],
        )

        [row] = await engine.compute_products_analytics(FROM, TO)

        assert row.units_sold == 2

    @pytest.mark.asyncio
    async def test_orders_outside_window_ignored(self, store, engine, make_order, make_product):
        await seed(
            store, make_order, make_product,
            products=[make_product(1, name="Omega 3")],
            orders=[
                make_order(1, created_at="30.06.2025 23:59:00",
                           items=[{"name": "Omega 3", "quantity": 1, "price": "1000"}]),
                make_order(2, created_at="01.07.2025 00:00:01",
                           items=[{"name": "Omega 3", "quantity": 9, "price": "1000"}]),
            ],
        )

        [row] = await engine.compute_products_analytics(FROM, TO)

        assert row.units_sold == 1

    @pytest.mark.asyncio
    async def test_sorted_by_margin_percent(self, store, engine, make_order, make_product):
        await seed(
            store, make_order, make_product,
            products=[
                make_product(1, name="Cheap", price="500.00"),
                make_product(2, name="Premium", price="3000.00"),
                make_product(3, name="Middle", price="1500.00"),
            ],
            orders=[],
        )

        rows = await engine.compute_products_analytics(FROM, TO)

        assert [r.name for r in rows] == ["Premium", "Middle", "Cheap"]

    @pytest.mark.asyncio
    async def test_hidden_products_excluded(self, store, engine, make_order, make_product):
        await seed(
            store, make_order, make_product,
            products=[make_product(1), make_product(2)],
            orders=[],
        )
        hidden = await store.get_product_by_external_id("2")
        await store.set_product_hidden(hidden["id"])

        rows = await engine.compute_products_analytics(FROM, TO)

        assert [r.external_id for r in rows] == ["1"]
        assert await engine.get_product_analytics(hidden["id"], FROM, TO) is None

    @pytest.mark.asyncio
    async def test_fallback_rate(self, store, engine, make_order, make_product):
        """Without a stored rate the fixed fallback applies."""
        await seed(
            store, make_order, make_product,
            products=[make_product(1)],
            orders=[],
            costs={"1": 100.0},
            rate=None,
        )

        [row] = await engine.compute_products_analytics(FROM, TO)

        assert row.cost_price_rub == 212.64

    @pytest.mark.asyncio
    async def test_latest_rate_with_buffer(self, store, engine, make_order, make_product):
        await seed(
            store, make_order, make_product,
            products=[make_product(1)],
            orders=[],
            costs={"1": 100.0},
        )
        await record_exchange_rate(store, 2.0, buffer_percent=5, effective_date=date(2025, 6, 15))

        [row] = await engine.compute_products_analytics(FROM, TO)

        assert row.cost_price_rub == 210.0


class TestSummary:
    """Portfolio summary."""

    @pytest.mark.asyncio
    async def test_summary_figures(self, store, engine, make_order, make_product):
        await seed(
            store, make_order, make_product,
            products=[make_product(1, name="Omega 3", stock=10), make_product(2, name="Zinc", stock=50)],
            orders=[make_order(1, total="15000", items=[{"name": "Omega 3", "quantity": 15, "price": "1000"}])],
            costs={"1": 100.0, "2": 100.0},
        )

        result = await engine.compute_summary(FROM, TO)
        summary = result["summary"]

        assert summary["totalProducts"] == 2
        assert summary["totalRevenue"] == 15000.0
        # 15 units at (1000 - 550)
        assert summary["totalMargin"] == 6750.0
        assert summary["criticalProducts"] == 0
        assert summary["topPerformers"][0]["name"] == "Omega 3"
        assert len(result["products"]) == 2


class TestPurchasePlan:
    """Reorder recommendations."""

    @pytest.mark.asyncio
    async def test_recommendations(self, store, engine, make_order, make_product):
        await seed(
            store, make_order, make_product,
            products=[
                make_product(1, name="Omega 3", stock=10),
                make_product(2, name="Zinc", stock=3),
                make_product(3, name="Iron", stock=500),
            ],
            orders=[make_order(1, items=[{"name": "Omega 3", "quantity": 15, "price": "1000"}])],
            costs={"1": 100.0, "2": 50.0, "3": 10.0},
        )

        plan = await engine.compute_purchase_plan(FROM, TO, lead_time_days=30, min_stock=5)
        recs = plan["recommendations"]

        assert [r.name for r in recs] == ["Omega 3", "Zinc"]
        assert recs[0].urgency == UrgencyLevel.WARNING
        assert recs[0].recommended_quantity == 15
        assert recs[0].estimated_cost == 3000.0
        assert recs[1].urgency == UrgencyLevel.CRITICAL
        assert recs[1].recommended_quantity == 7
        assert plan["totals"] == {
            "items": 2,
            "quantity": 22,
            "estimatedCost": 3700.0,
            "critical": 1,
            "warning": 1,
        }

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self, store, engine):
        plan = await engine.compute_purchase_plan(FROM, TO)

        assert plan["leadTimeDays"] == 14
        assert plan["minStock"] == 5
        assert plan["recommendations"] == []
