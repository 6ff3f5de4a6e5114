"""
Integration tests for SyncOrchestrator leg isolation.
"""
from datetime import datetime, timezone

import pytest

from replenish.config import ConfigurationError
from replenish.exceptions import UpstreamAPIError, UpstreamConnectionError, UpstreamDataError
from replenish.models import LegErrorKind
from replenish.sync_service import SyncOrchestrator

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_orchestrator(client, store) -> SyncOrchestrator:
    return SyncOrchestrator(client, store, clock=lambda: NOW)


class TestRunAll:
    """Tests for a full sync run."""

    @pytest.mark.asyncio
    async def test_both_legs_succeed(self, store, mock_client, make_order, make_product):
        mock_client.fetch_orders.return_value = [make_order(1), make_order(2)]
        mock_client.fetch_products.return_value = [make_product(1)]

        summary = await make_orchestrator(mock_client, store).run_all()

        assert summary.success
        assert summary.orders.fetched == 2
        assert summary.orders.result.imported == 2
        assert summary.products.result.created == 1
        assert summary.run_id
        assert summary.started_at == NOW

    @pytest.mark.asyncio
    async def test_order_leg_failure_isolated(self, store, mock_client, make_product):
        """A connection failure on orders still lets products sync."""
        mock_client.fetch_orders.side_effect = UpstreamConnectionError("Request timeout after 30s")
        mock_client.fetch_products.return_value = [make_product(1), make_product(2)]

        summary = await make_orchestrator(mock_client, store).run_all()

        assert not summary.success
        assert summary.orders.error_kind == LegErrorKind.CONNECTION
        assert "timeout" in summary.orders.error
        assert summary.products.success
        assert await store.count_products() == 2

    @pytest.mark.asyncio
    async def test_product_leg_failure_isolated(self, store, mock_client, make_order):
        mock_client.fetch_orders.return_value = [make_order(1)]
        mock_client.fetch_products.side_effect = UpstreamAPIError("API returned 502", status_code=502)

        summary = await make_orchestrator(mock_client, store).run_all()

        assert summary.orders.success
        assert summary.products.error_kind == LegErrorKind.API
        assert await store.count_orders() == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error,kind", [
        (ConfigurationError("COMMERCE_ORDERS_URL is not configured"), LegErrorKind.CONFIGURATION),
        (UpstreamDataError("Unexpected orders payload"), LegErrorKind.DATA),
        (RuntimeError("boom"), LegErrorKind.UNEXPECTED),
    ])
    async def test_error_classification(self, store, mock_client, error, kind):
        mock_client.fetch_orders.side_effect = error

        summary = await make_orchestrator(mock_client, store).run_all()

        assert summary.orders.error_kind == kind
        assert summary.products.success

    @pytest.mark.asyncio
    async def test_summary_serializes(self, store, mock_client):
        mock_client.fetch_orders.side_effect = UpstreamConnectionError("refused")

        data = (await make_orchestrator(mock_client, store).run_all()).to_dict()

        assert data["orders"]["errorKind"] == "connection"
        assert data["products"]["success"] is True


class TestSingleLegs:
    """Tests for running one leg alone."""

    @pytest.mark.asyncio
    async def test_sync_products_only(self, store, mock_client, make_product):
        mock_client.fetch_products.return_value = [make_product(1)]

        leg = await make_orchestrator(mock_client, store).sync_products()

        assert leg.success
        assert leg.name == "products"
        mock_client.fetch_orders.assert_not_called()

    @pytest.mark.asyncio
    async def test_sync_orders_only(self, store, mock_client, make_order):
        mock_client.fetch_orders.return_value = [make_order(1)]

        leg = await make_orchestrator(mock_client, store).sync_orders()

        assert leg.result.imported == 1
        mock_client.fetch_products.assert_not_called()
