"""
Sync orchestration: runs the order and product legs for one sync run.

Features:
- Leg isolation: a failing leg is reported, the other leg still runs
- Error classification: configuration / connection / api / data / unexpected
- Observability: one correlation ID per run and per-leg timing
"""
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional

from replenish.client import CommerceClient
from replenish.config import ConfigurationError
from replenish.exceptions import (
    UpstreamAPIError,
    UpstreamConnectionError,
    UpstreamDataError,
    UpstreamError,
)
from replenish.models import LegErrorKind, LegResult, SyncRunSummary
from replenish.observability import Timer, correlation_context, get_logger
from replenish.store import Store
from replenish.syncers import OrderSyncer, ProductSyncer

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncOrchestrator:
    """
    Runs both sync legs sequentially (orders, then products).

    run_all() never raises for a leg failure; the failure is captured in
    that leg's LegResult.

    Usage:
        orchestrator = SyncOrchestrator(client, store)
        summary = await orchestrator.run_all()
        if not summary.orders.success:
            ...
    """

    def __init__(self, client: CommerceClient, store: Store, clock: Optional[Clock] = None):
        self.client = client
        self.store = store
        self.clock = clock or utc_now
        self.order_syncer = OrderSyncer(store)
        self.product_syncer = ProductSyncer(store)

    async def run_all(self) -> SyncRunSummary:
        with correlation_context() as run_id:
            started_at = self.clock()
            logger.info("Sync run started", extra={"run_id": run_id})

            orders = await self._run_leg(
                "orders", self.client.fetch_orders, self.order_syncer.sync
            )
            products = await self._run_leg(
                "products", self.client.fetch_products, self.product_syncer.sync
            )

            summary = SyncRunSummary(
                orders=orders,
                products=products,
                started_at=started_at,
                finished_at=self.clock(),
                run_id=run_id,
            )
            logger.info(
                f"Sync run finished (orders ok={orders.success}, products ok={products.success})",
                extra={"run_id": run_id}
            )
            return summary

    async def sync_orders(self) -> LegResult:
        """Run the orders leg alone."""
        return await self._run_leg("orders", self.client.fetch_orders, self.order_syncer.sync)

    async def sync_products(self) -> LegResult:
        """Run the products leg alone."""
        return await self._run_leg("products", self.client.fetch_products, self.product_syncer.sync)

    async def _run_leg(
        self,
        name: str,
        fetch: Callable[[], Awaitable[List[Any]]],
        sync: Callable[[List[Any]], Awaitable[Any]],
    ) -> LegResult:
        leg = LegResult(name=name, success=False)

        with Timer(f"{name}_leg", logger) as timer:
            try:
                raw = await fetch()
                leg.fetched = len(raw)
                leg.result = await sync(raw)
                leg.success = True
            except ConfigurationError as e:
                logger.error(f"{name.capitalize()} sync not configured: {e}")
                self._fail(leg, e, LegErrorKind.CONFIGURATION)
            except UpstreamConnectionError as e:
                logger.warning(f"{name.capitalize()} sync connection error (will retry): {e}")
                self._fail(leg, e, LegErrorKind.CONNECTION)
            except UpstreamAPIError as e:
                logger.error(f"{name.capitalize()} sync API error: {e}")
                self._fail(leg, e, LegErrorKind.API)
            except UpstreamDataError as e:
                logger.error(f"{name.capitalize()} sync data error: {e}")
                self._fail(leg, e, LegErrorKind.DATA)
            except UpstreamError as e:
                logger.error(f"{name.capitalize()} sync error: {e}")
                self._fail(leg, e, LegErrorKind.API)
            except Exception as e:
                logger.exception(f"{name.capitalize()} sync failed unexpectedly: {e}")
                self._fail(leg, e, LegErrorKind.UNEXPECTED)

        leg.duration_ms = timer.elapsed_ms
        return leg

    @staticmethod
    def _fail(leg: LegResult, error: Exception, kind: LegErrorKind) -> None:
        leg.success = False
        leg.error = str(error)
        leg.error_kind = kind
