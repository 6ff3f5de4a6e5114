"""
Reconcile raw upstream records into the store.

Each record is validated and written independently: a rejected record is
counted as skipped, a failed write is counted as errored, and the batch
always runs to the end.
"""
from typing import Any, Dict, Iterable

from replenish.exceptions import ValidationError
from replenish.models import OrderRecord, OrderSyncResult, ProductRecord, ProductSyncResult
from replenish.observability import get_logger
from replenish.store import Store

logger = get_logger(__name__)


def _record_id(raw: Any) -> Any:
    return raw.get("id") if isinstance(raw, dict) else None


class OrderSyncer:
    """Upsert external orders keyed by external id, replacing line items."""

    def __init__(self, store: Store):
        self.store = store

    async def sync(self, raw_orders: Iterable[Dict[str, Any]]) -> OrderSyncResult:
        result = OrderSyncResult()

        for raw in raw_orders:
            try:
                order = OrderRecord.from_api(raw)
            except ValidationError as e:
                logger.warning(
                    f"Skipping order {_record_id(raw)}: {e}",
                    extra={"external_id": _record_id(raw), "field": e.field}
                )
                result.skipped += 1
                continue
            except Exception as e:
                logger.error(
                    f"Malformed order {_record_id(raw)}, skipping: {e}",
                    extra={"external_id": _record_id(raw), "error": str(e)}
                )
                result.skipped += 1
                continue

            for dropped in order.dropped_items:
                logger.warning(
                    f"Dropping invalid item in order {order.external_id}: {dropped!r}",
                    extra={"external_id": order.external_id}
                )
            result.items_dropped += len(order.dropped_items)

            try:
                await self.store.upsert_order(order)
            except Exception as e:
                logger.error(
                    f"Error writing order {order.external_id}: {e}",
                    extra={"external_id": order.external_id, "error": str(e)}
                )
                result.errored += 1
                continue

            result.imported += 1

        logger.info(
            f"Order sync: {result.imported} imported, {result.skipped} skipped, "
            f"{result.errored} errored",
            extra={"sync_result": result.to_dict()}
        )
        return result


class ProductSyncer:
    """Upsert external products keyed by external id."""

    def __init__(self, store: Store):
        self.store = store

    async def sync(self, raw_products: Iterable[Dict[str, Any]]) -> ProductSyncResult:
        result = ProductSyncResult()

        for raw in raw_products:
            try:
                product = ProductRecord.from_api(raw)
            except ValidationError as e:
                logger.warning(
                    f"Skipping product {_record_id(raw)}: {e}",
                    extra={"external_id": _record_id(raw), "field": e.field}
                )
                result.skipped += 1
                continue
            except Exception as e:
                logger.error(
                    f"Malformed product {_record_id(raw)}, skipping: {e}",
                    extra={"external_id": _record_id(raw), "error": str(e)}
                )
                result.skipped += 1
                continue

            if product.stock_coerced:
                logger.warning(
                    f"Product {product.external_id} has invalid stock "
                    f"{raw.get('stock_quantity')!r}, using 0",
                    extra={"external_id": product.external_id}
                )

            try:
                created = await self.store.upsert_product(product)
            except Exception as e:
                logger.error(
                    f"Error writing product {product.external_id}: {e}",
                    extra={"external_id": product.external_id, "error": str(e)}
                )
                result.errored += 1
                continue

            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info(
            f"Product sync: {result.created} created, {result.updated} updated, "
            f"{result.skipped} skipped, {result.errored} errored",
            extra={"sync_result": result.to_dict()}
        )
        return result
