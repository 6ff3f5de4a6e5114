"""Store order methods: idempotent upsert and window queries."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable

from replenish.models import OrderRecord

logger = logging.getLogger(__name__)


class OrdersMixin:

    async def upsert_order(self, order: OrderRecord) -> bool:
        """
        Create or update one order keyed by external id.

        Line items are replaced wholesale. The order write, the item delete
        and the item inserts commit together or not at all.

        Returns:
            True if the order was created, False if it was updated
        """
        async with self.connection() as conn:
            conn.execute("BEGIN TRANSACTION")
            try:
                row = conn.execute(
                    "SELECT id FROM orders WHERE external_id = ?", [order.external_id]
                ).fetchone()

                values = [
                    order.customer_name,
                    order.customer_city,
                    order.status,
                    order.total,
                    order.currency,
                    order.order_date,
                    order.paid_at,
                    order.shipped_at,
                    order.bonus,
                    order.delivery_cost,
                    order.bank_card,
                ]

                if row:
                    order_id = row[0]
                    conn.execute("""
                        UPDATE orders SET
                            customer_name = ?, customer_city = ?, status = ?,
                            total = ?, currency = ?, order_date = ?,
                            paid_at = ?, shipped_at = ?, bonus = ?,
                            delivery_cost = ?, bank_card = ?,
                            updated_at = CURRENT_TIMESTAMP
                        WHERE id = ?
                    """, values + [order_id])
                    conn.execute("DELETE FROM order_items WHERE order_id = ?", [order_id])
                    created = False
                else:
                    order_id = conn.execute("""
                        INSERT INTO orders (
                            customer_name, customer_city, status, total, currency,
                            order_date, paid_at, shipped_at, bonus, delivery_cost,
                            bank_card, external_id
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        RETURNING id
                    """, values + [order.external_id]).fetchone()[0]
                    created = True

                for item in order.items:
                    conn.execute("""
                        INSERT INTO order_items (order_id, name, quantity, price, total)
                        VALUES (?, ?, ?, ?, ?)
                    """, [order_id, item.name, item.quantity, item.price, item.total])

                conn.execute("COMMIT")
                return created

            except Exception:
                conn.execute("ROLLBACK")
                raise

    async def get_order_by_external_id(self, external_id: str) -> Optional[Dict[str, Any]]:
        """Get one order with its line items."""
        async with self.connection() as conn:
            row = conn.execute("""
                SELECT id, external_id, customer_name, customer_city, status, total,
                       currency, order_date, paid_at, shipped_at, bonus,
                       delivery_cost, bank_card
                FROM orders WHERE external_id = ?
            """, [str(external_id)]).fetchone()
            if not row:
                return None

            items = conn.execute("""
                SELECT id, name, quantity, price, total
                FROM order_items WHERE order_id = ? ORDER BY id
            """, [row[0]]).fetchall()

        return {
            "id": row[0],
            "external_id": row[1],
            "customer_name": row[2],
            "customer_city": row[3],
            "status": row[4],
            "total": float(row[5]),
            "currency": row[6],
            "order_date": row[7],
            "paid_at": row[8],
            "shipped_at": row[9],
            "bonus": float(row[10]) if row[10] is not None else None,
            "delivery_cost": float(row[11]) if row[11] is not None else None,
            "bank_card": row[12],
            "items": [
                {
                    "id": item[0],
                    "name": item[1],
                    "quantity": item[2],
                    "price": float(item[3]),
                    "total": float(item[4]),
                }
                for item in items
            ],
        }

    async def count_orders(self) -> int:
        async with self.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM orders").fetchone()[0]

    async def get_sales_by_item_name(
        self,
        date_from: datetime,
        date_to: datetime,
        excluded_statuses: Iterable[str] = (),
    ) -> List[Dict[str, Any]]:
        """
        Aggregate line items of in-window orders by item name.

        Orders whose lowercased status is in excluded_statuses are ignored.
        avg_price is the plain mean of observed unit prices.
        """
        excluded = [s.lower() for s in excluded_statuses]
        status_clause = ""
        params: List[Any] = [date_from, date_to]
        if excluded:
            placeholders = ",".join("?" for _ in excluded)
            status_clause = f"AND lower(coalesce(o.status, '')) NOT IN ({placeholders})"
            params.extend(excluded)

        async with self.connection() as conn:
            rows = conn.execute(f"""
                SELECT
                    oi.name,
                    SUM(oi.quantity) AS quantity,
                    SUM(oi.total) AS revenue,
                    AVG(oi.price) AS avg_price
                FROM order_items oi
                JOIN orders o ON o.id = oi.order_id
                WHERE o.order_date >= ? AND o.order_date <= ?
                  {status_clause}
                GROUP BY oi.name
            """, params).fetchall()

        return [
            {
                "name": row[0],
                "quantity": int(row[1]),
                "revenue": float(row[2]),
                "avg_price": float(row[3]),
            }
            for row in rows
        ]

    async def get_order_stats(self, date_from: datetime, date_to: datetime) -> Dict[str, Any]:
        """Order count, revenue and per-status counts over a window."""
        async with self.connection() as conn:
            totals = conn.execute("""
                SELECT COUNT(*), COALESCE(SUM(total), 0)
                FROM orders
                WHERE order_date >= ? AND order_date <= ?
            """, [date_from, date_to]).fetchone()

            by_status = conn.execute("""
                SELECT COALESCE(status, 'unknown'), COUNT(*)
                FROM orders
                WHERE order_date >= ? AND order_date <= ?
                GROUP BY 1
                ORDER BY 2 DESC
            """, [date_from, date_to]).fetchall()

        return {
            "total_orders": totals[0],
            "total_revenue": round(float(totals[1]), 2),
            "by_status": {status: count for status, count in by_status},
        }
