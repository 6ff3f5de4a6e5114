"""Store product methods: sync upsert plus locally-maintained fields."""
from __future__ import annotations

import logging
from typing import Optional, List, Dict, Any

from replenish.models import ProductRecord

logger = logging.getLogger(__name__)

_PRODUCT_COLUMNS = """
    id, external_id, name, brand, description, price, cost_price_try,
    cost_price_rub, stock, main_ingredient, dosage_form, package_quantity,
    weight, is_hidden, in_transit
"""


def _row_to_product(row: tuple) -> Dict[str, Any]:
    return {
        "id": row[0],
        "external_id": row[1],
        "name": row[2],
        "brand": row[3],
        "description": row[4],
        "price": float(row[5]) if row[5] is not None else 0.0,
        "cost_price_try": float(row[6]) if row[6] is not None else 0.0,
        "cost_price_rub": float(row[7]) if row[7] is not None else 0.0,
        "stock": row[8] or 0,
        "main_ingredient": row[9],
        "dosage_form": row[10],
        "package_quantity": row[11],
        "weight": row[12],
        "is_hidden": bool(row[13]),
        "in_transit": row[14] or 0,
    }


class ProductsMixin:

    async def upsert_product(self, product: ProductRecord) -> bool:
        """
        Create or update one product keyed by external id.

        Cost prices, is_hidden and in_transit are maintained locally and are
        left untouched on update.

        Returns:
            True if the product was created, False if it was updated
        """
        values = [
            product.name,
            product.description,
            product.price,
            product.stock,
            product.brand,
            product.main_ingredient,
            product.dosage_form,
            product.package_quantity,
            product.weight,
        ]

        async with self.connection() as conn:
            row = conn.execute(
                "SELECT id FROM products WHERE external_id = ?", [product.external_id]
            ).fetchone()

            if row:
                conn.execute("""
                    UPDATE products SET
                        name = ?, description = ?, price = ?, stock = ?, brand = ?,
                        main_ingredient = ?, dosage_form = ?, package_quantity = ?,
                        weight = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                """, values + [row[0]])
                return False

            conn.execute("""
                INSERT INTO products (
                    name, description, price, stock, brand, main_ingredient,
                    dosage_form, package_quantity, weight, external_id
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, values + [product.external_id])
            return True

    async def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        async with self.connection() as conn:
            row = conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id = ?", [product_id]
            ).fetchone()
        return _row_to_product(row) if row else None

    async def get_product_by_external_id(self, external_id: str) -> Optional[Dict[str, Any]]:
        async with self.connection() as conn:
            row = conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE external_id = ?", [str(external_id)]
            ).fetchone()
        return _row_to_product(row) if row else None

    async def get_visible_products(self) -> List[Dict[str, Any]]:
        """All products not flagged hidden, ordered by id."""
        async with self.connection() as conn:
            rows = conn.execute(f"""
                SELECT {_PRODUCT_COLUMNS}
                FROM products
                WHERE NOT is_hidden
                ORDER BY id
            """).fetchall()
        return [_row_to_product(row) for row in rows]

    async def count_products(self) -> int:
        async with self.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM products").fetchone()[0]

    async def set_product_costs(self, product_id: int, cost_price_try: float, exchange_rate: float) -> bool:
        """Store the TRY cost price and its RUB equivalent at the given rate."""
        cost_price_rub = round(cost_price_try * exchange_rate, 2)
        async with self.connection() as conn:
            updated = conn.execute("""
                UPDATE products
                SET cost_price_try = ?, cost_price_rub = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                RETURNING id
            """, [cost_price_try, cost_price_rub, product_id]).fetchall()
        if updated:
            logger.info(f"Product {product_id} cost set: {cost_price_try} TRY / {cost_price_rub} RUB")
        return bool(updated)

    async def set_product_in_transit(self, product_id: int, quantity: int) -> bool:
        async with self.connection() as conn:
            updated = conn.execute("""
                UPDATE products SET in_transit = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                RETURNING id
            """, [max(0, int(quantity)), product_id]).fetchall()
        return bool(updated)

    async def set_product_hidden(self, product_id: int, hidden: bool = True) -> bool:
        async with self.connection() as conn:
            updated = conn.execute("""
                UPDATE products SET is_hidden = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                RETURNING id
            """, [hidden, product_id]).fetchall()
        return bool(updated)
