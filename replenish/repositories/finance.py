"""Store exchange-rate and expense methods."""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Dict

from replenish.models import ExchangeRate

logger = logging.getLogger(__name__)


class FinanceMixin:

    # ─── Exchange rates (append-only) ────────────────────────────────────────

    async def add_exchange_rate(self, rate: ExchangeRate) -> int:
        """Append an exchange rate row. Existing rows are never modified."""
        async with self.connection() as conn:
            row = conn.execute("""
                INSERT INTO exchange_rates
                    (currency, rate, rate_with_buffer, buffer_percent, source, effective_date)
                VALUES (?, ?, ?, ?, ?, ?)
                RETURNING id
            """, [
                rate.currency,
                rate.rate,
                rate.rate_with_buffer,
                rate.buffer_percent,
                rate.source,
                rate.effective_date,
            ]).fetchone()
        logger.info(
            f"Exchange rate recorded: {rate.currency} {rate.rate_with_buffer} ({rate.source})",
            extra={"currency": rate.currency, "rate": rate.rate, "buffer_percent": rate.buffer_percent}
        )
        return row[0]

    async def get_latest_exchange_rate(self, currency: str) -> Optional[ExchangeRate]:
        """Latest row by effective date; insertion order breaks ties."""
        async with self.connection() as conn:
            row = conn.execute("""
                SELECT currency, rate, rate_with_buffer, buffer_percent, source, effective_date
                FROM exchange_rates
                WHERE currency = ?
                ORDER BY effective_date DESC, id DESC
                LIMIT 1
            """, [currency]).fetchone()

        if not row:
            return None
        return ExchangeRate(
            currency=row[0],
            rate=float(row[1]),
            rate_with_buffer=float(row[2]),
            buffer_percent=float(row[3]),
            source=row[4],
            effective_date=row[5],
        )

    # ─── Expenses ────────────────────────────────────────────────────────────

    async def add_expense(
        self,
        category: str,
        amount: float,
        expense_date: date,
        product_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> int:
        async with self.connection() as conn:
            row = conn.execute("""
                INSERT INTO expenses (category, amount, expense_date, product_id, description)
                VALUES (?, ?, ?, ?, ?)
                RETURNING id
            """, [category, amount, expense_date, product_id, description]).fetchone()
        return row[0]

    async def get_expense_totals(self, date_from: datetime, date_to: datetime) -> Dict[str, float]:
        """Sum of expense amounts per category over the window."""
        async with self.connection() as conn:
            rows = conn.execute("""
                SELECT category, SUM(amount)
                FROM expenses
                WHERE expense_date >= CAST(? AS DATE) AND expense_date <= CAST(? AS DATE)
                GROUP BY category
            """, [date_from, date_to]).fetchall()
        return {category: float(total) for category, total in rows}
