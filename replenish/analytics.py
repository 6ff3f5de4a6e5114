"""
Per-product financial and inventory analytics over a date window.

Figures are computed on demand from the store and never persisted:

    base_cost_rub   = cost_price_try * exchange_rate
    full_unit_cost  = base_cost_rub + delivery + logistics + advertising + other
    margin          = avg_retail_price - full_unit_cost
    margin_percent  = margin / full_unit_cost * 100
    days_until_zero = floor(stock / avg_daily_consumption)

Shared costs (logistics, advertising, other) are spread evenly over every
unit sold in the window; delivery is a fixed cost per unit.

Sales are attributed to products by exact item name.
"""
import math
from datetime import date, datetime, time
from typing import Any, Callable, Dict, List, Optional, Union

from replenish.config import AnalyticsConfig, config
from replenish.currency import StoredExchangeRateProvider
from replenish.exceptions import ValidationError
from replenish.models import (
    ExpenseBreakdown,
    ProductAnalytics,
    PurchaseRecommendation,
    UrgencyLevel,
)
from replenish.observability import Timer, get_logger
from replenish.store import Store

logger = get_logger(__name__)

DateLike = Union[date, datetime]


# ═══════════════════════════════════════════════════════════════════════════════
# PURCHASING RULES
# ═══════════════════════════════════════════════════════════════════════════════

def classify_urgency(days_until_zero: int, stock: int, lead_time_days: int, min_stock: int) -> UrgencyLevel:
    """Critical within half the lead time or at minimum stock; warning within lead time."""
    if days_until_zero <= lead_time_days / 2 or stock <= min_stock:
        return UrgencyLevel.CRITICAL
    if days_until_zero <= lead_time_days or stock <= min_stock * 1.5:
        return UrgencyLevel.WARNING
    return UrgencyLevel.NORMAL


def recommended_quantity(
    avg_daily_consumption: float,
    stock: int,
    lead_time_days: int,
    min_stock: int,
    urgency: UrgencyLevel,
) -> int:
    """Units to cover the lead time plus a double minimum-stock cushion."""
    if urgency == UrgencyLevel.NORMAL:
        return 0
    needed = avg_daily_consumption * lead_time_days + min_stock * 2 - stock
    return max(math.ceil(needed), 0)


def _window(date_from: DateLike, date_to: DateLike) -> tuple:
    """Start of from-day to end of to-day, as naive datetimes."""
    start = date_from if isinstance(date_from, datetime) else datetime.combine(date_from, time.min)
    end_day = date_to.date() if isinstance(date_to, datetime) else date_to
    end = datetime.combine(end_day, time.max)
    if start > end:
        raise ValidationError("from", "must be on or before 'to'", date_from)
    return start, end


class AnalyticsEngine:
    """
    Computes ProductAnalytics for all visible products.

    Store read failures propagate; there are no partial results.

    Usage:
        engine = AnalyticsEngine(store)
        rows = await engine.compute_products_analytics(date(2025, 6, 1), date(2025, 6, 30))
    """

    def __init__(
        self,
        store: Store,
        rate_provider: Optional[StoredExchangeRateProvider] = None,
        settings: Optional[AnalyticsConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings or config.analytics
        self.rate_provider = rate_provider or StoredExchangeRateProvider(store, self.settings)
        self.clock = clock or datetime.now

    async def compute_products_analytics(
        self, date_from: DateLike, date_to: DateLike
    ) -> List[ProductAnalytics]:
        """Analytics for every non-hidden product, sorted by margin percent descending."""
        start, end = _window(date_from, date_to)

        with Timer("products_analytics", logger):
            rate = await self.rate_provider.get_rate(self.settings.cost_currency)
            expense_totals = await self.store.get_expense_totals(start, end)
            products = await self.store.get_visible_products()
            sales = await self.store.get_sales_by_item_name(
                start, end, self.settings.excluded_statuses
            )

        sales_by_name = {row["name"]: row for row in sales}
        total_units = sum(row["quantity"] for row in sales)
        elapsed_days = self._elapsed_days(start, end)

        categories = self.settings.expense_categories

        def per_unit(bucket: str) -> float:
            total = expense_totals.get(categories[bucket], 0.0)
            return round(total / total_units, 2) if total_units > 0 else 0.0

        breakdown = ExpenseBreakdown(
            delivery=self.settings.delivery_cost_per_unit,
            logistics=per_unit("logistics"),
            advertising=per_unit("advertising"),
            other=per_unit("other"),
        )

        results = [
            self._analyze(product, sales_by_name.get(product["name"]), rate, breakdown, elapsed_days)
            for product in products
        ]
        results.sort(key=lambda r: r.margin_percent, reverse=True)

        logger.info(
            f"Computed analytics for {len(results)} products",
            extra={"elapsed_days": elapsed_days, "units_sold": total_units, "rate": rate}
        )
        return results

    async def get_product_analytics(
        self, product_id: int, date_from: DateLike, date_to: DateLike
    ) -> Optional[ProductAnalytics]:
        """Analytics for one product, or None when it is unknown or hidden."""
        for row in await self.compute_products_analytics(date_from, date_to):
            if row.product_id == product_id:
                return row
        return None

    async def compute_summary(self, date_from: DateLike, date_to: DateLike) -> Dict[str, Any]:
        """Products plus portfolio-level summary figures."""
        rows = await self.compute_products_analytics(date_from, date_to)
        count = len(rows)

        summary = {
            "totalProducts": count,
            "avgMarginPercent": round(sum(r.margin_percent for r in rows) / count, 2) if count else 0,
            "totalRevenue": round(sum(r.revenue for r in rows), 2),
            "totalMargin": round(sum(r.margin * r.units_sold for r in rows), 2),
            "criticalProducts": sum(
                1 for r in rows if r.days_until_zero <= self.settings.critical_days_threshold
            ),
            "topPerformers": [
                {"id": r.product_id, "name": r.name, "marginPercent": r.margin_percent}
                for r in rows[:self.settings.top_performers_limit]
            ],
        }
        return {"summary": summary, "products": rows}

    async def compute_purchase_plan(
        self,
        date_from: DateLike,
        date_to: DateLike,
        lead_time_days: Optional[int] = None,
        min_stock: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Products that need reordering, most urgent (fewest days left) first."""
        lead_time_days = self.settings.lead_time_days if lead_time_days is None else lead_time_days
        min_stock = self.settings.min_stock if min_stock is None else min_stock
        if lead_time_days <= 0:
            raise ValidationError("lead_time_days", "must be positive", lead_time_days)
        if min_stock < 0:
            raise ValidationError("min_stock", "must not be negative", min_stock)

        recommendations = []
        for row in await self.compute_products_analytics(date_from, date_to):
            urgency = classify_urgency(row.days_until_zero, row.stock, lead_time_days, min_stock)
            quantity = recommended_quantity(
                row.avg_daily_consumption, row.stock, lead_time_days, min_stock, urgency
            )
            if quantity <= 0:
                continue
            recommendations.append(PurchaseRecommendation(
                product_id=row.product_id,
                name=row.name,
                current_stock=row.stock,
                in_transit=row.in_transit,
                avg_daily_consumption=row.avg_daily_consumption,
                days_until_zero=row.days_until_zero,
                urgency=urgency,
                recommended_quantity=quantity,
                estimated_cost=round(quantity * row.cost_price_rub, 2),
                reason=self._reason(row, lead_time_days, min_stock),
            ))

        recommendations.sort(key=lambda r: r.days_until_zero)

        return {
            "leadTimeDays": lead_time_days,
            "minStock": min_stock,
            "recommendations": recommendations,
            "totals": {
                "items": len(recommendations),
                "quantity": sum(r.recommended_quantity for r in recommendations),
                "estimatedCost": round(sum(r.estimated_cost for r in recommendations), 2),
                "critical": sum(1 for r in recommendations if r.urgency == UrgencyLevel.CRITICAL),
                "warning": sum(1 for r in recommendations if r.urgency == UrgencyLevel.WARNING),
            },
        }

    # ═══════════════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════════════

    def _elapsed_days(self, start: datetime, end: datetime) -> int:
        effective_end = min(end, self.clock())
        seconds = (effective_end - start).total_seconds()
        return max(1, math.ceil(seconds / 86400))

    def _analyze(
        self,
        product: Dict[str, Any],
        sales: Optional[Dict[str, Any]],
        rate: float,
        breakdown: ExpenseBreakdown,
        elapsed_days: int,
    ) -> ProductAnalytics:
        units_sold = sales["quantity"] if sales else 0
        revenue = sales["revenue"] if sales else 0.0
        avg_retail_price = sales["avg_price"] if sales else product["price"]

        cost_price_try = product["cost_price_try"]
        base_cost_rub = cost_price_try * rate
        full_unit_cost = (
            base_cost_rub + breakdown.delivery + breakdown.logistics
            + breakdown.advertising + breakdown.other
        )

        avg_daily = units_sold / elapsed_days
        if avg_daily > 0:
            days_until_zero = math.floor(product["stock"] / avg_daily)
        else:
            days_until_zero = self.settings.no_consumption_days

        margin = avg_retail_price - full_unit_cost
        margin_percent = margin / full_unit_cost * 100 if full_unit_cost > 0 else 0.0

        return ProductAnalytics(
            product_id=product["id"],
            external_id=product["external_id"],
            name=product["name"],
            brand=product["brand"],
            stock=product["stock"],
            in_transit=product["in_transit"],
            cost_price_try=round(cost_price_try, 2),
            cost_price_rub=round(base_cost_rub, 2),
            avg_retail_price=round(avg_retail_price, 2),
            avg_daily_consumption=round(avg_daily, 2),
            days_until_zero=days_until_zero,
            margin=round(margin, 2),
            margin_percent=round(margin_percent, 2),
            units_sold=units_sold,
            revenue=round(revenue, 2),
            expenses=breakdown,
            full_unit_cost=round(full_unit_cost, 2),
            has_sales_data=units_sold > 0,
        )

    @staticmethod
    def _reason(row: ProductAnalytics, lead_time_days: int, min_stock: int) -> str:
        if row.stock <= min_stock:
            return f"Stock {row.stock} at or below minimum {min_stock}"
        if row.days_until_zero <= lead_time_days:
            return f"Runs out in {row.days_until_zero} days, lead time is {lead_time_days} days"
        return f"Stock {row.stock} close to minimum {min_stock}"
