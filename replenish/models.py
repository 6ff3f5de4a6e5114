"""
Domain models for upstream records, sync results and analytics.

Raw upstream payloads are parsed into these dataclasses before anything
touches the store, so every record that reaches a repository method is
already validated.
"""
import math
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from replenish.exceptions import ValidationError

DEFAULT_CURRENCY = "RUB"


# ═══════════════════════════════════════════════════════════════════════════════
# PARSING HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def parse_upstream_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an upstream "DD.MM.YYYY HH:MM:SS" timestamp into a naive datetime.

    Returns None for empty or malformed values.
    """
    if not isinstance(value, str) or not value.strip():
        return None

    parts = value.strip().split(" ")
    if len(parts) != 2:
        return None

    date_parts = parts[0].split(".")
    time_parts = parts[1].split(":")
    if len(date_parts) != 3 or len(time_parts) != 3:
        return None

    try:
        day, month, year = (int(p) for p in date_parts)
        hours, minutes, seconds = (int(p) for p in time_parts)
        return datetime(year, month, day, hours, minutes, seconds)
    except ValueError:
        return None


def parse_amount(value: Any) -> Optional[float]:
    """Parse a monetary amount sent as string or number. None if not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _parse_quantity(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or not number.is_integer():
        return None
    return int(number)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


# ═══════════════════════════════════════════════════════════════════════════════
# UPSTREAM RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class OrderItemRecord:
    """Validated order line item."""
    name: str
    quantity: int
    price: float

    @property
    def total(self) -> float:
        return round(self.price * self.quantity, 2)


@dataclass
class OrderRecord:
    """Validated upstream order ready to be upserted."""
    external_id: str
    status: Optional[str]
    total: float
    order_date: datetime
    customer_name: Optional[str] = None
    customer_city: Optional[str] = None
    currency: str = DEFAULT_CURRENCY
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    bonus: Optional[float] = None
    delivery_cost: Optional[float] = None
    bank_card: Optional[str] = None
    items: List[OrderItemRecord] = field(default_factory=list)
    dropped_items: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "OrderRecord":
        """
        Build an OrderRecord from a raw upstream order.

        The effective order date is paid_at when present, else created_at.
        Items with a non-numeric price or non-positive quantity are moved to
        dropped_items instead of failing the order.

        Raises:
            ValidationError: the order must be skipped (bad id, total or date)
        """
        if not isinstance(data, dict):
            raise ValidationError("order", "expected an object", type(data).__name__)

        raw_id = data.get("id")
        if raw_id is None or str(raw_id).strip() == "":
            raise ValidationError("id", "missing order id")

        total = parse_amount(data.get("total_amount"))
        if total is None:
            raise ValidationError("total_amount", "not a number", data.get("total_amount"))
        if total < 0:
            raise ValidationError("total_amount", "negative total", data.get("total_amount"))

        date_source = "paid_at" if data.get("paid_at") else "created_at"
        order_date = parse_upstream_datetime(data.get(date_source))
        if order_date is None:
            raise ValidationError(date_source, "unparsable date", data.get(date_source))

        user = data.get("user") or {}
        if not isinstance(user, dict):
            raise ValidationError("user", "expected an object", type(user).__name__)

        raw_items = data.get("order_items") or []
        if not isinstance(raw_items, list):
            raise ValidationError("order_items", "expected a list", type(raw_items).__name__)

        items: List[OrderItemRecord] = []
        dropped: List[Dict[str, Any]] = []
        for raw_item in raw_items:
            item = _parse_item(raw_item)
            if item is None:
                dropped.append(raw_item)
            else:
                items.append(item)

        return cls(
            external_id=str(raw_id),
            status=_optional_str(data.get("status")),
            total=round(total, 2),
            order_date=order_date,
            customer_name=user.get("full_name"),
            customer_city=user.get("city"),
            paid_at=parse_upstream_datetime(data.get("paid_at")),
            shipped_at=parse_upstream_datetime(data.get("shipped_at")),
            bonus=parse_amount(data.get("bonus")),
            delivery_cost=parse_amount(data.get("delivery_cost")),
            bank_card=_optional_str(data.get("bank_card")),
            items=items,
            dropped_items=dropped,
        )


def _parse_item(raw: Any) -> Optional[OrderItemRecord]:
    if not isinstance(raw, dict):
        return None
    price = parse_amount(raw.get("price"))
    quantity = _parse_quantity(raw.get("quantity"))
    if price is None or price < 0 or quantity is None or quantity <= 0:
        return None
    return OrderItemRecord(
        name=str(raw.get("name") or "").strip(),
        quantity=quantity,
        price=round(price, 2),
    )


@dataclass
class ProductRecord:
    """Validated upstream product ready to be upserted."""
    external_id: str
    name: str
    price: float
    stock: int = 0
    description: Optional[str] = None
    brand: Optional[str] = None
    main_ingredient: Optional[str] = None
    dosage_form: Optional[str] = None
    package_quantity: Optional[str] = None
    weight: Optional[str] = None
    stock_coerced: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ProductRecord":
        """
        Build a ProductRecord from a raw upstream product.

        A missing, zero, unparsable or negative price rejects the product.
        Missing or negative stock is coerced to 0 and flagged.

        Raises:
            ValidationError: the product must be skipped
        """
        if not isinstance(data, dict):
            raise ValidationError("product", "expected an object", type(data).__name__)

        raw_id = data.get("id")
        if raw_id is None or str(raw_id).strip() == "":
            raise ValidationError("id", "missing product id")

        price = parse_amount(data.get("price"))
        if price is None or price <= 0:
            raise ValidationError("price", "missing or non-positive price", data.get("price"))

        raw_stock = data.get("stock_quantity")
        stock = _parse_quantity(raw_stock)
        coerced = False
        if stock is None or stock < 0:
            coerced = raw_stock is not None
            stock = 0

        return cls(
            external_id=str(raw_id),
            name=str(data.get("name") or "").strip(),
            price=round(price, 2),
            stock=stock,
            description=data.get("description"),
            brand=data.get("brand"),
            main_ingredient=data.get("main_ingredient"),
            dosage_form=data.get("dosage_form"),
            package_quantity=_optional_str(data.get("package_quantity")),
            weight=_optional_str(data.get("weight")),
            stock_coerced=coerced,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# SYNC RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class OrderSyncResult:
    """Outcome counts for one order batch."""
    imported: int = 0
    skipped: int = 0
    errored: int = 0
    items_dropped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class ProductSyncResult:
    """Outcome counts for one product batch."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errored: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class LegErrorKind(str, Enum):
    """Why a sync leg failed as a whole."""
    CONFIGURATION = "configuration"
    CONNECTION = "connection"
    API = "api"
    DATA = "data"
    UNEXPECTED = "unexpected"


@dataclass
class LegResult:
    """Result of one sync leg (orders or products)."""
    name: str
    success: bool
    result: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[LegErrorKind] = None
    fetched: int = 0
    duration_ms: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "result": self.result.to_dict() if self.result is not None else None,
            "error": self.error,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "fetched": self.fetched,
            "durationMs": self.duration_ms,
        }


@dataclass
class SyncRunSummary:
    """Per-leg summary of one orchestrated run."""
    orders: LegResult
    products: LegResult
    started_at: datetime
    finished_at: datetime
    run_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.orders.success and self.products.success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "success": self.success,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "orders": self.orders.to_dict(),
            "products": self.products.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYTICS
# ═══════════════════════════════════════════════════════════════════════════════

class UrgencyLevel(str, Enum):
    """Purchasing urgency of a product."""
    CRITICAL = "critical"
    WARNING = "warning"
    NORMAL = "normal"


@dataclass
class ExpenseBreakdown:
    """Per-unit cost allocation in RUB."""
    delivery: float = 0.0
    logistics: float = 0.0
    advertising: float = 0.0
    other: float = 0.0

    @property
    def total(self) -> float:
        return round(self.delivery + self.logistics + self.advertising + self.other, 2)

    def to_dict(self) -> Dict[str, float]:
        return {
            "delivery": self.delivery,
            "logistics": self.logistics,
            "advertising": self.advertising,
            "other": self.other,
            "total": self.total,
        }


@dataclass
class ProductAnalytics:
    """Derived per-product financial and inventory figures for a window."""
    product_id: int
    external_id: str
    name: str
    brand: Optional[str]
    stock: int
    in_transit: int
    cost_price_try: float
    cost_price_rub: float
    avg_retail_price: float
    avg_daily_consumption: float
    days_until_zero: int
    margin: float
    margin_percent: float
    units_sold: int
    revenue: float
    expenses: ExpenseBreakdown
    full_unit_cost: float
    has_sales_data: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.product_id,
            "externalId": self.external_id,
            "name": self.name,
            "brand": self.brand,
            "currentStock": self.stock,
            "inTransit": self.in_transit,
            "costPriceTRY": self.cost_price_try,
            "costPriceRUB": self.cost_price_rub,
            "avgRetailPrice": self.avg_retail_price,
            "avgDailyConsumption": self.avg_daily_consumption,
            "daysUntilZero": self.days_until_zero,
            "margin": self.margin,
            "marginPercent": self.margin_percent,
            "salesCount": self.units_sold,
            "revenue": self.revenue,
            "expenses": self.expenses.to_dict(),
            "fullUnitCost": self.full_unit_cost,
            "hasSalesData": self.has_sales_data,
        }


@dataclass
class PurchaseRecommendation:
    """Suggested reorder for one product."""
    product_id: int
    name: str
    current_stock: int
    in_transit: int
    avg_daily_consumption: float
    days_until_zero: int
    urgency: UrgencyLevel
    recommended_quantity: int
    estimated_cost: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "name": self.name,
            "currentStock": self.current_stock,
            "inTransit": self.in_transit,
            "avgDailyConsumption": self.avg_daily_consumption,
            "daysUntilZero": self.days_until_zero,
            "urgency": self.urgency.value,
            "recommendedQuantity": self.recommended_quantity,
            "estimatedCost": self.estimated_cost,
            "reason": self.reason,
        }


@dataclass
class ExchangeRate:
    """One stored exchange rate row."""
    currency: str
    rate: float
    rate_with_buffer: float
    buffer_percent: float
    source: str
    effective_date: date
