"""
Pydantic response models for API endpoints.

Field names follow the dashboard's camelCase JSON contract.
"""
from typing import Optional, List, Dict
from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════════
# SYNC
# ═══════════════════════════════════════════════════════════════════════════════

class LegResultResponse(BaseModel):
    """Outcome of one sync leg."""
    success: bool
    result: Optional[Dict[str, int]] = Field(None, description="Per-record counts when the leg ran")
    error: Optional[str] = Field(None, description="Leg-level error message")
    errorKind: Optional[str] = Field(
        None, description="configuration, connection, api, data or unexpected"
    )
    fetched: int = Field(0, description="Records received from upstream")
    durationMs: float = 0


class SyncRunResponse(BaseModel):
    """Summary of one sync run."""
    runId: Optional[str] = None
    success: bool = Field(description="True when both legs succeeded")
    startedAt: str
    finishedAt: str
    orders: LegResultResponse
    products: LegResultResponse


class SyncStatusResponse(BaseModel):
    """Scheduler state."""
    isRunning: bool = Field(description="Whether the recurring timer is armed")
    isSyncInProgress: bool = Field(description="Whether a run is executing right now")
    lastRunTime: Optional[str] = None
    nextRunTime: Optional[str] = None
    schedule: str = Field(description="Cron expression of the cadence")
    timezone: str
    lastResults: Optional[SyncRunResponse] = None
    lastError: Optional[str] = Field(None, description="Error of the last run that raised")
    runCount: int = 0
    errorCount: int = 0
    skippedCount: int = 0


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYTICS
# ═══════════════════════════════════════════════════════════════════════════════

class ExpenseBreakdownResponse(BaseModel):
    """Per-unit cost allocation in RUB."""
    delivery: float
    logistics: float
    advertising: float
    other: float
    total: float


class ProductAnalyticsResponse(BaseModel):
    """Analytics for one product over the requested window."""
    id: int
    externalId: str
    name: str
    brand: Optional[str] = None
    currentStock: int
    inTransit: int
    costPriceTRY: float
    costPriceRUB: float
    avgRetailPrice: float
    avgDailyConsumption: float
    daysUntilZero: int = Field(description="Projected days of stock; 999 when nothing sold")
    margin: float
    marginPercent: float
    salesCount: int
    revenue: float
    expenses: ExpenseBreakdownResponse
    fullUnitCost: float
    hasSalesData: bool = Field(description="False when no sales matched in the window")


class TopPerformer(BaseModel):
    id: int
    name: str
    marginPercent: float


class AnalyticsSummary(BaseModel):
    """Portfolio-level figures."""
    totalProducts: int
    avgMarginPercent: float
    totalRevenue: float
    totalMargin: float
    criticalProducts: int = Field(description="Products with 7 or fewer days of stock")
    topPerformers: List[TopPerformer]


class Period(BaseModel):
    # "from" is a keyword, so the field is aliased
    from_: str = Field(alias="from")
    to: str


class ProductsAnalyticsResponse(BaseModel):
    period: Period
    summary: AnalyticsSummary
    products: List[ProductAnalyticsResponse]


class PurchaseRecommendationResponse(BaseModel):
    productId: int
    name: str
    currentStock: int
    inTransit: int
    avgDailyConsumption: float
    daysUntilZero: int
    urgency: str = Field(description="critical, warning or normal")
    recommendedQuantity: int
    estimatedCost: float = Field(description="Quantity times RUB unit cost")
    reason: str


class PurchasePlanTotals(BaseModel):
    items: int
    quantity: int
    estimatedCost: float
    critical: int
    warning: int


class PurchasePlanResponse(BaseModel):
    period: Period
    leadTimeDays: int
    minStock: int
    recommendations: List[PurchaseRecommendationResponse]
    totals: PurchasePlanTotals


class ExchangeRateRequest(BaseModel):
    rate: float = Field(gt=0, description="RUB per one unit of cost currency")
    bufferPercent: float = Field(5.0, ge=0, description="Markup applied to the raw rate")
    currency: Optional[str] = Field(None, description="Defaults to the cost currency (TRY)")


class ExchangeRateResponse(BaseModel):
    currency: str
    rate: float
    bufferPercent: float
    rateWithBuffer: float
    source: str
    effectiveDate: str


# ═══════════════════════════════════════════════════════════════════════════════
# PRODUCTS
# ═══════════════════════════════════════════════════════════════════════════════

class ProductCostRequest(BaseModel):
    costPriceTRY: float = Field(gt=0, description="Purchase cost in the cost currency")
    exchangeRate: Optional[float] = Field(
        None, gt=0, description="RUB per unit; defaults to the current stored rate"
    )


class InTransitRequest(BaseModel):
    quantity: int = Field(ge=0, description="Units ordered but not yet received")


class HiddenRequest(BaseModel):
    hidden: bool = Field(description="Hidden products are excluded from analytics")


class ProductResponse(BaseModel):
    """Locally maintained product fields."""
    id: int
    externalId: str
    name: str
    price: float
    stock: int
    costPriceTRY: float
    costPriceRUB: float
    inTransit: int
    isHidden: bool


# ═══════════════════════════════════════════════════════════════════════════════
# ORDERS
# ═══════════════════════════════════════════════════════════════════════════════

class OrderStatsResponse(BaseModel):
    """Order counts over a window; every status is counted."""
    period: Period
    totalOrders: int
    totalRevenue: float
    byStatus: Dict[str, int]


class OrderItemResponse(BaseModel):
    name: str
    quantity: int
    price: float
    total: float


class OrderResponse(BaseModel):
    id: int
    externalId: str
    customerName: Optional[str] = None
    customerCity: Optional[str] = None
    status: Optional[str] = None
    total: float
    currency: Optional[str] = None
    orderDate: str = Field(description="Paid time when known, else creation time")
    items: List[OrderItemResponse]


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    database: str = Field(description="Store status")
    scheduler_running: bool
