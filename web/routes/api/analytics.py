"""Product analytics, purchase plan and exchange-rate endpoints."""
from datetime import date as _date, timedelta as _timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from replenish.currency import record_exchange_rate
from replenish.exceptions import ValidationError
from web.config import READ_LIMIT
from web.schemas import (
    ExchangeRateRequest,
    ExchangeRateResponse,
    ProductAnalyticsResponse,
    ProductsAnalyticsResponse,
    PurchasePlanResponse,
)
from ._deps import AppServices, get_logger, get_services, limiter, parse_period

router = APIRouter()
logger = get_logger(__name__)

DEFAULT_PLAN_DAYS = 30


@router.get("/analytics/products", response_model=ProductsAnalyticsResponse)
@limiter.limit(READ_LIMIT)
async def get_products_analytics(
    request: Request,
    date_from: str = Query(..., alias="from", description="Start date YYYY-MM-DD"),
    date_to: str = Query(..., alias="to", description="End date YYYY-MM-DD (inclusive)"),
    services: AppServices = Depends(get_services),
):
    """Per-product analytics plus summary, sorted by margin percent."""
    start, end = parse_period(date_from, date_to)
    result = await services.analytics.compute_summary(start, end)

    return {
        "period": {"from": start.isoformat(), "to": end.isoformat()},
        "summary": result["summary"],
        "products": [row.to_dict() for row in result["products"]],
    }


@router.get("/analytics/products/{product_id}", response_model=ProductAnalyticsResponse)
@limiter.limit(READ_LIMIT)
async def get_product_analytics(
    request: Request,
    product_id: int,
    date_from: str = Query(..., alias="from"),
    date_to: str = Query(..., alias="to"),
    services: AppServices = Depends(get_services),
):
    """Analytics for a single product."""
    start, end = parse_period(date_from, date_to)
    row = await services.analytics.get_product_analytics(product_id, start, end)
    if row is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return row.to_dict()


@router.get("/analytics/purchase-recommendations", response_model=PurchasePlanResponse)
@limiter.limit(READ_LIMIT)
async def get_purchase_recommendations(
    request: Request,
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    lead_time_days: Optional[int] = Query(None, ge=1, le=365),
    min_stock: Optional[int] = Query(None, ge=0),
    services: AppServices = Depends(get_services),
):
    """Products to reorder, fewest days of stock first. Defaults to the last 30 days."""
    if date_from is None and date_to is None:
        end = _date.today()
        start = end - _timedelta(days=DEFAULT_PLAN_DAYS)
    else:
        start, end = parse_period(date_from or "", date_to or "")

    try:
        plan = await services.analytics.compute_purchase_plan(
            start, end, lead_time_days=lead_time_days, min_stock=min_stock
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "period": {"from": start.isoformat(), "to": end.isoformat()},
        "leadTimeDays": plan["leadTimeDays"],
        "minStock": plan["minStock"],
        "recommendations": [r.to_dict() for r in plan["recommendations"]],
        "totals": plan["totals"],
    }


@router.post("/analytics/exchange-rate", response_model=ExchangeRateResponse)
@limiter.limit("10/minute")
async def update_exchange_rate(
    request: Request,
    body: ExchangeRateRequest,
    services: AppServices = Depends(get_services),
):
    """Record a new exchange rate; analytics use the latest one."""
    try:
        row = await record_exchange_rate(
            services.store,
            body.rate,
            buffer_percent=body.bufferPercent,
            currency=body.currency,
            source="manual",
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Exchange rate updated: {row.currency} {row.rate} (+{row.buffer_percent}%)")
    return {
        "currency": row.currency,
        "rate": row.rate,
        "bufferPercent": row.buffer_percent,
        "rateWithBuffer": row.rate_with_buffer,
        "source": row.source,
        "effectiveDate": row.effective_date.isoformat(),
    }
