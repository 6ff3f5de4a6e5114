"""Order stats and single-order lookup."""
from datetime import datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from web.config import READ_LIMIT
from web.schemas import OrderResponse, OrderStatsResponse
from ._deps import AppServices, get_services, limiter, parse_period

router = APIRouter()


@router.get("/orders/stats", response_model=OrderStatsResponse)
@limiter.limit(READ_LIMIT)
async def get_order_stats(
    request: Request,
    date_from: str = Query(..., alias="from", description="Start date YYYY-MM-DD"),
    date_to: str = Query(..., alias="to", description="End date YYYY-MM-DD (inclusive)"),
    services: AppServices = Depends(get_services),
):
    """Order count, revenue and per-status counts over a window."""
    start, end = parse_period(date_from, date_to)
    stats = await services.store.get_order_stats(
        datetime.combine(start, time.min), datetime.combine(end, time.max)
    )

    return {
        "period": {"from": start.isoformat(), "to": end.isoformat()},
        "totalOrders": stats["total_orders"],
        "totalRevenue": stats["total_revenue"],
        "byStatus": stats["by_status"],
    }


@router.get("/orders/{external_id}", response_model=OrderResponse)
@limiter.limit(READ_LIMIT)
async def get_order(
    request: Request,
    external_id: str,
    services: AppServices = Depends(get_services),
):
    order = await services.store.get_order_by_external_id(external_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    return {
        "id": order["id"],
        "externalId": order["external_id"],
        "customerName": order["customer_name"],
        "customerCity": order["customer_city"],
        "status": order["status"],
        "total": order["total"],
        "currency": order["currency"],
        "orderDate": order["order_date"].isoformat(),
        "items": [
            {
                "name": item["name"],
                "quantity": item["quantity"],
                "price": item["price"],
                "total": item["total"],
            }
            for item in order["items"]
        ],
    }
