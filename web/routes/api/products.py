"""Locally maintained product fields: cost, in-transit stock, visibility."""
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from web.schemas import HiddenRequest, InTransitRequest, ProductCostRequest, ProductResponse
from ._deps import AppServices, get_logger, get_services, limiter

router = APIRouter()
logger = get_logger(__name__)


async def _product_response(services: AppServices, product_id: int) -> Dict[str, Any]:
    product = await services.store.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return {
        "id": product["id"],
        "externalId": product["external_id"],
        "name": product["name"],
        "price": product["price"],
        "stock": product["stock"],
        "costPriceTRY": product["cost_price_try"],
        "costPriceRUB": product["cost_price_rub"],
        "inTransit": product["in_transit"],
        "isHidden": product["is_hidden"],
    }


@router.put("/products/{product_id}/cost", response_model=ProductResponse)
@limiter.limit("10/minute")
async def set_product_cost(
    request: Request,
    product_id: int,
    body: ProductCostRequest,
    services: AppServices = Depends(get_services),
):
    """Set the purchase cost; the RUB cost is derived at the given or current rate."""
    rate = body.exchangeRate
    if rate is None:
        rate = await services.analytics.rate_provider.get_rate()

    if not await services.store.set_product_costs(product_id, body.costPriceTRY, rate):
        raise HTTPException(status_code=404, detail="Product not found")
    return await _product_response(services, product_id)


@router.put("/products/{product_id}/in-transit", response_model=ProductResponse)
@limiter.limit("10/minute")
async def set_product_in_transit(
    request: Request,
    product_id: int,
    body: InTransitRequest,
    services: AppServices = Depends(get_services),
):
    """Record units ordered from the supplier but not yet in stock."""
    if not await services.store.set_product_in_transit(product_id, body.quantity):
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info(f"Product {product_id} in transit: {body.quantity}")
    return await _product_response(services, product_id)


@router.put("/products/{product_id}/hidden", response_model=ProductResponse)
@limiter.limit("10/minute")
async def set_product_hidden(
    request: Request,
    product_id: int,
    body: HiddenRequest,
    services: AppServices = Depends(get_services),
):
    """Hide a product from analytics and purchase plans, or show it again."""
    if not await services.store.set_product_hidden(product_id, body.hidden):
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info(f"Product {product_id} {'hidden' if body.hidden else 'visible'}")
    return await _product_response(services, product_id)
