"""Health check endpoint."""
from fastapi import APIRouter, Request

from replenish.observability import get_correlation_id
from web.config import VERSION
from web.schemas import HealthResponse
from ._deps import get_logger, limiter

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint for Docker/load balancer monitoring."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        return {
            "status": "starting",
            "version": VERSION,
            "correlation_id": get_correlation_id(),
            "database": "not_initialized",
            "scheduler_running": False,
        }

    database = services.store.get_connection_info()["status"]
    scheduler_running = services.scheduler.is_running
    healthy = database == "active" and scheduler_running

    return {
        "status": "healthy" if healthy else "degraded",
        "version": VERSION,
        "correlation_id": get_correlation_id(),
        "database": database,
        "scheduler_running": scheduler_running,
    }
