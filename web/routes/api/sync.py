"""Sync trigger and scheduler status endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Request

from replenish.exceptions import SyncAlreadyRunningError
from web.config import READ_LIMIT, SYNC_TRIGGER_LIMIT
from web.schemas import SyncRunResponse, SyncStatusResponse
from ._deps import AppServices, get_logger, get_services, limiter

router = APIRouter()
logger = get_logger(__name__)


@router.post("/sync/run", response_model=SyncRunResponse)
@limiter.limit(SYNC_TRIGGER_LIMIT)
async def run_sync(request: Request, services: AppServices = Depends(get_services)):
    """Run both sync legs now. 409 if a run is already in progress."""
    try:
        summary = await services.scheduler.trigger_manual_run()
    except SyncAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return summary.to_dict()


@router.get("/sync/status", response_model=SyncStatusResponse)
@limiter.limit(READ_LIMIT)
async def sync_status(request: Request, services: AppServices = Depends(get_services)):
    """Scheduler state, last run results and next run time."""
    return services.scheduler.status()
