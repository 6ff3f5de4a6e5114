"""Shared dependencies for API route modules."""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Tuple

from fastapi import HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from replenish.analytics import AnalyticsEngine
from replenish.exceptions import ValidationError
from replenish.scheduler import SyncScheduler
from replenish.store import Store
from replenish.validators import validate_date_range

# Shared limiter instance
limiter = Limiter(key_func=get_remote_address)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@dataclass
class AppServices:
    """Wired application components, stored on app.state.services."""
    store: Store
    scheduler: SyncScheduler
    analytics: AnalyticsEngine


def get_services(request: Request) -> AppServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return services


def parse_period(date_from: str, date_to: str) -> Tuple[date, date]:
    """Validate a from/to query pair, mapping failures to HTTP 400."""
    try:
        return validate_date_range(date_from, date_to)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
