"""
FastAPI application exposing sync control and product analytics.

Run with:
    uvicorn web.main:app
"""
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from replenish.analytics import AnalyticsEngine
from replenish.client import CommerceClient
from replenish.config import ConfigurationError, validate_config
from replenish.currency import init_exchange_rate
from replenish.observability import get_logger, setup_logging
from replenish.scheduler import SyncScheduler
from replenish.store import Store
from replenish.sync_service import SyncOrchestrator
from web.config import LOG_FORMAT, LOG_LEVEL, VERSION, WEB_HOST, WEB_PORT
from web.middleware import RequestLoggingMiddleware
from web.routes import api
from web.routes.api._deps import AppServices, limiter

logger = get_logger(__name__)


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """
    Build the FastAPI app.

    When services are passed in (tests), startup wiring is skipped and the
    given components are used as-is.
    """
    app = FastAPI(
        title="Replenishment Analytics",
        description="Upstream order/product sync and purchasing analytics",
        version=VERSION,
    )
    app.state.limiter = limiter
    app.state.services = services
    app.state.owns_services = services is None

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
        return JSONResponse(
            status_code=429,
            content={
                "error": "Rate limit exceeded",
                "detail": "Too many requests. Please try again later.",
                "retry_after": exc.detail
            }
        )

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api.router, prefix="/api")

    @app.on_event("startup")
    async def startup_event():
        if not app.state.owns_services:
            return

        logger.info("Replenishment service starting...")

        # Fail fast on malformed settings; missing upstream credentials are
        # reported per sync leg instead
        try:
            validate_config(require_upstream=False)
        except ConfigurationError as e:
            logger.critical(f"Configuration error: {e}")
            raise SystemExit(1)
        try:
            validate_config(require_upstream=True)
        except ConfigurationError as e:
            logger.warning(f"Upstream not fully configured, sync legs will fail: {e}")

        store = Store()
        await store.connect()
        await init_exchange_rate(store)

        client = CommerceClient.from_config()
        await client.connect()
        scheduler = SyncScheduler(SyncOrchestrator(client, store))
        app.state.services = AppServices(
            store=store,
            scheduler=scheduler,
            analytics=AnalyticsEngine(store),
        )
        app.state.client = client

        await scheduler.start()
        logger.info("Sync scheduler started")

    @app.on_event("shutdown")
    async def shutdown_event():
        if not app.state.owns_services or app.state.services is None:
            return

        app.state.services.scheduler.stop()
        await app.state.client.close()
        await app.state.services.store.close()
        logger.info("Replenishment service stopped")

    return app


setup_logging(level=LOG_LEVEL, json_format=(LOG_FORMAT == "json"))
app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run("web.main:app", host=WEB_HOST, port=WEB_PORT)


if __name__ == "__main__":
    main()
