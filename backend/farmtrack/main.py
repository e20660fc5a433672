"""Farm-to-table order tracking service: FastAPI application entry point."""

import signal
import threading
import uuid
from contextlib import asynccontextmanager

# CRITICAL ORDER: configure_structlog MUST be called before all other farmtrack imports
# to avoid the structlog cache pitfall (structlog caches the processor chain on first use).
from farmtrack.core.logging import configure_structlog
from farmtrack.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from farmtrack.api.routes import api_router
from farmtrack.core.config import get_settings
from farmtrack.core.logging import get_correlation_id
from farmtrack.domain.stages import init_catalog
from farmtrack.notifications import RedisStageNotifier, SubscriptionFeed
from farmtrack.services.seed import seed_demo_order
from farmtrack.services.tracking_service import TrackingService

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Graceful shutdown flag: SIGTERM handler flips this so the health check returns 503
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, handle_sigterm)

    # Startup
    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    # Catalog misconfiguration is fatal: raises before any request is served
    catalog = init_catalog(settings.stage_catalog)
    logger.info("stage_catalog_initialized", total_stages=catalog.total_stages())

    notifiers = []
    redis_notifier = None
    if settings.redis_notifications_enabled:
        redis_notifier = await RedisStageNotifier.from_settings(settings, catalog)
        notifiers.append(redis_notifier)

    feed = SubscriptionFeed(
        queue_size=settings.subscription_queue_size,
        history_size=settings.subscription_history_size,
    )
    app.state.tracking = TrackingService(catalog, feed=feed, notifiers=notifiers)
    logger.info("tracking_service_initialized", notifiers=[type(n).__name__ for n in app.state.tracking.hub.notifiers])

    if settings.seed_demo_order:
        seed_demo_order(app.state.tracking)

    yield

    # Shutdown
    logger.info("shutdown_begin")
    if redis_notifier is not None:
        await redis_notifier.aclose()
    logger.info("shutdown_complete")


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Global exception handler for HTTPException with debug_id tracking.

    Logs errors server-side with full context, returns sanitized response to client.
    """
    debug_id = str(uuid.uuid4())
    corr_id = get_correlation_id()

    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        correlation_id=corr_id,
        path=request.url.path,
        method=request.method,
        detail=exc.detail,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors with debug_id tracking.

    Logs full exception with traceback, returns generic 500 to client.
    """
    debug_id = str(uuid.uuid4())
    corr_id = get_correlation_id()

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=corr_id,
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Farm-to-table order tracking for organic produce subscriptions",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last so it runs first: X-Request-ID is echoed, or a uuid4 is generated
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name="X-Request-ID",
        generator=lambda: str(uuid.uuid4()),
        validator=None,
    )

    # Exception handlers
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    # Include API routes
    app.include_router(api_router, prefix="/api")

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "farmtrack.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
