"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from backend.app.api.analyses import router as analyses_router
from backend.app.api.analyze import router as analyze_router
from backend.app.api.health import get_health
from backend.app.api.monitors import router as monitors_router
from backend.app.api.user import router as user_router
from backend.app.config import Settings, get_settings
from backend.app.db.reconcile import reconcile_stale_runs
from backend.app.db.session import get_session_factory
from backend.app.errors import register_exception_handlers
from backend.app.metrics.registry import MetricsClient
from backend.app.quota import QuotaGate
from backend.app.rate_limit import InMemoryRateLimitStore, SlidingWindowRateLimiter
from backend.app.rate_limit.redis_store import RedisRateLimitStore
from backend.app.security import SecurityHeadersMiddleware
from backend.app.streaming import drain_detached

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_rate_limiter(settings: Settings) -> SlidingWindowRateLimiter:
    """Create the app's limiter on the configured store."""
    if settings.rate_limit_backend == "redis":
        store = RedisRateLimitStore.from_url(settings.redis_url)
    else:
        store = InMemoryRateLimitStore()
    return SlidingWindowRateLimiter(
        store,
        enabled=settings.rate_limit_enabled,
        cleanup_interval_s=settings.rate_limit_cleanup_interval_s,
    )


def run_reconcile(session_factory: sessionmaker[Session], timeout_minutes: int) -> None:
    """Mark stale running records aborted; failures are logged."""
    try:
        with session_factory() as session:
            counts = reconcile_stale_runs(session, timeout_minutes=timeout_minutes)
    except SQLAlchemyError:
        logger.exception("Stale run reconciliation failed")
        return
    if counts["analyses"] or counts["checks"]:
        logger.info("stale_runs_aborted", extra=counts)


async def _reconcile_loop(app: FastAPI) -> None:
    settings: Settings = app.state.settings
    while True:
        await asyncio.sleep(settings.reconcile_interval_s)
        await run_in_threadpool(
            run_reconcile, app.state.session_factory, settings.stale_run_timeout_minutes
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Reconcile stale runs on startup, then periodically; drain work on shutdown."""
    settings: Settings = app.state.settings
    logger.info("Application starting up")
    await run_in_threadpool(
        run_reconcile, app.state.session_factory, settings.stale_run_timeout_minutes
    )
    reconciler = asyncio.create_task(_reconcile_loop(app), name="stale-run-reconciler")
    try:
        yield
    finally:
        reconciler.cancel()
        try:
            await reconciler
        except asyncio.CancelledError:
            pass
        app.state.rate_limiter.close()
        await drain_detached()
        logger.info("Application shut down")


def create_app(
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings override (for testing)
        session_factory: Session factory override (for testing)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="DeepZD Analysis API",
        description="Streaming content analysis and brand monitoring",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory or get_session_factory()
    app.state.rate_limiter = build_rate_limiter(settings)
    app.state.quota_gate = QuotaGate(
        app.state.session_factory,
        enforce=settings.enforce_quota,
        default_limit=settings.default_analysis_limit,
    )
    app.state.metrics = MetricsClient()

    # Security middleware (before CORS)
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.ui_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/healthz")
    async def healthz() -> JSONResponse:
        """Health check endpoint; 503 when any dependency is down."""
        result = await get_health(app.state.session_factory, settings.redis_url)
        status_code = 200 if result.status == "ok" else 503
        return JSONResponse(status_code=status_code, content=result.model_dump())

    # Include routers
    app.include_router(analyze_router)
    app.include_router(analyses_router)
    app.include_router(monitors_router)
    app.include_router(user_router)

    return app


# Create app instance for uvicorn
app = create_app()
