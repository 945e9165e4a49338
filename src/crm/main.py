"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
lifespan events for record store initialization, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response

from src.crm.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.crm.api.v1.router import router as v1_router
from src.crm.config import RecordStoreBackend, Settings, get_settings
from src.crm.contacts.directory import ContactDirectory
from src.crm.core.database import close_db, get_session, init_db
from src.crm.core.exceptions import StoreError
from src.crm.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.lifecycle import DealLifecycleManager
from src.crm.deals.pipeline import PipelineAggregator
from src.crm.records.memory import InMemoryRecordStore
from src.crm.records.sql import SqlRecordStore
from src.crm.records.store import RecordStore

logger = structlog.get_logger(__name__)


def build_services(store: RecordStore, settings: Settings) -> dict[str, Any]:
    """Wire the CRM services around a single record store.

    Returns a mapping of app.state attribute name to service instance.
    """
    activity_logger = ActivityLogger(store)
    contact_activity_logger = activity_logger if settings.LOG_CONTACT_ADDED else None
    return {
        "record_store": store,
        "activity_logger": activity_logger,
        "deal_manager": DealLifecycleManager(store, activity_logger),
        "contact_directory": ContactDirectory(store, activity_logger=contact_activity_logger),
        "pipeline_aggregator": PipelineAggregator(store),
    }


async def _open_record_store(settings: Settings) -> RecordStore:
    if settings.RECORD_STORE == RecordStoreBackend.sql:
        await init_db()
        return SqlRecordStore(session_factory=get_session)
    return InMemoryRecordStore()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: open the record store on startup, close on shutdown."""
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # ── Record store and CRM services ──────────────────────────────────
    try:
        store = await _open_record_store(settings)
        for name, service in build_services(store, settings).items():
            setattr(app.state, name, service)
        logger.info("crm.services_initialized", record_store=settings.RECORD_STORE.value)
    except Exception:
        # Endpoints answer 503 until the store is reachable
        logger.error("crm.services_init_failed", exc_info=True)
        for name in (
            "record_store",
            "activity_logger",
            "deal_manager",
            "contact_directory",
            "pipeline_aggregator",
        ):
            setattr(app.state, name, None)

    yield

    # Shutdown
    if settings.RECORD_STORE == RecordStoreBackend.sql:
        await close_db()
    logger.info("crm.shutdown")


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Storage failures surface as 503 instead of a bare 500."""
    logger.error("crm.store_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Pipeline CRM API",
        version="0.1.0",
        description="Contacts, deals, sales pipeline and activity history",
        lifespan=lifespan,
    )

    app.add_exception_handler(StoreError, store_error_handler)

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
