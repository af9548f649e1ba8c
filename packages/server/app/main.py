"""
ScheduleRight API Server

Entry point for the FastAPI application.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from app.api.public import router as public_router
from app.api.v1 import router as api_v1_router
from app.core.config import Settings, get_settings
from app.core.errors import error_response, register_exception_handlers
from app.core.logging import configure_logging
from app.core.metrics import MetricsCollector
from app.core.middleware import (
    MetricsMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from app.core.redis import close_redis
from app.db.base import DocumentStore
from app.db.store import create_document_store
from app.services.sms import create_sms_sender
from app.tasks.reminders import reminder_loop

log = structlog.get_logger()


def create_app(
    settings: Optional[Settings] = None, store: Optional[DocumentStore] = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``store`` is used as-is when given; otherwise the lifespan builds one
    from ``SR_DB_PROVIDER``.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, settings.log_format)
        if app.state.store is None:
            app.state.store = create_document_store(settings)
        await app.state.store.ensure_database()
        log.info(
            "ScheduleRight starting",
            environment=settings.environment,
            provider=settings.db_provider,
        )

        reminder_task = None
        if settings.reminder_interval_seconds > 0:
            reminder_task = asyncio.create_task(
                reminder_loop(
                    app.state.store, app.state.sms_sender, settings.reminder_interval_seconds
                )
            )
        try:
            yield
        finally:
            log.info("ScheduleRight shutting down")
            if reminder_task is not None:
                reminder_task.cancel()
                try:
                    await reminder_task
                except asyncio.CancelledError:
                    pass
            await app.state.store.close()
            await close_redis()

    app = FastAPI(
        title="ScheduleRight",
        description="Scheduling and booking API for nonprofit service organizations.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.sms_sender = create_sms_sender(settings)
    app.state.metrics = MetricsCollector()

    register_exception_handlers(app)

    # Middleware (last added is outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    if settings.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(MetricsMiddleware, collector=app.state.metrics)
    app.add_middleware(RequestLoggingMiddleware, slow_request_ms=settings.slow_request_ms)

    app.include_router(api_v1_router, prefix="/api/v1")
    app.include_router(public_router, prefix="/api/public", tags=["Public"])

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check(request: Request):
        """Readiness check: the document store must answer."""
        try:
            info = await request.app.state.store.info()
        except Exception as exc:
            log.warning("ready.store_unavailable", error=str(exc))
            return error_response("Document store unavailable", "NOT_READY", 503)
        return {"status": "ready", "store": info}

    @app.get("/metrics", tags=["System"])
    async def metrics_endpoint(request: Request, format: str = "json"):
        """Request metrics as JSON, or Prometheus text with ``?format=prometheus``."""
        collector: MetricsCollector = request.app.state.metrics
        if format == "prometheus":
            return PlainTextResponse(collector.to_prometheus(), media_type="text/plain; version=0.0.4")
        return collector.to_dict()

    return app


app = create_app()
