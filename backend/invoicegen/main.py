from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from invoicegen.core.logging import RequestLoggingMiddleware, configure_logging
from invoicegen.core.observability import PrometheusMiddleware, metrics_endpoint
from invoicegen.core.settings import Settings, get_settings
from invoicegen.db.session import Database, get_database
from invoicegen.modules.router_registry import include_all_routers

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the API around an explicit settings object and database handle.

    Run with ``uvicorn invoicegen.main:create_app --factory``.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level)
    settings.validate_for_production()
    database = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.wait_until_ready(
            retries=settings.db_connect_retries,
            delay=settings.db_connect_retry_delay,
        )
        if settings.db_auto_create:
            database.create_all()
        logger.info("startup_complete", extra={"event": "startup"})
        yield
        database.dispose()

    app = FastAPI(title=settings.project_name, version=settings.project_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database

    # Always allow localhost during development.
    allow_origin_regex = None
    if not settings.is_production:
        allow_origin_regex = r"^http://(localhost|127\.0\.0\.1)(:\d+)?$"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id", "Accept"],
    )
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["observability"], include_in_schema=False)

    include_all_routers(app)

    @app.get("/healthz", tags=["health"])
    def healthcheck(db_handle: Database = Depends(get_database)) -> dict[str, str]:
        """Returns 503 when the database does not answer ``SELECT 1``."""
        try:
            db_handle.ping()
        except SQLAlchemyError as exc:
            logger.error("healthcheck_failed", extra={"error": str(exc)})
            raise HTTPException(status_code=503, detail="Service unavailable") from exc
        return {"status": "ok", "database": "ok"}

    @app.get("/readyz", tags=["health"])
    def readiness() -> dict[str, str]:
        return {"status": "ready"}

    return app
