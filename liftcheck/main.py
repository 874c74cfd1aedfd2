from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from liftcheck.config import AppConfig
from liftcheck.db.base import get_engine
from liftcheck.db.migrations_runner import apply_migrations
from liftcheck.http.error_mapping import DOMAIN_ERROR_MAP
from liftcheck.http.problem import (
    handle_domain_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from liftcheck.http.request_id import RequestIdMiddleware
from liftcheck.logging_setup import configure_logging
from liftcheck.routes import api_router
from liftcheck.services import Services, build_services

logger = logging.getLogger(__name__)


def _auto_migrate(url: str) -> bool:
    """AUTO_APPLY_MIGRATIONS decides when set; otherwise only SQLite is migrated."""
    flag = os.getenv("AUTO_APPLY_MIGRATIONS", "").strip().lower()
    if flag:
        return flag in {"1", "true", "yes", "on"}
    return url.startswith("sqlite")


def create_app(config: Optional[AppConfig] = None, services: Optional[Services] = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title="liftcheck", version="0.1.0")
    app.state.services = services or build_services(config)

    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    for exc_type in DOMAIN_ERROR_MAP:
        app.add_exception_handler(exc_type, handle_domain_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    # Apply migrations on startup to avoid import-time side effects
    @app.on_event("startup")
    def _apply_migrations() -> None:
        dsn = app.state.services.config.database.dsn
        if not _auto_migrate(dsn):
            logger.info("startup.migrations.skipped")
            return
        try:
            applied = apply_migrations(get_engine(dsn))
        except (SQLAlchemyError, OSError):
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise
        logger.info("startup.migrations.applied count=%d", len(applied))

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    def health() -> dict:
        try:
            with get_engine(app.state.services.config.database.dsn).connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(e)}
        return {"status": "ok", "db": True}

    return app


# Intentionally do not instantiate the app at import time to prevent side effects.
