"""
Health endpoints.

/healthz is a dependency-free liveness probe. /readyz reports whether the
configured database is reachable and has the tables this service needs; with
no database configured the in-memory stores are in use and the service is ready.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from kingdomquest.core.database import get_database_url, get_engine

logger = logging.getLogger("kingdomquest")

router = APIRouter(tags=["health"])

REQUIRED_TABLES = [
    "prayer_streaks",
    "prayer_days",
    "user_subscriptions",
]


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness check: DB connectivity + required tables."""
    if not get_database_url():
        return {"status": "ok", "storage": "memory"}

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")

        inspector = inspect(engine)
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
        if missing:
            detail = f"missing tables: {', '.join(missing)}"
            logger.warning(f"[readyz] {detail}")
            return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

        return {"status": "ok", "storage": "sql"}
    except SQLAlchemyError as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
