"""
Liveness, readiness and database diagnostics.

- GET /healthz: process is up (no dependencies)
- GET /readyz: database reachable and the premium tables exist
- GET /api/health/db: connectivity, latency and table list, no credentials
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import inspect

from linksight.core.database import check_connection, get_engine
from linksight.core.logging import LOGGER_NAME, latency_bucket_ms

logger = logging.getLogger(LOGGER_NAME)

router = APIRouter(prefix="/api/health", tags=["health"])
root_router = APIRouter(tags=["health"])

REQUIRED_TABLES = ("app_users", "premium_limits", "premium_actions")


class DBHealth(BaseModel):
    connected: bool
    latency_ms: Optional[float] = None  # omitted when ?now= pins the response
    tables_present: List[str] = []


class HealthResponse(BaseModel):
    ok: bool
    db: DBHealth
    computed_at: str


def missing_tables() -> List[str]:
    """Required tables absent from the connected database."""
    inspector = inspect(get_engine())
    return [name for name in REQUIRED_TABLES if not inspector.has_table(name)]


@root_router.get("/healthz")
def healthz():
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz():
    """503 until the database answers and the schema is in place."""
    try:
        missing = missing_tables()
    except Exception as e:
        logger.error(f"[readyz] database unreachable: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})
    return {"status": "ok"}


@router.get("/db", response_model=HealthResponse)
def health_db(now: Optional[str] = Query(None, description="Fixed ISO timestamp for deterministic output")):
    start = time.perf_counter()
    connected = check_connection()
    latency_ms = (time.perf_counter() - start) * 1000

    tables: List[str] = []
    if connected:
        try:
            tables = sorted(inspect(get_engine()).get_table_names())
        except Exception as e:
            logger.warning(f"[health] failed to list tables: {e}")

    logger.info("health.db", extra={"ok": connected, "latency_bucket": latency_bucket_ms(latency_ms)})
    return HealthResponse(
        ok=connected,
        db=DBHealth(connected=connected, latency_ms=None if now else latency_ms, tables_present=tables),
        computed_at=now or datetime.now(timezone.utc).isoformat(),
    )
