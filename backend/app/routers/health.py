from datetime import datetime, timezone
import time

from fastapi import APIRouter

from ..db import get_conn, fetchone_dict
from ..logging_config import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)
_START_TIME = datetime.now(timezone.utc)

# Tables created by migrations/001_initial_schema.sql
REQUIRED_TABLES = ("profiles", "leads", "message_logs", "team_members")


def probe_database() -> dict:
    """Round-trip the database and report which lead desk tables are missing."""
    started = time.monotonic()
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT version() AS version, "
                + ", ".join(f"to_regclass('public.{t}') IS NOT NULL AS {t}" for t in REQUIRED_TABLES)
            )
            row = fetchone_dict(cur) or {}
    missing = [t for t in REQUIRED_TABLES if not row.get(t)]
    return {
        "status": "healthy" if not missing else "unmigrated",
        "connection": True,
        "latencyMs": int((time.monotonic() - started) * 1000),
        "version": row.get("version"),
        "missingTables": missing,
    }


@router.get("/health")
def health():
    now = datetime.now(timezone.utc)
    try:
        database = probe_database()
    except Exception as e:
        logger.warning(f"Database probe failed: {e}")
        database = {"status": "error", "connection": False}
    return {
        "status": "healthy" if database["status"] == "healthy" else "degraded",
        "timestamp": now.isoformat(),
        "uptimeSeconds": round((now - _START_TIME).total_seconds(), 1),
        "database": database,
    }


@router.get("/health/db")
def health_db():
    try:
        return probe_database()
    except Exception as e:
        return {"status": "error", "connection": False, "message": str(e)}
