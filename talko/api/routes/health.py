"""Liveness and readiness probes."""

import os

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from talko.core.logging import SERVICE_NAME
from talko.db.base import ping_database
from talko.db.redis import get_usage_ledger, ledger_status
from talko.services import storage
from talko.services.usage_ledger import UsageLedger

logger = structlog.get_logger(__name__)

router = APIRouter()


def uploads_writable() -> bool:
    """Every upload directory exists and accepts new files."""
    return all(
        storage.upload_dir(kind).is_dir() and os.access(storage.upload_dir(kind), os.W_OK)
        for kind in storage.UPLOAD_KINDS
    )


@router.get("/health")
async def health_check(request: Request):
    """Liveness probe.

    Returns 503 once SIGTERM has been received so the load balancer drains us.
    """
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": SERVICE_NAME},
        )
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check(ledger: UsageLedger = Depends(get_usage_ledger)):
    """Readiness probe: database, usage ledger (Redis) and the uploads tree."""
    checks = {"database": False, "redis": False, "uploads": False}
    ledger_info = None

    try:
        await ping_database()
        checks["database"] = True
    except Exception as e:
        logger.error("ready_database_failed", error=str(e), error_type=type(e).__name__)

    try:
        ledger_info = await ledger_status(ledger)
        checks["redis"] = True
    except Exception as e:
        logger.error("ready_redis_failed", error=str(e), error_type=type(e).__name__)

    checks["uploads"] = uploads_writable()
    if not checks["uploads"]:
        logger.error("ready_uploads_unwritable", root=str(storage.uploads_root()))

    all_healthy = all(checks.values())
    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
            "usageLedger": ledger_info,
        },
    )
