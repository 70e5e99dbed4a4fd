"""Liveness, readiness and runtime status.

Mounted twice: unversioned under /api for load balancer probes and under
/api/v1 next to the business endpoints. None of these require a token.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from app.dependencies import get_engine, get_registry
from behaviors.registry import BehaviorRegistry
from db import database
from workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health")

_booted_monotonic = time.monotonic()
_booted_at = datetime.now(timezone.utc).isoformat()


@router.get("/")
async def liveness() -> dict[str, Any]:
    settings = get_settings()
    return {"status": "ok", "app": settings.APP_NAME, "version": settings.APP_VERSION}


@router.get("/ready")
async def readiness():
    """503 until the database answers; workflows cannot be stored or triggered without it."""
    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "database": "unavailable"},
        )
    return {"status": "ready", "database": "ok"}


@router.get("/status")
async def runtime_status(
    registry: BehaviorRegistry = Depends(get_registry),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    settings = get_settings()
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "started_at": _booted_at,
        "uptime_seconds": round(time.monotonic() - _booted_monotonic, 1),
        "behavior_types": registry.available_types,
        "running_runs": engine.get_running_runs(),
        "limits": {
            "behavior_timeout_seconds": settings.BEHAVIOR_TIMEOUT_SECONDS,
            "run_timeout_seconds": settings.RUN_TIMEOUT_SECONDS,
        },
    }
