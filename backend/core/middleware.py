"""Request tracking and error translation.

Every request gets an id (taken from ``X-Request-ID`` when the caller sends
one) which is bound into the structlog context for the duration of the
request, echoed back on the response and included in error bodies.
Trigger callers use it to correlate a fired workflow with the server logs.
"""

import logging
import time
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import get_settings
from core.exceptions import EngineException, WorkflowConfigError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

# Probes hit these constantly; not worth a log line each.
_QUIET_PREFIXES = ("/api/health", "/api/v1/health")


def _error_body(request: Request, detail: str, **extra) -> dict:
    return {"detail": detail, "request_id": getattr(request.state, "request_id", None), **extra}


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """Assign a request id, time the request and log its outcome."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id
        started = time.monotonic()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
                detail = "Internal server error"
                if not get_settings().is_production and str(exc):
                    detail = str(exc)
                return JSONResponse(
                    status_code=500,
                    content=_error_body(request, detail),
                    headers={REQUEST_ID_HEADER: request_id},
                )

            elapsed_ms = (time.monotonic() - started) * 1000
            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers[PROCESS_TIME_HEADER] = f"{elapsed_ms:.2f}ms"

            if not request.url.path.startswith(_QUIET_PREFIXES):
                logger.log(
                    logging.WARNING if response.status_code >= 400 else logging.INFO,
                    f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)",
                )

        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Translate domain exceptions into JSON error responses."""

    @app.exception_handler(EngineException)
    async def engine_exception_handler(request: Request, exc: EngineException):
        extra = {}
        # Rejected workflow definitions carry the per-behavior problems
        if isinstance(exc, WorkflowConfigError) and exc.issues:
            extra["issues"] = [issue.to_dict() for issue in exc.issues]
        return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc.message, **extra))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content=_error_body(request, str(exc)))
