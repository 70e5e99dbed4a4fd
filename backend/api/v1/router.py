"""Versioned API surface, mounted under ``API_V1_PREFIX`` by app.main."""

from fastapi import APIRouter

from api.routes import health, triggers, workflows

api_v1_router = APIRouter()

# Health stays unauthenticated; the other routers guard themselves through
# the get_current_tenant dependency.
api_v1_router.include_router(health.router, tags=["Health"])
api_v1_router.include_router(workflows.router, prefix="/workflows", tags=["Workflows"])
api_v1_router.include_router(triggers.router, prefix="/triggers", tags=["Triggers"])
