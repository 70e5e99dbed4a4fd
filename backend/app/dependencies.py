"""Request-scoped dependencies shared by the routers."""

import logging
from typing import AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from behaviors.registry import BehaviorRegistry, get_behavior_registry
from core.security import TokenPayload, get_current_user
from db import database
from db.models.organization import Organization
from workflow.engine import WorkflowEngine, get_workflow_engine

logger = logging.getLogger(__name__)


async def get_db() -> AsyncIterator[AsyncSession]:
    """One session per request: committed when the handler returns, rolled back if it raises.

    A production trigger's domain objects and its run record are therefore
    committed together.
    """
    async with database.AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            logger.warning("Request failed; session rolled back")
            raise
        else:
            await session.commit()


async def get_current_tenant(
    current_user: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Organization:
    """The live, active organization named by the caller's token."""
    organization = await db.get(Organization, current_user.org_id)

    if organization is None or organization.is_deleted:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Organization not found")
    if not organization.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Organization is deactivated")
    return organization


def get_registry(request: Request) -> BehaviorRegistry:
    """The registry built at startup, or the process singleton."""
    return getattr(request.app.state, "behavior_registry", None) or get_behavior_registry()


def get_engine(request: Request) -> WorkflowEngine:
    """The workflow engine created at startup, or the process singleton."""
    return getattr(request.app.state, "workflow_engine", None) or get_workflow_engine()
