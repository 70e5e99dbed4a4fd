"""Trigger endpoint: run the active workflow for a named trigger."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.workflow import TriggerRequest, TriggerResponse
from app.dependencies import get_current_tenant, get_db, get_engine, get_registry
from behaviors.registry import BehaviorRegistry
from db.models.organization import Organization
from services.trigger_service import WorkflowTriggerService
from workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=TriggerResponse, response_model_exclude_none=True)
async def fire_trigger(
    request: TriggerRequest,
    organization: Organization = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
    registry: BehaviorRegistry = Depends(get_registry),
    engine: WorkflowEngine = Depends(get_engine),
) -> TriggerResponse:
    """
    Execute the tenant's active workflow for `trigger` with `inputData`.

    Behavior failures are reported in the body (`success: false`), not as
    HTTP errors. Without an `idempotencyKey`, repeating a call repeats its
    side effects.
    """
    svc = WorkflowTriggerService(db, registry=registry, engine=engine)
    outcome = await svc.fire(
        organization,
        trigger=request.trigger,
        input_data=request.input_data,
        webhook_url=request.webhook_url,
        idempotency_key=request.idempotency_key,
    )
    return TriggerResponse(**outcome.envelope)
