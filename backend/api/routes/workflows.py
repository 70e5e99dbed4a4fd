"""Workflow endpoints: CRUD, validation, dry-run testing and run history."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import MessageResponse, PaginationParams
from api.schemas.workflow import (
    WorkflowCreate,
    WorkflowListResponse,
    WorkflowResponse,
    WorkflowRunListResponse,
    WorkflowRunResponse,
    WorkflowTestRequest,
    WorkflowTestResponse,
    WorkflowUpdate,
    WorkflowValidationResponse,
)
from app.dependencies import get_current_tenant, get_db, get_engine, get_registry
from behaviors.registry import BehaviorRegistry
from core.security import TokenPayload, get_current_user
from db.models.organization import Organization
from services.trigger_service import WorkflowTriggerService
from services.workflow_service import WorkflowRunService, WorkflowService
from workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workflows"])


def _workflow_to_response(wf, issues=()) -> WorkflowResponse:
    """Convert a Workflow ORM object to response schema."""
    return WorkflowResponse(
        id=wf.id,
        name=wf.name,
        description=wf.description or "",
        trigger_on=wf.trigger_on,
        status=wf.status,
        behaviors=wf.behaviors or [],
        required_inputs=wf.required_inputs or [],
        version=wf.version,
        created_by=wf.created_by_id,
        created_at=wf.created_at,
        updated_at=wf.updated_at,
        issues=[issue.to_dict() for issue in issues],
    )


def _run_to_response(run) -> WorkflowRunResponse:
    return WorkflowRunResponse(
        id=run.id,
        workflow_id=run.workflow_id,
        workflow_version=run.workflow_version,
        trigger=run.trigger,
        success=run.success,
        results=run.results or [],
        final_output=run.final_output or {},
        duration_ms=run.duration_ms,
        created_at=run.created_at,
    )


@router.get("/behavior-types")
async def list_behavior_types(
    organization: Organization = Depends(get_current_tenant),
    registry: BehaviorRegistry = Depends(get_registry),
) -> dict:
    """
    List registered behavior types with their context contracts.
    """
    return {"behaviorTypes": registry.list_all()}


@router.get("/", response_model=WorkflowListResponse)
async def list_workflows(
    pagination: PaginationParams = Depends(),
    organization: Organization = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
) -> WorkflowListResponse:
    """
    List workflows in the current organization (paginated).
    """
    svc = WorkflowService(db)
    workflows, total = await svc.list(
        organization_id=organization.id,
        offset=pagination.offset,
        limit=pagination.per_page,
    )
    return WorkflowListResponse(
        workflows=[_workflow_to_response(wf) for wf in workflows],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
    )


@router.post("/", response_model=WorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    request: WorkflowCreate,
    current_user: TokenPayload = Depends(get_current_user),
    organization: Organization = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
    registry: BehaviorRegistry = Depends(get_registry),
) -> WorkflowResponse:
    """
    Create a workflow. Unknown behavior types are rejected with 422;
    missing context producers come back as warnings in `issues`.
    """
    svc = WorkflowService(db, registry=registry)
    wf = await svc.create_workflow(
        organization,
        name=request.name,
        description=request.description,
        trigger_on=request.trigger_on,
        status=request.status.value,
        behaviors=[b.model_dump() for b in request.behaviors],
        required_inputs=request.required_inputs,
        created_by_id=current_user.sub,
    )
    return _workflow_to_response(wf, svc.validate(wf))


@router.post("/test", response_model=WorkflowTestResponse)
async def test_workflow(
    request: WorkflowTestRequest,
    organization: Organization = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
    registry: BehaviorRegistry = Depends(get_registry),
    engine: WorkflowEngine = Depends(get_engine),
) -> WorkflowTestResponse:
    """
    Dry-run a workflow with test data. No side effects, nothing persisted.
    """
    svc = WorkflowTriggerService(db, registry=registry, engine=engine)
    report = await svc.test_workflow(organization, request.workflow_id, request.test_data)
    return WorkflowTestResponse(**report.to_dict())


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: str,
    organization: Organization = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
) -> WorkflowResponse:
    """
    Get workflow details by ID (org-scoped).
    """
    svc = WorkflowService(db)
    wf = await svc.get_by_id_and_org(workflow_id, organization.id)
    if not wf:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workflow not found",
        )
    return _workflow_to_response(wf)


@router.put("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: str,
    request: WorkflowUpdate,
    organization: Organization = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
    registry: BehaviorRegistry = Depends(get_registry),
) -> WorkflowResponse:
    """
    Update a workflow. Changing the behavior list bumps its version.
    """
    svc = WorkflowService(db, registry=registry)
    changes = request.model_dump(exclude_unset=True)
    if request.behaviors is not None:
        changes["behaviors"] = [b.model_dump() for b in request.behaviors]
    wf = await svc.update_workflow(workflow_id, organization, changes)
    return _workflow_to_response(wf, svc.validate(wf))


@router.delete("/{workflow_id}", response_model=MessageResponse)
async def delete_workflow(
    workflow_id: str,
    organization: Organization = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """
    Soft-delete a workflow.
    """
    svc = WorkflowService(db)
    if not await svc.soft_delete(workflow_id, organization.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workflow not found",
        )
    return MessageResponse(message="Workflow deleted")


@router.post("/{workflow_id}/validate", response_model=WorkflowValidationResponse)
async def validate_workflow(
    workflow_id: str,
    organization: Organization = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
    registry: BehaviorRegistry = Depends(get_registry),
) -> WorkflowValidationResponse:
    """
    Statically check a stored workflow's behaviors and context contracts.
    """
    svc = WorkflowService(db, registry=registry)
    wf = await svc.get_by_id_and_org(workflow_id, organization.id)
    if not wf:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workflow not found",
        )
    issues = svc.validate(wf)
    return WorkflowValidationResponse(
        valid=not any(issue.level == "error" for issue in issues),
        issues=[issue.to_dict() for issue in issues],
    )


@router.get("/{workflow_id}/runs", response_model=WorkflowRunListResponse)
async def list_workflow_runs(
    workflow_id: str,
    pagination: PaginationParams = Depends(),
    organization: Organization = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
) -> WorkflowRunListResponse:
    """
    List persisted production runs of a workflow, newest first.
    """
    runs, total = await WorkflowRunService(db).get_by_workflow(
        workflow_id,
        organization.id,
        offset=pagination.offset,
        limit=pagination.per_page,
    )
    return WorkflowRunListResponse(
        runs=[_run_to_response(run) for run in runs],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
    )
