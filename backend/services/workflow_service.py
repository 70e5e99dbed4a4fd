"""Workflow CRUD, static validation and run history."""

import logging
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from behaviors.registry import BehaviorRegistry, get_behavior_registry
from core.constants import WorkflowStatus
from core.exceptions import NotFoundError, WorkflowConfigError
from core.licensing import check_feature_access, check_limit
from db.models.organization import Organization
from db.models.workflow import Workflow
from db.models.workflow_run import WorkflowRun
from services.base import BaseService
from workflow.aggregator import RunReport
from workflow.contracts import ConfigIssue, validate_workflow
from workflow.definition import new_behavior_id, parse_behaviors

logger = logging.getLogger(__name__)


class WorkflowService(BaseService[Workflow]):
    """Service for workflow management."""

    def __init__(self, db: AsyncSession, registry: Optional[BehaviorRegistry] = None):
        super().__init__(Workflow, db)
        self.registry = registry or get_behavior_registry()

    # ─── Validation ────────────────────────────────────────

    def normalize_behaviors(self, behaviors: list[dict]) -> list[dict]:
        """Assign IDs to new behavior configs and fill defaults."""
        normalized = []
        for raw in behaviors or []:
            item = dict(raw)
            item["id"] = item.get("id") or new_behavior_id()
            normalized.append(item)
        return [config.to_dict() for config in parse_behaviors(normalized)]

    def validate_behaviors(self, behaviors: list[dict], required_inputs: list[str] = None) -> list[ConfigIssue]:
        return validate_workflow(parse_behaviors(behaviors), self.registry, required_inputs or [])

    def validate(self, workflow: Workflow) -> list[ConfigIssue]:
        """Statically validate a stored workflow."""
        return self.validate_behaviors(workflow.behaviors, workflow.required_inputs)

    def _ensure_valid(self, behaviors: list[dict], required_inputs: list[str]) -> list[ConfigIssue]:
        issues = self.validate_behaviors(behaviors, required_inputs)
        errors = [issue for issue in issues if issue.level == "error"]
        if errors:
            raise WorkflowConfigError(
                "; ".join(issue.message for issue in errors),
                issues=issues,
            )
        return issues

    # ─── Create / Update ───────────────────────────────────

    async def create_workflow(
        self,
        organization: Organization,
        name: str,
        trigger_on: str,
        behaviors: list[dict] = None,
        description: str = "",
        required_inputs: list[str] = None,
        status: str = WorkflowStatus.DRAFT.value,
        created_by_id: str = None,
    ) -> Workflow:
        """Create a new workflow after licensing and configuration checks."""
        check_feature_access(organization.plan_tier, "workflowsEnabled")
        check_limit(organization.plan_tier, "maxWorkflows", await self.count(organization.id) + 1)

        behaviors = self.normalize_behaviors(behaviors or [])
        check_limit(organization.plan_tier, "maxBehaviorsPerWorkflow", len(behaviors))
        self._ensure_valid(behaviors, required_inputs or [])

        workflow = await self.create({
            "organization_id": organization.id,
            "name": name,
            "description": description,
            "trigger_on": trigger_on,
            "status": status,
            "behaviors": behaviors,
            "required_inputs": list(required_inputs or []),
            "created_by_id": created_by_id,
            "version": 1,
        })
        logger.info(f"Workflow {workflow.id} created for trigger '{trigger_on}'")
        return workflow

    async def update_workflow(
        self,
        workflow_id: str,
        organization: Organization,
        data: dict[str, Any],
    ) -> Workflow:
        """Update a workflow; the version is bumped when behaviors change."""
        workflow = await self.get_by_id_and_org(workflow_id, organization.id)
        if not workflow:
            raise NotFoundError("Workflow not found")

        changes = {k: v for k, v in data.items() if v is not None}

        if "behaviors" in changes or "required_inputs" in changes:
            behaviors = self.normalize_behaviors(changes.get("behaviors", workflow.behaviors))
            check_limit(organization.plan_tier, "maxBehaviorsPerWorkflow", len(behaviors))
            self._ensure_valid(behaviors, changes.get("required_inputs", workflow.required_inputs))
            if behaviors != workflow.behaviors:
                changes["version"] = workflow.version + 1
            changes["behaviors"] = behaviors

        if isinstance(changes.get("status"), WorkflowStatus):
            changes["status"] = changes["status"].value

        return await self.update(workflow_id, changes, organization.id)

    async def activate(self, workflow_id: str, organization: Organization) -> Workflow:
        return await self.update_workflow(workflow_id, organization, {"status": WorkflowStatus.ACTIVE.value})

    async def archive(self, workflow_id: str, organization: Organization) -> Workflow:
        return await self.update_workflow(workflow_id, organization, {"status": WorkflowStatus.ARCHIVED.value})

    # ─── Trigger lookup ────────────────────────────────────

    async def get_active_for_trigger(self, organization_id: str, trigger: str) -> Optional[Workflow]:
        """The active workflow answering a trigger.

        When several active workflows share a trigger, the most recently
        updated one wins.
        """
        query = select(Workflow).where(
            Workflow.trigger_on == trigger,
            Workflow.status == WorkflowStatus.ACTIVE.value,
        )
        result = await self.db.execute(
            self._scoped(query, organization_id)
            .order_by(Workflow.updated_at.desc(), Workflow.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()


class WorkflowRunService(BaseService[WorkflowRun]):
    """Service for the persisted history of production runs."""

    def __init__(self, db: AsyncSession):
        super().__init__(WorkflowRun, db)

    async def record(
        self,
        report: RunReport,
        workflow: Workflow,
        trigger: str,
        idempotency_key: Optional[str] = None,
    ) -> WorkflowRun:
        """Persist a production Run Report."""
        if report.dry_run:
            raise ValueError("Dry-run reports are not persisted")
        payload = report.to_dict()
        return await self.create({
            "id": report.run_id,
            "organization_id": report.tenant_id,
            "workflow_id": workflow.id,
            "workflow_version": workflow.version,
            "trigger": trigger,
            "success": report.success,
            "results": payload["results"],
            "final_output": payload["finalOutput"],
            "duration_ms": report.duration_ms,
            "idempotency_key": idempotency_key,
        })

    async def get_by_workflow(
        self,
        workflow_id: str,
        organization_id: str,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[WorkflowRun], int]:
        """Runs of one workflow, newest first."""
        return await self.list(
            organization_id=organization_id,
            offset=offset,
            limit=limit,
            filters={"workflow_id": workflow_id},
        )
