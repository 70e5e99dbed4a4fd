"""Runs the active workflow for a trigger, and dry test runs of any workflow."""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from behaviors.base import BehaviorServices
from behaviors.registry import BehaviorRegistry, get_behavior_registry
from core.constants import TRIGGER_RESPONSE_KEYS
from core.exceptions import NotFoundError
from core.licensing import check_feature_access
from db.models.organization import Organization
from db.models.workflow import Workflow
from notifications.channels import BaseChannel, EmailChannel, Notification, NotificationChannel, WebhookChannel
from services.object_store import ObjectLookup, ObjectStore
from services.workflow_service import WorkflowRunService, WorkflowService
from workflow.aggregator import RunReport
from workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)


@dataclass
class TriggerOutcome:
    """Response envelope plus the full report it was built from."""

    envelope: dict[str, Any]
    report: RunReport
    workflow: Workflow


def build_envelope(report: RunReport, workflow: Workflow) -> dict[str, Any]:
    """The `{success, transactionId?, ticketId?, invoiceId?, message}` trigger response."""
    envelope: dict[str, Any] = {"success": report.success}
    for key in TRIGGER_RESPONSE_KEYS:
        if report.final_output.get(key) is not None:
            envelope[key] = report.final_output[key]

    total = len(report.results)
    if report.success:
        envelope["message"] = (
            f'Workflow "{workflow.name}" executed successfully. '
            f"{total} of {total} behaviors completed."
        )
    else:
        envelope["message"] = (
            f"Workflow execution completed with errors. "
            f"{len(report.failed)} of {total} behaviors failed."
        )
    return envelope


class WorkflowTriggerService:
    """Service behind the trigger and test endpoints."""

    def __init__(
        self,
        db: AsyncSession,
        registry: Optional[BehaviorRegistry] = None,
        engine: Optional[WorkflowEngine] = None,
        mailer: Optional[BaseChannel] = None,
        webhook_channel: Optional[BaseChannel] = None,
    ):
        settings = get_settings()
        self.db = db
        self.registry = registry or get_behavior_registry()
        self.engine = engine or WorkflowEngine(registry=self.registry)
        self.mailer = mailer or EmailChannel(settings.smtp_config)
        self.webhook_channel = webhook_channel or WebhookChannel({
            "secret": settings.WEBHOOK_SIGNING_SECRET,
            "timeout": settings.WEBHOOK_TIMEOUT_SECONDS,
        })
        self.workflows = WorkflowService(db, registry=self.registry)
        self.runs = WorkflowRunService(db)

    async def run_workflow(
        self,
        organization: Organization,
        workflow: Workflow,
        input_data: dict[str, Any],
        dry_run: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> RunReport:
        """Execute a workflow's behaviors against the given input."""
        store = ObjectStore(self.db)
        services = BehaviorServices(
            lookup=ObjectLookup(store),
            store=None if dry_run else store,
            mailer=None if dry_run else self.mailer,
            idempotency_key=idempotency_key,
        )
        return await self.engine.execute(
            run_id=str(uuid4()),
            tenant_id=organization.id,
            behaviors=workflow.behaviors,
            services=services,
            initial_context=input_data,
            workflow_id=workflow.id,
            dry_run=dry_run,
        )

    async def fire(
        self,
        organization: Organization,
        trigger: str,
        input_data: dict[str, Any],
        webhook_url: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        dry_run: bool = False,
    ) -> TriggerOutcome:
        """Run the active workflow for a trigger.

        Production runs are persisted and, when `webhook_url` is given,
        reported to it. `dry_run` forces simulation and skips both.
        """
        check_feature_access(organization.plan_tier, "workflowsEnabled")

        workflow = await self.workflows.get_active_for_trigger(organization.id, trigger)
        if workflow is None:
            raise NotFoundError(f"No active workflow for trigger '{trigger}'")

        report = await self.run_workflow(
            organization, workflow, input_data, dry_run=dry_run, idempotency_key=idempotency_key
        )
        envelope = build_envelope(report, workflow)

        if not dry_run:
            await self.runs.record(report, workflow, trigger, idempotency_key=idempotency_key)
            if webhook_url:
                await self._notify_webhook(organization, webhook_url, trigger, report, envelope)

        logger.info(
            f"Trigger '{trigger}' ran workflow {workflow.id} "
            f"(run {report.run_id}, success={report.success}, dry_run={dry_run})"
        )
        return TriggerOutcome(envelope=envelope, report=report, workflow=workflow)

    async def test_workflow(
        self,
        organization: Organization,
        workflow_id: str,
        test_data: dict[str, Any],
    ) -> RunReport:
        """Dry-run a workflow (any status) and return its report. Nothing is stored."""
        check_feature_access(organization.plan_tier, "workflowTestModeEnabled")

        workflow = await self.workflows.get_by_id_and_org(workflow_id, organization.id)
        if workflow is None:
            raise NotFoundError("Workflow not found")

        return await self.run_workflow(organization, workflow, test_data, dry_run=True)

    async def _notify_webhook(
        self,
        organization: Organization,
        url: str,
        trigger: str,
        report: RunReport,
        envelope: dict[str, Any],
    ) -> None:
        """POST the envelope to the caller's webhook. Failures are logged only."""
        result = await self.webhook_channel.send(Notification(
            title="workflow.completed" if report.success else "workflow.failed",
            message=envelope["message"],
            channel=NotificationChannel.WEBHOOK,
            recipient=url,
            organization_id=organization.id,
            signing_secret=organization.callback_secret,
            metadata={
                **envelope,
                "runId": report.run_id,
                "workflowId": report.workflow_id,
                "trigger": trigger,
            },
        ))
        if not result.success:
            logger.warning(f"Webhook callback for run {report.run_id} failed: {result.error}")
