"""Tests for WorkflowService and WorkflowRunService."""

import pytest

from core.constants import WorkflowStatus
from core.exceptions import FeatureAccessDeniedError, LimitExceededError, NotFoundError, WorkflowConfigError
from services.workflow_service import WorkflowRunService, WorkflowService
from workflow.aggregator import RunReport

CONTACT_ONLY = [{"type": "contact-lookup", "priority": 10}]


@pytest.mark.integration
class TestWorkflowService:

    async def test_create_assigns_behavior_ids(self, db_session, test_org):
        svc = WorkflowService(db_session)
        wf = await svc.create_workflow(
            test_org,
            name="Registration",
            trigger_on="registration_complete",
            behaviors=CONTACT_ONLY,
            required_inputs=["customerData"],
        )
        assert wf.version == 1
        assert wf.status == WorkflowStatus.DRAFT.value
        assert wf.behaviors[0]["id"].startswith("bhv_")
        assert wf.behaviors[0]["enabled"] is True
        assert svc.validate(wf) == []

    async def test_unknown_type_rejected(self, db_session, test_org):
        svc = WorkflowService(db_session)
        with pytest.raises(WorkflowConfigError) as exc_info:
            await svc.create_workflow(test_org, "Bad", "t", behaviors=[{"type": "teleport"}])
        assert exc_info.value.issues[0].level == "error"

    async def test_malformed_behavior_rejected(self, db_session, test_org):
        svc = WorkflowService(db_session)
        with pytest.raises(WorkflowConfigError, match="priority must be an integer"):
            await svc.create_workflow(test_org, "Bad", "t", behaviors=[{"type": "contact-lookup", "priority": "high"}])

    async def test_invalid_timeout_rejected(self, db_session, test_org):
        svc = WorkflowService(db_session)
        with pytest.raises(WorkflowConfigError, match="timeoutSeconds must be a positive number"):
            await svc.create_workflow(
                test_org, "Bad", "t", behaviors=[{"type": "contact-lookup", "config": {"timeoutSeconds": "soon"}}]
            )

    async def test_string_enabled_rejected(self, db_session, test_org):
        svc = WorkflowService(db_session)
        with pytest.raises(WorkflowConfigError, match="enabled must be a boolean"):
            await svc.create_workflow(test_org, "Bad", "t", behaviors=[{"type": "contact-lookup", "enabled": "false"}])

    async def test_missing_producer_is_only_a_warning(self, db_session, test_org):
        svc = WorkflowService(db_session)
        wf = await svc.create_workflow(test_org, "Invoice", "t", behaviors=[{"type": "generate-invoice"}])
        assert {issue.level for issue in svc.validate(wf)} == {"warning"}

    async def test_free_tier_has_no_workflows(self, db_session, make_org):
        org = await make_org("free")
        with pytest.raises(FeatureAccessDeniedError):
            await WorkflowService(db_session).create_workflow(org, "x", "t")

    async def test_pro_tier_workflow_limit(self, db_session, make_org):
        org = await make_org("pro")
        svc = WorkflowService(db_session)
        for i in range(10):
            await svc.create_workflow(org, f"wf-{i}", "t")
        with pytest.raises(LimitExceededError) as exc_info:
            await svc.create_workflow(org, "one too many", "t")
        assert exc_info.value.limit == 10

    async def test_pro_tier_behavior_limit(self, db_session, make_org):
        org = await make_org("pro")
        behaviors = [{"type": "contact-lookup"} for _ in range(21)]
        with pytest.raises(LimitExceededError):
            await WorkflowService(db_session).create_workflow(org, "big", "t", behaviors=behaviors)

    async def test_update_bumps_version_on_behavior_change(self, db_session, test_org):
        svc = WorkflowService(db_session)
        wf = await svc.create_workflow(test_org, "wf", "t", behaviors=CONTACT_ONLY)

        renamed = await svc.update_workflow(wf.id, test_org, {"name": "renamed"})
        assert renamed.version == 1

        changed = await svc.update_workflow(
            wf.id, test_org, {"behaviors": CONTACT_ONLY + [{"type": "employer-detection"}]}
        )
        assert changed.version == 2
        assert len(changed.behaviors) == 2

    async def test_update_keeps_existing_ids(self, db_session, test_org):
        svc = WorkflowService(db_session)
        wf = await svc.create_workflow(test_org, "wf", "t", behaviors=CONTACT_ONLY)
        same = await svc.update_workflow(wf.id, test_org, {"behaviors": list(wf.behaviors)})
        assert same.version == 1

    async def test_update_missing_workflow(self, db_session, test_org):
        with pytest.raises(NotFoundError):
            await WorkflowService(db_session).update_workflow("nope", test_org, {"name": "x"})

    async def test_activate_and_archive(self, db_session, test_org):
        svc = WorkflowService(db_session)
        wf = await svc.create_workflow(test_org, "wf", "registration_complete")
        assert await svc.get_active_for_trigger(test_org.id, "registration_complete") is None

        await svc.activate(wf.id, test_org)
        active = await svc.get_active_for_trigger(test_org.id, "registration_complete")
        assert active.id == wf.id

        await svc.archive(wf.id, test_org)
        assert await svc.get_active_for_trigger(test_org.id, "registration_complete") is None

    async def test_workflows_are_tenant_scoped(self, db_session, test_org, make_org):
        other = await make_org("enterprise")
        svc = WorkflowService(db_session)
        wf = await svc.create_workflow(other, "theirs", "t", status=WorkflowStatus.ACTIVE.value)
        assert await svc.get_by_id_and_org(wf.id, test_org.id) is None
        assert await svc.get_active_for_trigger(test_org.id, "t") is None


def _report(dry_run: bool) -> RunReport:
    return RunReport(
        run_id="run-xyz",
        tenant_id="org",
        workflow_id="wf",
        dry_run=dry_run,
        success=True,
        results=(),
        final_output={"a": 1},
        started_at="2026-01-01T00:00:00+00:00",
        completed_at="2026-01-01T00:00:01+00:00",
        duration_ms=1000,
    )


@pytest.mark.integration
class TestWorkflowRunService:

    async def test_dry_run_reports_are_refused(self, db_session, test_org):
        wf = await WorkflowService(db_session).create_workflow(test_org, "wf", "t")
        with pytest.raises(ValueError):
            await WorkflowRunService(db_session).record(_report(dry_run=True), wf, "t")

    async def test_record_uses_report_run_id(self, db_session, test_org):
        wf = await WorkflowService(db_session).create_workflow(test_org, "wf", "t")
        report = RunReport(**{**_report(dry_run=False).__dict__, "tenant_id": test_org.id})
        run = await WorkflowRunService(db_session).record(report, wf, "t", idempotency_key="k-1")

        assert run.id == "run-xyz"
        assert run.final_output == {"a": 1}
        assert run.workflow_version == 1
        runs, total = await WorkflowRunService(db_session).get_by_workflow(wf.id, test_org.id)
        assert total == 1
        assert runs[0].idempotency_key == "k-1"
