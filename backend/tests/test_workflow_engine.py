"""Tests for the sequential workflow engine."""

import asyncio

import pytest

from behaviors.base import BaseBehavior, BehaviorResult, BehaviorServices
from behaviors.effects import SimulatedEffects
from behaviors.registry import BehaviorRegistry
from core.constants import RunStatus
from core.exceptions import WorkflowConfigError
from workflow.contracts import ContextSlot
from workflow.definition import BehaviorConfig, order_enabled, parse_behaviors
from workflow.engine import RUN_DEADLINE_ERROR, WorkflowEngine


# ─── Test behaviors ───

class RecordOrder(BaseBehavior):
    """Appends its own id to `order` in the context."""

    behavior_type = "record-order"
    outputs = (ContextSlot("order", (list,)), ContextSlot("lastSeenDryRun", (bool,)))

    async def execute(self, run_id, tenant_id, config, context):
        order = list(context.get("order", []))
        order.append(config.get("label"))
        return BehaviorResult.ok({"order": order, "lastSeenDryRun": bool(config.get("dryRun"))})


class SetValues(BaseBehavior):
    """Returns config['values'] as its data."""

    behavior_type = "set-values"

    async def execute(self, run_id, tenant_id, config, context):
        return BehaviorResult.ok(dict(config.get("values", {})))


class AlwaysFails(BaseBehavior):
    behavior_type = "always-fails"

    async def execute(self, run_id, tenant_id, config, context):
        return BehaviorResult.fail("nope", data={"leaked": True})


class Raises(BaseBehavior):
    behavior_type = "raises"

    async def execute(self, run_id, tenant_id, config, context):
        raise RuntimeError("boom")


class Sleeps(BaseBehavior):
    behavior_type = "sleeps"

    async def execute(self, run_id, tenant_id, config, context):
        await asyncio.sleep(config.get("seconds", 1))
        return BehaviorResult.ok({})


class NeedsEmail(BaseBehavior):
    behavior_type = "needs-email"
    inputs = (ContextSlot("email", (str,)),)
    outputs = (ContextSlot("greeted", (bool,)),)

    async def execute(self, run_id, tenant_id, config, context):
        return BehaviorResult.ok({"greeted": True})


class BadOutput(BaseBehavior):
    behavior_type = "bad-output"
    outputs = (ContextSlot("count", (int,)),)

    async def execute(self, run_id, tenant_id, config, context):
        return BehaviorResult.ok({"count": "three"})


class GatedOnFlag(BaseBehavior):
    behavior_type = "gated-on-flag"
    outputs = (ContextSlot("ran", (bool,)),)

    def gate(self, config, context):
        if not context.get("flag"):
            return "flag is not set"
        return None

    async def execute(self, run_id, tenant_id, config, context):
        return BehaviorResult.ok({"ran": True})


class CreatesObject(BaseBehavior):
    behavior_type = "creates-object"
    outputs = (ContextSlot("objectId", (str,)),)

    async def execute(self, run_id, tenant_id, config, context):
        created = await self.effects.create_object("ticket", name="x", properties={})
        return BehaviorResult.ok({"objectId": created.id})


@pytest.fixture
def registry():
    reg = BehaviorRegistry(register_builtin=False)
    for cls in (RecordOrder, SetValues, AlwaysFails, Raises, Sleeps, NeedsEmail, BadOutput, GatedOnFlag, CreatesObject):
        reg.register(cls.behavior_type, cls)
    return reg


@pytest.fixture
def engine(registry):
    return WorkflowEngine(registry=registry, behavior_timeout=5, run_timeout=30)


@pytest.fixture
def services():
    return BehaviorServices(lookup=None, store=object())


async def _run(engine, services, behaviors, initial=None, dry_run=False):
    return await engine.execute(
        run_id="run-1",
        tenant_id="org-1",
        behaviors=behaviors,
        services=services,
        initial_context=initial or {},
        workflow_id="wf-1",
        dry_run=dry_run,
    )


@pytest.mark.unit
class TestOrdering:

    def test_priority_descending_ties_in_declaration_order(self):
        configs = parse_behaviors([
            {"id": "a", "type": "z-type", "priority": 10},
            {"id": "b", "type": "a-type", "priority": 50},
            {"id": "c", "type": "m-type", "priority": 10},
            {"id": "d", "type": "b-type", "priority": 50},
        ])
        assert [c.id for c in order_enabled(configs)] == ["b", "d", "a", "c"]

    def test_disabled_behaviors_are_dropped(self):
        configs = parse_behaviors([
            {"id": "a", "type": "x", "enabled": False, "priority": 100},
            {"id": "b", "type": "x"},
        ])
        assert [c.id for c in order_enabled(configs)] == ["b"]

    def test_missing_id_defaults_to_type_and_position(self):
        config = BehaviorConfig.from_dict({"type": "create-ticket"}, position=3)
        assert config.id == "create-ticket_3"

    @pytest.mark.parametrize("enabled", ["false", 0, 1, None])
    def test_non_boolean_enabled_rejected(self, enabled):
        with pytest.raises(WorkflowConfigError, match="enabled must be a boolean"):
            BehaviorConfig.from_dict({"type": "x", "enabled": enabled})

    @pytest.mark.parametrize("timeout", ["soon", 0, -1, True, [5]])
    def test_invalid_timeout_rejected(self, timeout):
        with pytest.raises(WorkflowConfigError, match="timeoutSeconds must be a positive number"):
            BehaviorConfig.from_dict({"type": "x", "config": {"timeoutSeconds": timeout}})

    def test_numeric_timeout_accepted(self):
        assert BehaviorConfig.from_dict({"type": "x", "config": {"timeoutSeconds": 2}}).timeout_seconds == 2.0
        assert BehaviorConfig.from_dict({"type": "x"}).timeout_seconds is None

    async def test_execution_follows_priority(self, engine, services):
        report = await _run(engine, services, [
            {"id": "low", "type": "record-order", "priority": 1, "config": {"label": "low"}},
            {"id": "high", "type": "record-order", "priority": 99, "config": {"label": "high"}},
            {"id": "mid-1", "type": "record-order", "priority": 50, "config": {"label": "mid-1"}},
            {"id": "mid-2", "type": "record-order", "priority": 50, "config": {"label": "mid-2"}},
        ])
        assert report.final_output["order"] == ["high", "mid-1", "mid-2", "low"]
        assert [r.behavior_id for r in report.results] == ["high", "mid-1", "mid-2", "low"]

    async def test_same_input_same_order_every_time(self, engine, services):
        behaviors = [
            {"id": f"b{i}", "type": "record-order", "priority": i % 3, "config": {"label": f"b{i}"}}
            for i in range(9)
        ]
        first = await _run(engine, services, behaviors)
        second = await _run(engine, services, behaviors)
        assert first.final_output["order"] == second.final_output["order"]


@pytest.mark.unit
class TestMergeAndReport:

    async def test_later_behavior_overwrites_key(self, engine, services):
        report = await _run(engine, services, [
            {"id": "first", "type": "set-values", "priority": 2, "config": {"values": {"k": 1, "keep": "yes"}}},
            {"id": "second", "type": "set-values", "priority": 1, "config": {"values": {"k": 2}}},
        ], initial={"seed": True})
        assert report.final_output == {"seed": True, "k": 2, "keep": "yes"}

    async def test_entry_input_is_snapshot_before_behavior(self, engine, services):
        report = await _run(engine, services, [
            {"id": "first", "type": "set-values", "priority": 2, "config": {"values": {"k": 1}}},
            {"id": "second", "type": "set-values", "priority": 1, "config": {"values": {"k": 2}}},
        ])
        assert report.results[0].input == {}
        assert report.results[1].input == {"k": 1}

    async def test_failure_does_not_stop_run_or_merge(self, engine, services):
        report = await _run(engine, services, [
            {"id": "bad", "type": "always-fails", "priority": 2},
            {"id": "after", "type": "set-values", "priority": 1, "config": {"values": {"after": True}}},
        ])
        assert report.success is False
        assert [r.status for r in report.results] == [RunStatus.ERROR, RunStatus.SUCCESS]
        assert report.results[0].error == "nope"
        assert "leaked" not in report.final_output
        assert report.final_output["after"] is True

    async def test_exception_becomes_error_entry(self, engine, services):
        report = await _run(engine, services, [{"id": "x", "type": "raises"}])
        assert report.results[0].status == RunStatus.ERROR
        assert report.results[0].error == "boom"

    async def test_unknown_type_is_error_entry(self, engine, services):
        report = await _run(engine, services, [
            {"id": "ghost", "type": "does-not-exist"},
            {"id": "ok", "type": "set-values", "config": {"values": {"v": 1}}},
        ])
        assert report.results[0].status == RunStatus.ERROR
        assert "Unknown behavior type" in report.results[0].error
        assert report.results[1].status == RunStatus.SUCCESS

    async def test_outputs_mapping_renames_keys(self, engine, services):
        report = await _run(engine, services, [
            {"id": "x", "type": "set-values", "config": {"values": {"id": "abc"}}, "outputs": {"id": "externalId"}},
        ])
        assert report.final_output == {"externalId": "abc"}
        assert report.results[0].output == {"id": "abc"}

    async def test_empty_workflow_succeeds(self, engine, services):
        report = await _run(engine, services, [], initial={"a": 1})
        assert report.success is True
        assert report.results == ()
        assert report.final_output == {"a": 1}

    async def test_report_to_dict_shape(self, engine, services):
        report = await _run(engine, services, [{"id": "x", "type": "set-values", "config": {"values": {"v": 1}}}])
        payload = report.to_dict()
        assert set(payload) == {"success", "results", "finalOutput"}
        entry = payload["results"][0]
        assert entry["behaviorId"] == "x"
        assert entry["behaviorType"] == "set-values"
        assert entry["status"] == "success"
        assert isinstance(entry["durationMs"], int)
        assert "error" not in entry


@pytest.mark.unit
class TestGatingAndContracts:

    async def test_gate_skip_is_success(self, engine, services):
        report = await _run(engine, services, [{"id": "g", "type": "gated-on-flag"}])
        entry = report.results[0]
        assert report.success is True
        assert entry.status == RunStatus.SUCCESS
        assert entry.output == {"skipped": True, "reason": "flag is not set"}
        assert "ran" not in report.final_output

    async def test_config_conditions_skip(self, engine, services):
        report = await _run(engine, services, [{
            "id": "c",
            "type": "set-values",
            "config": {
                "values": {"v": 1},
                "conditions": [{"field": "customer.tier", "operator": "equals", "value": "gold"}],
            },
        }], initial={"customer": {"tier": "silver"}})
        assert report.results[0].skipped is True
        assert "v" not in report.final_output

    async def test_gate_sees_upstream_output(self, engine, services):
        report = await _run(engine, services, [
            {"id": "set", "type": "set-values", "priority": 2, "config": {"values": {"flag": True}}},
            {"id": "g", "type": "gated-on-flag", "priority": 1},
        ])
        assert report.final_output["ran"] is True

    async def test_missing_input_fails_fast(self, engine, services):
        report = await _run(engine, services, [{"id": "n", "type": "needs-email"}])
        assert report.results[0].status == RunStatus.ERROR
        assert "email" in report.results[0].error

    async def test_wrong_input_type_fails(self, engine, services):
        report = await _run(engine, services, [{"id": "n", "type": "needs-email"}], initial={"email": 42})
        assert "expected str" in report.results[0].error

    async def test_output_contract_violation_is_not_merged(self, engine, services):
        report = await _run(engine, services, [{"id": "b", "type": "bad-output"}])
        assert report.results[0].status == RunStatus.ERROR
        assert "Output contract violated" in report.results[0].error
        assert "count" not in report.final_output


@pytest.mark.unit
class TestTimeouts:

    async def test_behavior_timeout(self, registry, services):
        engine = WorkflowEngine(registry=registry, behavior_timeout=0.05, run_timeout=30)
        report = await _run(engine, services, [
            {"id": "slow", "type": "sleeps", "priority": 2, "config": {"seconds": 1}},
            {"id": "next", "type": "set-values", "priority": 1, "config": {"values": {"v": 1}}},
        ])
        assert report.results[0].status == RunStatus.ERROR
        assert "timed out" in report.results[0].error
        assert report.final_output == {"v": 1}

    async def test_per_behavior_timeout_override(self, engine, services):
        report = await _run(engine, services, [
            {"id": "slow", "type": "sleeps", "config": {"seconds": 1, "timeoutSeconds": 0.05}},
        ])
        assert "timed out" in report.results[0].error

    async def test_invalid_timeout_fails_only_that_behavior(self, engine, services):
        report = await _run(engine, services, [
            BehaviorConfig(id="a", type="set-values", priority=3, config={"values": {"a": 1}}),
            BehaviorConfig(id="b", type="set-values", priority=2, config={"values": {"b": 1}, "timeoutSeconds": "soon"}),
            BehaviorConfig(id="c", type="set-values", priority=1, config={"values": {"c": 1}}),
        ])
        entries = {r.behavior_id: r for r in report.results}
        assert [r.behavior_id for r in report.results] == ["a", "b", "c"]
        assert entries["b"].status == RunStatus.ERROR
        assert "timeoutSeconds" in entries["b"].error
        assert entries["a"].status == entries["c"].status == RunStatus.SUCCESS
        assert report.final_output == {"a": 1, "c": 1}

    async def test_stored_invalid_timeout_does_not_abort_run(self, engine, services):
        report = await _run(engine, services, [
            {"id": "a", "type": "set-values", "priority": 2, "config": {"timeoutSeconds": 0}},
            {"id": "b", "type": "set-values", "priority": 1, "config": {"values": {"b": 1}}},
        ])
        assert report.results[0].status == RunStatus.ERROR
        assert report.results[1].status == RunStatus.SUCCESS

    async def test_run_deadline_reports_unstarted_behaviors(self, registry, services):
        engine = WorkflowEngine(registry=registry, behavior_timeout=5, run_timeout=0.1)
        report = await _run(engine, services, [
            {"id": "slow", "type": "sleeps", "priority": 3, "config": {"seconds": 1}},
            {"id": "never-1", "type": "set-values", "priority": 2},
            {"id": "never-2", "type": "set-values", "priority": 1},
        ])
        assert [r.behavior_id for r in report.results] == ["slow", "never-1", "never-2"]
        assert all(r.status == RunStatus.ERROR for r in report.results)
        assert report.results[1].error == RUN_DEADLINE_ERROR


@pytest.mark.unit
class TestDryRunPropagation:

    async def test_dry_run_flag_reaches_every_behavior(self, engine, services):
        report = await _run(engine, services, [
            {"id": "a", "type": "record-order", "config": {"label": "a"}},
        ], dry_run=True)
        assert report.dry_run is True
        assert report.final_output["lastSeenDryRun"] is True

    async def test_production_has_no_dry_run_flag(self, engine, services):
        report = await _run(engine, services, [
            {"id": "a", "type": "record-order", "config": {"label": "a"}},
        ])
        assert report.final_output["lastSeenDryRun"] is False

    async def test_dry_run_uses_simulated_effects(self, engine):
        report = await _run(engine, BehaviorServices(lookup=None), [
            {"id": "c", "type": "creates-object"},
        ], dry_run=True)
        assert report.final_output["objectId"].startswith("dryrun_ticket_")
        assert report.operations[0]["behaviorId"] == "c"
        assert report.operations[0]["operation"] == "create_object"

    async def test_gate_decision_ignores_dry_run(self, engine, services):
        behaviors = [{"id": "g", "type": "gated-on-flag"}]
        live = await _run(engine, services, behaviors, initial={"flag": True})
        dry = await _run(engine, services, behaviors, initial={"flag": True}, dry_run=True)
        assert live.results[0].skipped is dry.results[0].skipped is False

    def test_simulated_effects_records_operations(self):
        effects = SimulatedEffects()
        assert effects.dry_run is True
        assert effects.operations == []
