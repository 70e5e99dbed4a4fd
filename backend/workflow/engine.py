"""Sequential behavior runner.

Takes a workflow's behavior list and executes it against one Execution
Context:

- Disabled behaviors are dropped
- The rest run in priority order (descending, ties in declaration order)
- Each behavior is gated, input-checked, run with a timeout, output-checked
- Successful data is merged into the context; failures never stop the run
- A run-wide deadline bounds the total time

Behavior list (stored in Workflow.behaviors JSON):
[
    {
        "id": "bhv_1",
        "type": "employer-detection",
        "enabled": true,
        "priority": 90,
        "config": { "employerField": "employer" },
        "outputs": {}
    },
    {
        "id": "bhv_2",
        "type": "generate-invoice",
        "priority": 50,
        "config": { "paymentTermsDays": 14, "timeoutSeconds": 10 }
    },
    ...
]

In dry-run mode every behavior receives `dryRun: true` in its config and
performs no side effects; sequencing, gating and merging are identical.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

from app.config import get_settings
from behaviors.base import BehaviorResult, BehaviorServices
from behaviors.registry import BehaviorRegistry, get_behavior_registry
from core.logging_config import run_log_context
from workflow.aggregator import ResultAggregator, RunReport
from workflow.context import ExecutionContext
from workflow.contracts import check_inputs, check_outputs
from workflow.definition import BehaviorConfig, order_enabled, parse_behaviors
from workflow.gates import evaluate_gate

logger = logging.getLogger(__name__)
run_log = structlog.get_logger(__name__)

RUN_DEADLINE_ERROR = "Run deadline exceeded; behavior not started"


@dataclass
class _Invocation:
    result: BehaviorResult
    operations: Optional[list] = None


class WorkflowEngine:
    """Main workflow execution engine.

    One engine is shared by the whole process; all per-run state lives in
    the ExecutionContext and ResultAggregator created by execute().
    """

    def __init__(
        self,
        registry: Optional[BehaviorRegistry] = None,
        behavior_timeout: Optional[float] = None,
        run_timeout: Optional[float] = None,
        on_run_complete: Optional[Callable] = None,
    ):
        settings = get_settings()
        self._registry = registry or get_behavior_registry()
        self._behavior_timeout = behavior_timeout or settings.BEHAVIOR_TIMEOUT_SECONDS
        self._run_timeout = run_timeout or settings.RUN_TIMEOUT_SECONDS
        self._on_run_complete = on_run_complete
        self._running_runs: dict[str, ExecutionContext] = {}

    @property
    def registry(self) -> BehaviorRegistry:
        return self._registry

    async def execute(
        self,
        run_id: str,
        tenant_id: str,
        behaviors: list,
        services: BehaviorServices,
        initial_context: Optional[dict[str, Any]] = None,
        workflow_id: Optional[str] = None,
        dry_run: bool = False,
    ) -> RunReport:
        """Execute a behavior list and return its Run Report.

        Args:
            run_id: Unique ID for this run
            tenant_id: Owning organization
            behaviors: Behavior configs (dicts or BehaviorConfig)
            services: Collaborators handed to each behavior instance
            initial_context: Trigger input data
            workflow_id: Workflow being executed, for logs and the report
            dry_run: Simulate every side effect

        Returns:
            RunReport listing every enabled behavior in execution order
        """
        ordered = order_enabled(parse_behaviors(behaviors, strict=False))
        context = ExecutionContext(
            run_id=run_id,
            tenant_id=tenant_id,
            workflow_id=workflow_id,
            values=dict(initial_context or {}),
        )
        aggregator = ResultAggregator(context, dry_run=dry_run)
        run_services = services.bind(
            run_id=run_id, tenant_id=tenant_id, workflow_id=workflow_id, dry_run=dry_run
        )

        self._running_runs[run_id] = context
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._run_timeout

        with run_log_context(run_id, workflow_id, dry_run):
            run_log.info("Workflow run starting", behaviors=len(ordered))
            try:
                for config in ordered:
                    input_snapshot = context.snapshot()
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        aggregator.record(config, BehaviorResult.fail(RUN_DEADLINE_ERROR), input_snapshot, 0)
                        continue

                    start = time.monotonic()
                    invocation = await self._invoke(config, context, run_services, dry_run, remaining)
                    duration_ms = int((time.monotonic() - start) * 1000)
                    aggregator.record(config, invocation.result, input_snapshot, duration_ms, invocation.operations)

                    if not invocation.result.success:
                        logger.warning(
                            f"Behavior {config.id} ({config.type}) failed in run {run_id}: "
                            f"{invocation.result.error}"
                        )
            finally:
                self._running_runs.pop(run_id, None)

            report = aggregator.finalize()
            run_log.info(
                "Workflow run finished",
                success=report.success,
                failed=len(report.failed),
                duration_ms=report.duration_ms,
            )

        if self._on_run_complete:
            try:
                await self._on_run_complete(report)
            except Exception as e:
                logger.error(f"on_run_complete callback failed: {e}")

        return report

    async def _invoke(
        self,
        config: BehaviorConfig,
        context: ExecutionContext,
        services: BehaviorServices,
        dry_run: bool,
        remaining: float,
    ) -> _Invocation:
        """Gate, validate, run and check a single behavior. Never raises."""
        behavior = self._registry.create_instance(config.type, services)
        if behavior is None:
            return _Invocation(BehaviorResult.fail(f"Unknown behavior type: {config.type}"))

        view = context.view()
        try:
            decision = evaluate_gate(behavior, config.config, view)
        except Exception as e:
            return _Invocation(BehaviorResult.fail(f"Gate evaluation failed: {e}"))
        if not decision.passed:
            return _Invocation(BehaviorResult.skip(decision.reason))

        problems = check_inputs(behavior.inputs, view)
        if problems:
            return _Invocation(BehaviorResult.fail("; ".join(problems)))

        try:
            override = config.timeout_seconds
        except ValueError as e:
            return _Invocation(BehaviorResult.fail(f"Invalid behavior config: {e}"))
        timeout = min(override if override is not None else self._behavior_timeout, remaining)
        behavior_config = {**config.config, "dryRun": True} if dry_run else dict(config.config)

        try:
            result = await asyncio.wait_for(
                behavior.run(context.run_id, context.tenant_id, behavior_config, view, behavior_id=config.id),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            result = BehaviorResult.fail(f"Behavior timed out after {timeout:g}s")
        except Exception as e:
            logger.error(f"Behavior {config.id} raised outside its run wrapper: {e}", exc_info=True)
            result = BehaviorResult.fail(str(e))

        operations = getattr(behavior.effects, "operations", None)

        if not isinstance(result, BehaviorResult):
            return _Invocation(BehaviorResult.fail(f"Behavior returned {type(result).__name__}"), operations)

        # Behaviors that declare no outputs are not contract-checked
        if result.success and not result.skipped and behavior.outputs:
            violations = check_outputs(behavior.outputs, result.data or {})
            if violations:
                return _Invocation(
                    BehaviorResult.fail("Output contract violated: " + "; ".join(violations)),
                    operations,
                )

        return _Invocation(result, operations)

    def get_running_runs(self) -> dict[str, dict]:
        """Summary of runs currently executing in this process."""
        return {
            run_id: {"workflow_id": ctx.workflow_id, "tenant_id": ctx.tenant_id, "context_keys": len(ctx)}
            for run_id, ctx in self._running_runs.items()
        }


# ─── Singleton ─────────────────────────────────────────────────

_engine: Optional[WorkflowEngine] = None


def get_workflow_engine() -> WorkflowEngine:
    """Get or create the singleton WorkflowEngine."""
    global _engine
    if _engine is None:
        _engine = WorkflowEngine()
    return _engine
