"""Result aggregation: merges behavior output into the context and builds the Run Report."""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from core.constants import RunStatus
from workflow.context import ExecutionContext
from workflow.definition import BehaviorConfig


def apply_output_renames(data: Mapping[str, Any], renames: Mapping[str, str]) -> dict[str, Any]:
    """Rename result keys per the behavior's `outputs` mapping."""
    return {renames.get(key, key): value for key, value in data.items()}


@dataclass(frozen=True)
class RunReportEntry:
    """One behavior's line in the Run Report."""

    behavior_id: str
    behavior_type: str
    status: RunStatus
    duration_ms: int
    input: dict[str, Any]
    output: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return bool(self.status == RunStatus.SUCCESS and self.output and self.output.get("skipped"))

    def to_dict(self) -> dict:
        entry = {
            "behaviorId": self.behavior_id,
            "behaviorType": self.behavior_type,
            "status": self.status.value,
            "durationMs": self.duration_ms,
            "input": self.input,
            "output": self.output,
            "error": self.error,
            "message": self.message,
        }
        return {k: v for k, v in entry.items() if v is not None}


@dataclass(frozen=True)
class RunReport:
    """Ordered record of a whole run, built once the last behavior finishes."""

    run_id: str
    tenant_id: str
    workflow_id: Optional[str]
    dry_run: bool
    success: bool
    results: tuple[RunReportEntry, ...]
    final_output: dict[str, Any]
    started_at: str
    completed_at: str
    duration_ms: int
    operations: tuple = field(default_factory=tuple)

    @property
    def failed(self) -> list[RunReportEntry]:
        return [r for r in self.results if r.status == RunStatus.ERROR]

    def to_dict(self) -> dict:
        """The `{success, results, finalOutput}` shape returned by the test endpoint."""
        return {
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
            "finalOutput": copy.deepcopy(self.final_output),
        }


class ResultAggregator:
    """Collects entries in execution order and merges successful data.

    Only successful results (skips included) are merged; failed results
    leave the context untouched.
    """

    def __init__(self, context: ExecutionContext, dry_run: bool = False):
        self.context = context
        self.dry_run = dry_run
        self.started_at = datetime.now(timezone.utc)
        self._entries: list[RunReportEntry] = []
        self._operations: list[dict] = []

    def record(
        self,
        config: BehaviorConfig,
        result,
        input_snapshot: dict[str, Any],
        duration_ms: int,
        operations: Optional[list] = None,
    ) -> RunReportEntry:
        if result.success and result.data is not None:
            self.context.merge(apply_output_renames(result.data, config.outputs))

        entry = RunReportEntry(
            behavior_id=config.id,
            behavior_type=config.type,
            status=RunStatus.SUCCESS if result.success else RunStatus.ERROR,
            duration_ms=duration_ms,
            input=input_snapshot,
            output=copy.deepcopy(result.data) if result.data is not None else None,
            error=result.error,
            message=result.message,
        )
        self._entries.append(entry)
        for op in operations or []:
            self._operations.append({"behaviorId": config.id, **op})
        return entry

    def finalize(self) -> RunReport:
        completed_at = datetime.now(timezone.utc)
        return RunReport(
            run_id=self.context.run_id,
            tenant_id=self.context.tenant_id,
            workflow_id=self.context.workflow_id,
            dry_run=self.dry_run,
            success=all(e.status == RunStatus.SUCCESS for e in self._entries),
            results=tuple(self._entries),
            final_output=self.context.snapshot(),
            started_at=self.started_at.isoformat(),
            completed_at=completed_at.isoformat(),
            duration_ms=int((completed_at - self.started_at).total_seconds() * 1000),
            operations=tuple(self._operations),
        )
