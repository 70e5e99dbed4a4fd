"""
Base behavior interface for all workflow behavior implementations.

Every behavior type (capacity check, ticket creation, invoice generation,
etc.) inherits from BaseBehavior, declares the context slots it reads and
writes, and implements execute().
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

import structlog

from behaviors.effects import Effects, LiveEffects, SimulatedEffects

logger = structlog.get_logger(__name__)


class BehaviorResult:
    """Standardized result from a behavior invocation.

    A skipped behavior is a *successful* result carrying
    `{"skipped": True, "reason": ...}` as its data.
    """

    def __init__(
        self,
        success: bool,
        data: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None,
        error: Optional[str] = None,
    ):
        self.success = success
        self.data = data
        self.message = message
        self.error = error

    @classmethod
    def ok(cls, data: Optional[Dict[str, Any]] = None, message: Optional[str] = None) -> "BehaviorResult":
        return cls(True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, data: Optional[Dict[str, Any]] = None) -> "BehaviorResult":
        return cls(False, data=data, error=error)

    @classmethod
    def skip(cls, reason: str) -> "BehaviorResult":
        return cls(True, data={"skipped": True, "reason": reason}, message=reason)

    @property
    def skipped(self) -> bool:
        return bool(self.success and self.data and self.data.get("skipped"))

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": self.success,
            "data": self.data,
            "message": self.message,
            "error": self.error,
        }
        return {k: v for k, v in result.items() if v is not None}


@dataclass
class BehaviorServices:
    """Collaborators a behavior instance is constructed with.

    `lookup` is read-only. Writes are only reachable through the Effects
    returned by effects_for(), which never hands out the store in a dry run.
    """

    lookup: Any
    store: Any = None
    mailer: Any = None
    logger: Any = None
    idempotency_key: Optional[str] = None

    def bind(self, **values) -> "BehaviorServices":
        """Copy with the logger bound to extra context."""
        log = self.logger or logger
        return replace(self, logger=log.bind(**values))

    def effects_for(self, dry_run: bool, tenant_id: str, run_id: str, behavior_id: str) -> Effects:
        if dry_run:
            return SimulatedEffects()
        if self.store is None:
            raise RuntimeError("Live effects need an object store")
        return LiveEffects(
            self.store,
            tenant_id=tenant_id,
            run_id=run_id,
            behavior_id=behavior_id,
            mailer=self.mailer,
            idempotency_key=self.idempotency_key,
        )


class BaseBehavior(ABC):
    """
    Abstract base class for all behaviors.

    Subclasses must implement:
    - execute(run_id, tenant_id, config, context) -> BehaviorResult
    - behavior_type, display_name (class attributes)
    - inputs / outputs (ContextSlot tuples) when they read or write context

    Subclasses may override gate() to skip themselves when a precondition
    on the context does not hold.
    """

    behavior_type: str = "base"
    display_name: str = "Base Behavior"
    description: str = "Abstract base behavior"
    inputs: tuple = ()
    outputs: tuple = ()

    def __init__(self, services: BehaviorServices):
        self._services = services
        self.lookup = services.lookup
        self.log = services.logger or logger
        self.effects: Optional[Effects] = None

    def gate(self, config: Mapping[str, Any], context: Mapping[str, Any]) -> Optional[str]:
        """Return a skip reason, or None to execute."""
        return None

    @abstractmethod
    async def execute(
        self,
        run_id: str,
        tenant_id: str,
        config: Mapping[str, Any],
        context: Mapping[str, Any],
    ) -> BehaviorResult:
        """
        Execute the behavior.

        Args:
            run_id: ID of the workflow run
            tenant_id: Organization the run belongs to
            config: Behavior config (`dryRun` is set for dry runs)
            context: Read-only view of the execution context

        Returns:
            BehaviorResult with data to merge, or an error
        """
        pass

    async def run(
        self,
        run_id: str,
        tenant_id: str,
        config: Mapping[str, Any],
        context: Mapping[str, Any],
        behavior_id: Optional[str] = None,
    ) -> BehaviorResult:
        """
        Run the behavior with effects selection, timing and error handling.

        This is the entry point called by the workflow engine.
        """
        dry_run = bool(config.get("dryRun"))
        behavior_id = behavior_id or self.behavior_type
        self.effects = self._services.effects_for(dry_run, tenant_id, run_id, behavior_id)
        self.log = (self._services.logger or logger).bind(
            behavior_type=self.behavior_type,
            behavior_id=behavior_id,
        )

        start = time.monotonic()
        try:
            self.log.info("Behavior starting", behavior_name=self.display_name)
            result = await self.execute(run_id, tenant_id, config, context)
            self.log.info(
                "Behavior completed",
                success=result.success,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            return result

        except Exception as e:
            self.log.error(
                "Behavior failed",
                error=str(e),
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            return BehaviorResult.fail(str(e))

    @classmethod
    def describe(cls) -> Dict[str, Any]:
        """Metadata used by the registry listing."""
        return {
            "behavior_type": cls.behavior_type,
            "display_name": cls.display_name,
            "description": cls.description,
            "inputs": [
                {"name": s.name, "type": s.type_names, "required": s.required} for s in cls.inputs
            ],
            "outputs": [
                {"name": s.name, "type": s.type_names, "required": s.required} for s in cls.outputs
            ],
        }
