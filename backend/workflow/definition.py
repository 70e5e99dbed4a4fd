"""Behavior configs as stored on a Workflow, and their execution order."""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
from uuid import uuid4

from core.exceptions import WorkflowConfigError


def _positive_number(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and value > 0


@dataclass(frozen=True)
class BehaviorConfig:
    """One entry of a workflow's behavior list.

    Attributes:
        id: Stable behavior ID within the workflow
        type: Behavior type string, resolved through the BehaviorRegistry
        enabled: Disabled behaviors are dropped before sequencing
        priority: Higher runs first; ties keep declaration order
        config: Behavior-specific configuration (plus `conditions`, `timeoutSeconds`)
        outputs: Optional renames applied to result data before it is merged
        position: Index in the declared list
    """

    id: str
    type: str
    enabled: bool = True
    priority: int = 0
    config: dict[str, Any] = field(default_factory=dict)
    outputs: dict[str, str] = field(default_factory=dict)
    position: int = 0

    @property
    def timeout_seconds(self) -> Optional[float]:
        """Per-behavior timeout override; ValueError when it is not a positive number."""
        value = self.config.get("timeoutSeconds")
        if value is None:
            return None
        if not _positive_number(value):
            raise ValueError(f"timeoutSeconds must be a positive number, got {value!r}")
        return float(value)

    @classmethod
    def from_dict(cls, data: dict, position: int = 0, strict: bool = True) -> "BehaviorConfig":
        """Parse a stored behavior config, raising WorkflowConfigError when malformed.

        With strict=False the per-behavior settings (`enabled`,
        `timeoutSeconds`) are not checked here; the engine reports a bad
        timeout as that behavior's failure instead of aborting the run.
        """
        if not isinstance(data, dict):
            raise WorkflowConfigError(f"Behavior #{position} must be an object")

        behavior_type = data.get("type")
        if not isinstance(behavior_type, str) or not behavior_type:
            raise WorkflowConfigError(f"Behavior #{position} is missing a type")

        priority = data.get("priority", 0)
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise WorkflowConfigError(f"Behavior #{position} ({behavior_type}) priority must be an integer")

        config = data.get("config") or {}
        outputs = data.get("outputs") or {}
        if not isinstance(config, dict) or not isinstance(outputs, dict):
            raise WorkflowConfigError(f"Behavior #{position} ({behavior_type}) config and outputs must be objects")

        enabled = data.get("enabled", True)
        if strict:
            if not isinstance(enabled, bool):
                raise WorkflowConfigError(f"Behavior #{position} ({behavior_type}) enabled must be a boolean")
            timeout = config.get("timeoutSeconds")
            if timeout is not None and not _positive_number(timeout):
                raise WorkflowConfigError(
                    f"Behavior #{position} ({behavior_type}) timeoutSeconds must be a positive number"
                )

        return cls(
            id=data.get("id") or f"{behavior_type}_{position}",
            type=behavior_type,
            enabled=enabled is True,
            priority=priority,
            config=dict(config),
            outputs={str(k): str(v) for k, v in outputs.items()},
            position=position,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "enabled": self.enabled,
            "priority": self.priority,
            "config": self.config,
            "outputs": self.outputs,
        }


def new_behavior_id() -> str:
    return f"bhv_{uuid4().hex[:12]}"


def parse_behaviors(raw: Iterable, strict: bool = True) -> list[BehaviorConfig]:
    """Parse a stored behavior list, keeping declaration order."""
    return [
        item if isinstance(item, BehaviorConfig) else BehaviorConfig.from_dict(item, position, strict)
        for position, item in enumerate(raw or [])
    ]


def order_enabled(configs: Iterable[BehaviorConfig]) -> list[BehaviorConfig]:
    """Enabled behaviors by priority descending.

    sorted() is stable, so equal priorities keep declaration order and the
    result never depends on type names.
    """
    enabled = [c for c in configs if c.enabled]
    return sorted(enabled, key=lambda c: -c.priority)
