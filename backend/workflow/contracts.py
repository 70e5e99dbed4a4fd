"""Context slots: the declared read/write contract of each behavior.

A behavior class lists the context keys it reads (`inputs`) and writes
(`outputs`) as ContextSlots. The sequencer checks inputs before a behavior
runs and outputs after it succeeds; validate_workflow() checks a whole
configuration statically so missing producers show up before any run.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from workflow.definition import BehaviorConfig, order_enabled

# Keys every skipped result carries; exempt from output contracts
SKIP_KEYS = frozenset({"skipped", "reason"})


@dataclass(frozen=True)
class ContextSlot:
    """A named, typed context key.

    For inputs, `required` means the key must be present and not None.
    For outputs, `required` means a successful result must include the key;
    None is only accepted when NoneType is one of `kinds`.
    """

    name: str
    kinds: tuple = (object,)
    required: bool = True
    description: str = ""

    @property
    def type_names(self) -> str:
        return " | ".join("None" if k is type(None) else k.__name__ for k in self.kinds)

    def accepts(self, value: Any) -> bool:
        return isinstance(value, self.kinds)


def check_inputs(slots: Iterable[ContextSlot], context: Mapping[str, Any]) -> list[str]:
    """Return the input contract violations for a context."""
    problems = []
    for slot in slots:
        value = context.get(slot.name)
        if value is None:
            if slot.required:
                problems.append(f"Missing required context key '{slot.name}'")
            continue
        if not slot.accepts(value):
            problems.append(
                f"Context key '{slot.name}' expected {slot.type_names}, got {type(value).__name__}"
            )
    return problems


def check_outputs(slots: Iterable[ContextSlot], data: Mapping[str, Any]) -> list[str]:
    """Return the output contract violations for a successful result's data."""
    slots = list(slots)
    declared = {slot.name for slot in slots}
    problems = []
    for slot in slots:
        if slot.name not in data:
            if slot.required:
                problems.append(f"missing output '{slot.name}'")
            continue
        if not slot.accepts(data[slot.name]):
            problems.append(
                f"output '{slot.name}' expected {slot.type_names}, got {type(data[slot.name]).__name__}"
            )
    for key in data:
        if key not in declared and key not in SKIP_KEYS:
            problems.append(f"undeclared output '{key}'")
    return problems


@dataclass(frozen=True)
class ConfigIssue:
    """A problem found by static workflow validation."""

    level: str  # "error" blocks saving, "warning" is informational
    message: str
    behavior_id: Optional[str] = None
    behavior_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "message": self.message,
            "behaviorId": self.behavior_id,
            "behaviorType": self.behavior_type,
        }


def validate_workflow(
    configs: list[BehaviorConfig],
    registry,
    required_inputs: Iterable[str] = (),
) -> list[ConfigIssue]:
    """Statically validate a behavior configuration.

    Errors: unknown behavior types, duplicate behavior IDs.
    Warnings: a required input that neither the trigger (`required_inputs`)
    nor any earlier behavior in execution order produces.
    """
    issues: list[ConfigIssue] = []

    seen_ids = set()
    for config in configs:
        if config.id in seen_ids:
            issues.append(ConfigIssue("error", f"Duplicate behavior id '{config.id}'", config.id, config.type))
        seen_ids.add(config.id)
        if registry.get(config.type) is None:
            issues.append(ConfigIssue("error", f"Unknown behavior type '{config.type}'", config.id, config.type))

    available = set(required_inputs)
    for config in order_enabled(configs):
        behavior_cls = registry.get(config.type)
        if behavior_cls is None:
            continue
        for slot in behavior_cls.inputs:
            if slot.required and slot.name not in available:
                issues.append(ConfigIssue(
                    "warning",
                    f"Requires '{slot.name}' but no earlier behavior produces it "
                    f"and it is not a declared trigger input",
                    config.id,
                    config.type,
                ))
        for slot in behavior_cls.outputs:
            available.add(config.outputs.get(slot.name, slot.name))

    return issues
