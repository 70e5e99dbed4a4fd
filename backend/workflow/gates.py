"""Conditional gates: decide execute vs. skip before a behavior runs.

A gate combines the behavior class's own predicate with the optional
`conditions` list of its config:

    "conditions": [
        {"field": "billingMethod", "operator": "equals", "value": "employer_invoice"},
        {"field": "customerData.email", "operator": "exists"}
    ]

Gates read the context as built by earlier behaviors only and never look
at the dry-run flag.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

_MISSING = object()

OPERATORS = {
    "equals": lambda actual, expected: actual == expected,
    "not_equals": lambda actual, expected: actual != expected,
    "in": lambda actual, expected: actual in (expected or []),
    "not_in": lambda actual, expected: actual not in (expected or []),
    "exists": lambda actual, expected: actual is not _MISSING and actual is not None,
    "not_exists": lambda actual, expected: actual is _MISSING or actual is None,
    "truthy": lambda actual, expected: actual is not _MISSING and bool(actual),
    "falsy": lambda actual, expected: actual is _MISSING or not actual,
}


@dataclass(frozen=True)
class GateDecision:
    passed: bool
    reason: Optional[str] = None


def resolve_path(context: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path like 'customerData.email'; _MISSING if absent."""
    current: Any = context
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def evaluate_conditions(conditions: list, context: Mapping[str, Any]) -> Optional[str]:
    """Return the reason for the first unmet condition, or None when all hold."""
    for condition in conditions or []:
        field_path = condition.get("field", "")
        operator = condition.get("operator", "equals")
        expected = condition.get("value")

        check = OPERATORS.get(operator)
        if check is None:
            raise ValueError(f"Unknown condition operator '{operator}'")

        actual = resolve_path(context, field_path)
        if check(actual, expected):
            continue
        shown = "<missing>" if actual is _MISSING else repr(actual)
        if operator in ("exists", "not_exists", "truthy", "falsy"):
            return f"Condition not met: {field_path} {operator} (was {shown})"
        return f"Condition not met: {field_path} {operator} {expected!r} (was {shown})"
    return None


def evaluate_gate(behavior, config: Mapping[str, Any], context: Mapping[str, Any]) -> GateDecision:
    """Run the behavior's own gate, then the configured conditions."""
    gate_config = {k: v for k, v in config.items() if k != "dryRun"}

    reason = behavior.gate(gate_config, context)
    if reason:
        return GateDecision(False, reason)

    reason = evaluate_conditions(gate_config.get("conditions", []), context)
    if reason:
        return GateDecision(False, reason)

    return GateDecision(True)
