"""Execution Context: the fact accumulator threaded through one run."""

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional


@dataclass
class ExecutionContext:
    """Mutable, append-biased key/value store for a single workflow run.

    Keys are only ever added or overwritten (shallow), never deleted. Each
    run owns its own instance; nothing is shared between runs.
    """

    run_id: str
    tenant_id: str
    workflow_id: Optional[str] = None
    values: dict[str, Any] = field(default_factory=dict)

    def merge(self, data: Mapping[str, Any]) -> None:
        """Shallow-overwrite merge: `values = {**values, **data}`."""
        if data:
            self.values = {**self.values, **data}

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the current values, safe to keep in a report."""
        return copy.deepcopy(self.values)

    def view(self) -> Mapping[str, Any]:
        """Read-only copy handed to a behavior."""
        return MappingProxyType(self.snapshot())
