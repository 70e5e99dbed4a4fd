"""
Behavior Registry: static mapping of behavior type strings to classes.

Built once at startup from each implementation module's explicit mapping
and passed by reference to the workflow engine. Nothing is discovered at
runtime.
"""

from typing import Dict, Optional, Type

from behaviors.base import BaseBehavior, BehaviorServices
from behaviors.implementations.billing import BILLING_BEHAVIOR_TYPES
from behaviors.implementations.booking import BOOKING_BEHAVIOR_TYPES
from behaviors.implementations.crm import CRM_BEHAVIOR_TYPES
from behaviors.implementations.notification import NOTIFICATION_BEHAVIOR_TYPES


class BehaviorRegistry:
    """Central registry for all behavior implementations."""

    def __init__(self, register_builtin: bool = True):
        self._behaviors: Dict[str, Type[BaseBehavior]] = {}
        if register_builtin:
            self._register_builtin_behaviors()

    def _register_builtin_behaviors(self):
        for mapping in (
            CRM_BEHAVIOR_TYPES,
            BILLING_BEHAVIOR_TYPES,
            BOOKING_BEHAVIOR_TYPES,
            NOTIFICATION_BEHAVIOR_TYPES,
        ):
            for behavior_type, behavior_class in mapping.items():
                self.register(behavior_type, behavior_class)

    def register(self, behavior_type: str, behavior_class: Type[BaseBehavior]):
        """Register a behavior type. Re-registering a type is an error."""
        if behavior_type in self._behaviors:
            raise ValueError(f"Behavior type '{behavior_type}' is already registered")
        self._behaviors[behavior_type] = behavior_class

    def get(self, behavior_type: str) -> Optional[Type[BaseBehavior]]:
        return self._behaviors.get(behavior_type)

    def __contains__(self, behavior_type: str) -> bool:
        return behavior_type in self._behaviors

    def create_instance(self, behavior_type: str, services: BehaviorServices) -> Optional[BaseBehavior]:
        """Create a fresh behavior instance for one invocation."""
        behavior_class = self.get(behavior_type)
        if behavior_class:
            return behavior_class(services)
        return None

    def list_all(self) -> list:
        """List all registered behavior types with their context contracts."""
        return [cls.describe() for cls in self._behaviors.values()]

    @property
    def available_types(self) -> list:
        return list(self._behaviors.keys())


# Singleton
_registry: Optional[BehaviorRegistry] = None


def get_behavior_registry() -> BehaviorRegistry:
    global _registry
    if _registry is None:
        _registry = BehaviorRegistry()
    return _registry
