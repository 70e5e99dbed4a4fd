"""Plan-tier licensing: feature flags and resource limits.

Tier configuration mirrors the product's pricing page. A limit of -1
means unlimited.

Usage:
    check_feature_access(org.plan_tier, "workflowTestModeEnabled")
    check_limit(org.plan_tier, "maxBehaviorsPerWorkflow", current=len(behaviors))
"""

import logging
from typing import Any

from core.constants import PlanTier
from core.exceptions import FeatureAccessDeniedError, LimitExceededError

logger = logging.getLogger(__name__)

UNLIMITED = -1

TIER_CONFIGS: dict[str, dict[str, Any]] = {
    PlanTier.FREE.value: {
        "limits": {"maxWorkflows": 2, "maxBehaviorsPerWorkflow": 5},
        "features": {"workflowsEnabled": False, "workflowTestModeEnabled": False},
    },
    PlanTier.PRO.value: {
        "limits": {"maxWorkflows": 10, "maxBehaviorsPerWorkflow": 20},
        "features": {"workflowsEnabled": True, "workflowTestModeEnabled": False},
    },
    PlanTier.AGENCY.value: {
        "limits": {"maxWorkflows": UNLIMITED, "maxBehaviorsPerWorkflow": UNLIMITED},
        "features": {"workflowsEnabled": True, "workflowTestModeEnabled": True},
    },
    PlanTier.ENTERPRISE.value: {
        "limits": {"maxWorkflows": UNLIMITED, "maxBehaviorsPerWorkflow": UNLIMITED},
        "features": {"workflowsEnabled": True, "workflowTestModeEnabled": True},
    },
}

TIER_ORDER = [tier.value for tier in PlanTier]


def get_tier_config(plan_tier: str) -> dict[str, Any]:
    """Return the tier config, treating unknown tiers as free."""
    config = TIER_CONFIGS.get(plan_tier)
    if config is None:
        logger.warning("Unknown plan tier %r, falling back to free", plan_tier)
        config = TIER_CONFIGS[PlanTier.FREE.value]
    return config


def _required_tier(feature: str) -> str:
    for tier in TIER_ORDER:
        if TIER_CONFIGS[tier]["features"].get(feature):
            return tier
    return PlanTier.ENTERPRISE.value


def _next_tier(plan_tier: str) -> str:
    if plan_tier not in TIER_ORDER:
        return TIER_ORDER[1]
    index = TIER_ORDER.index(plan_tier)
    return TIER_ORDER[min(index + 1, len(TIER_ORDER) - 1)]


def has_feature(plan_tier: str, feature: str) -> bool:
    return bool(get_tier_config(plan_tier)["features"].get(feature, False))


def check_feature_access(plan_tier: str, feature: str) -> None:
    """Raise FeatureAccessDeniedError if the tier lacks a feature."""
    if has_feature(plan_tier, feature):
        return
    raise FeatureAccessDeniedError(
        feature,
        f"This feature requires {_required_tier(feature)}. "
        f"Current tier: {plan_tier}. Upgrade to unlock this feature.",
    )


def check_limit(plan_tier: str, limit_key: str, current: int) -> None:
    """Raise LimitExceededError if `current` goes past the tier limit.

    Args:
        plan_tier: Tenant plan tier
        limit_key: Key in the tier's limits (e.g. maxBehaviorsPerWorkflow)
        current: Count that would exist after the operation
    """
    limit = get_tier_config(plan_tier)["limits"].get(limit_key, 0)
    if limit == UNLIMITED or current <= limit:
        return
    raise LimitExceededError(
        limit_key,
        limit,
        current,
        f"You've reached your {limit_key} limit ({limit}). "
        f"Upgrade to {_next_tier(plan_tier)} for more capacity.",
    )
