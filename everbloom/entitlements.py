"""
Subscription entitlements for EverBloom

The billing service decides a user's tier; this module only maps the tier
to usage caps and answers whether an action fits under them.
"""

import logging
from typing import Any, Dict, Optional

from . import config
from .errors import EntitlementError, ValidationError
from .models import SubscriptionTier, parse_enum

logger = logging.getLogger(__name__)

# action -> (cap name, usage counter)
ACTION_LIMITS = {
    "add_relationship": ("max_relationships", "relationship_count"),
    "ai_generation": ("max_ai_generations_per_day", "ai_generations_today"),
    "interaction": ("max_interactions_per_month", "interactions_this_month"),
}


def get_feature_limits(tier: Any) -> Dict[str, Optional[int]]:
    """Caps for ``tier``; None means unlimited."""
    tier = parse_enum(SubscriptionTier, tier)
    return dict(config.FEATURE_LIMITS[tier.value])


def remaining(tier: Any, action: str, usage: Dict[str, int]) -> Optional[int]:
    """How many more times ``action`` is allowed (None = unlimited)."""
    if action not in ACTION_LIMITS:
        raise ValidationError(f"Unknown action '{action}'")
    cap_name, counter = ACTION_LIMITS[action]
    limit = get_feature_limits(tier)[cap_name]
    if limit is None:
        return None
    return max(limit - usage.get(counter, 0), 0)


def can_perform_action(tier: Any, action: str, usage: Dict[str, int]) -> bool:
    left = remaining(tier, action, usage)
    return left is None or left > 0


def require_action(tier: Any, action: str, usage: Dict[str, int]):
    """Raise EntitlementError when ``action`` would exceed the tier's cap."""
    if can_perform_action(tier, action, usage):
        return
    tier = parse_enum(SubscriptionTier, tier)
    cap_name, _ = ACTION_LIMITS[action]
    limit = config.FEATURE_LIMITS[tier.value][cap_name]
    logger.info(f"Blocked {action} for {tier.value} tier (limit={limit})")
    raise EntitlementError(action, tier.value, limit)


def entitlement_summary(tier: Any, usage: Dict[str, int]) -> Dict[str, Any]:
    tier = parse_enum(SubscriptionTier, tier)
    return {
        "tier": tier.value,
        "limits": get_feature_limits(tier),
        "usage": dict(usage),
        "remaining": {action: remaining(tier, action, usage) for action in ACTION_LIMITS},
    }
