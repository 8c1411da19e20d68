"""
Tests for subscription entitlements
"""

import pytest
from everbloom.entitlements import (
    can_perform_action,
    entitlement_summary,
    get_feature_limits,
    remaining,
    require_action,
)
from everbloom.errors import EntitlementError, ValidationError
from everbloom.models import SubscriptionTier


def usage(relationships=0, ai=0, interactions=0):
    return {
        "relationship_count": relationships,
        "ai_generations_today": ai,
        "interactions_this_month": interactions,
    }


def test_free_limits():
    assert get_feature_limits("FREE") == {
        "max_relationships": 3,
        "max_ai_generations_per_day": 5,
        "max_interactions_per_month": 50,
    }


def test_free_relationship_cap():
    assert can_perform_action("FREE", "add_relationship", usage(relationships=2))
    assert not can_perform_action("FREE", "add_relationship", usage(relationships=3))


def test_premium_unlimited_relationships():
    assert remaining(SubscriptionTier.PREMIUM, "add_relationship", usage(relationships=500)) is None
    assert remaining("premium", "ai_generation", usage(ai=10)) == 40


def test_platinum_unlimited():
    for action in ("add_relationship", "ai_generation", "interaction"):
        assert remaining("PLATINUM", action, usage(1000, 1000, 1000)) is None


def test_remaining_never_negative():
    assert remaining("FREE", "ai_generation", usage(ai=9)) == 0


def test_require_action_raises():
    with pytest.raises(EntitlementError) as exc_info:
        require_action("FREE", "interaction", usage(interactions=50))
    assert exc_info.value.action == "interaction"
    assert exc_info.value.tier == "FREE"
    assert exc_info.value.limit == 50


def test_require_action_allows():
    require_action("FREE", "interaction", usage(interactions=49))


def test_unknown_action_and_tier():
    with pytest.raises(ValidationError):
        remaining("FREE", "teleport", usage())
    with pytest.raises(ValidationError):
        get_feature_limits("GOLD")


def test_summary():
    summary = entitlement_summary("FREE", usage(relationships=1, ai=5))
    assert summary["tier"] == "FREE"
    assert summary["remaining"] == {
        "add_relationship": 2,
        "ai_generation": 0,
        "interaction": 50,
    }
