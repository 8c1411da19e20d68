"""
Tests for strength scoring
"""

import pytest
from datetime import datetime, timedelta
from everbloom.strength import (
    NO_INTERACTION_SCORE,
    StrengthUpdate,
    clamp_score,
    compute_strength_score,
)

NOW = datetime(2025, 1, 10, 12, 0, 0)


def ago(days, hours=0):
    return NOW - timedelta(days=days, hours=hours)


@pytest.mark.parametrize("days,expected", [
    (2, 60),
    (5, 55),
    (45, 35),
    (15, 50),
])
def test_bucket_values(days, expected):
    """Test each recency bucket from a score of 50."""
    assert compute_strength_score(50, ago(days), NOW) == expected


@pytest.mark.parametrize("days,expected", [
    (0, 60),
    (3, 60),
    (4, 55),
    (7, 55),
    (8, 50),
    (30, 50),
    (31, 35),
])
def test_bucket_boundaries(days, expected):
    """Test that boundaries are inclusive on the recent side."""
    assert compute_strength_score(50, ago(days), NOW) == expected


def test_partial_days_are_floored():
    """3 days and 23 hours still counts as 3 days."""
    assert compute_strength_score(50, ago(3, hours=23), NOW) == 60
    assert compute_strength_score(50, ago(30, hours=23), NOW) == 50


def test_null_interaction_resets():
    """Clearing the last interaction resets to 30 regardless of the old score."""
    for previous in (0, 30, 50, 100):
        assert compute_strength_score(previous, None, NOW) == NO_INTERACTION_SCORE


def test_clamping():
    """Scores never leave [0, 100]."""
    assert compute_strength_score(95, ago(1), NOW) == 100
    assert compute_strength_score(98, ago(6), NOW) == 100
    assert compute_strength_score(10, ago(45), NOW) == 0
    assert compute_strength_score(150, ago(15), NOW) == 100
    assert compute_strength_score(-20, ago(45), NOW) == 0


def test_future_date_leaves_score_unchanged():
    """A last interaction in the future is not treated as recent."""
    assert compute_strength_score(50, NOW + timedelta(days=2), NOW) == 50


def test_clamp_score_rounds():
    assert clamp_score(49.6) == 50
    assert clamp_score(101) == 100
    assert clamp_score(-1) == 0


def test_strength_update_delta():
    update = StrengthUpdate(relationship_id="r1", previous_score=50, new_score=35)
    assert update.delta == -15
