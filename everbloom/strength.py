"""
Relationship strength scoring for EverBloom

The strength score (0-100) moves only when a relationship's
``last_interaction_date`` is written. There is no background decay: a
relationship nobody touches keeps its score until the next write.

TRANSITION RULE (days = floor(now - last_interaction_date)):
    no interaction recorded  -> 30
    days <= 3                -> score + 10
    3 < days <= 7            -> score + 5
    days > 30                -> score - 15
    otherwise                -> unchanged

Future timestamps (negative days) leave the score unchanged.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURABLE CONSTANTS
# ============================================================================

SCORE_MIN = 0
SCORE_MAX = 100
INITIAL_SCORE = 50
NO_INTERACTION_SCORE = 30

RECENT_DAYS = 3
RECENT_BOOST = 10
WEEK_DAYS = 7
WEEK_BOOST = 5
STALE_DAYS = 30
STALE_PENALTY = 15


@dataclass(frozen=True)
class StrengthUpdate:
    """Result of one scoring trigger, returned by the store's write path."""
    relationship_id: str
    previous_score: int
    new_score: int

    @property
    def delta(self) -> int:
        return self.new_score - self.previous_score


def clamp_score(score: float) -> int:
    """Clamp to [SCORE_MIN, SCORE_MAX] and round to an integer."""
    return int(max(SCORE_MIN, min(SCORE_MAX, round(score))))


def days_since(last_interaction_date: datetime, now: datetime) -> int:
    """Whole days elapsed, floored (negative when the date is in the future)."""
    return (now - last_interaction_date).days


def compute_strength_score(
    previous_score: float,
    last_interaction_date: Optional[datetime],
    now: datetime,
) -> int:
    """
    Compute the new strength score after a write to ``last_interaction_date``.

    Args:
        previous_score: Score currently stored for the relationship
        last_interaction_date: The value just written (None clears it)
        now: Write time

    Returns:
        New score in [0, 100]
    """
    score = clamp_score(previous_score)

    if last_interaction_date is None:
        return NO_INTERACTION_SCORE

    days = days_since(last_interaction_date, now)

    if days < 0:
        logger.warning(f"last_interaction_date is {-days} day(s) in the future; score left at {score}")
        return score

    if days <= RECENT_DAYS:
        return min(score + RECENT_BOOST, SCORE_MAX)
    if days <= WEEK_DAYS:
        return min(score + WEEK_BOOST, SCORE_MAX)
    if days > STALE_DAYS:
        return max(score - STALE_PENALTY, SCORE_MIN)

    return score
