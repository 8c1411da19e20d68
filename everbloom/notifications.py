"""
Notification derivation for EverBloom

Builds the reminder feed for one user from their relationships and recent
AI suggestions. The feed is recomputed on every view and never stored;
each entry carries a deterministic id so repeated passes over the same
inputs produce the same list.

CANDIDATE RULES (per relationship):
    Date-based   important date within 30 days -> BIRTHDAY / ANNIVERSARY
    Reminder     7+ days since the last interaction (or none at all)
    Milestone    score >= 80 and exactly 30, 100 or 365 days since creation
Plus one SUGGESTION entry per unacted suggestion from the last 3 days (max 3).

ORDERING: priority descending, then event date ascending (stable).
"""

import logging
from datetime import datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from . import config
from .dates import upcoming_dates
from .errors import ValidationError, UpstreamFetchError
from .models import (
    AISuggestion,
    Notification,
    NotificationKind,
    Priority,
    Relationship,
)

logger = logging.getLogger(__name__)

# Days since null last_interaction_date is treated as
NO_INTERACTION_DAYS = 999

MILESTONE_SCORE_MIN = 80
MILESTONE_DAYS = (30, 100, 365)


def start_of_day(value: Any = None) -> datetime:
    """Midnight of the given day (today when omitted)."""
    if value is None:
        value = datetime.now()
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.min)


# ============================================================================
# PRIORITY RULES
# ============================================================================

def date_priority(days_until: int) -> Priority:
    if days_until <= 3:
        return Priority.HIGH
    if days_until <= 7:
        return Priority.MEDIUM
    return Priority.LOW


def reminder_priority(days_since_last: int) -> Priority:
    if days_since_last >= 30:
        return Priority.HIGH
    if days_since_last >= 14:
        return Priority.MEDIUM
    return Priority.LOW


def elapsed_days(since: datetime, today: datetime) -> int:
    """Whole days from ``since`` to the start of ``today``, floored."""
    return (today - since) // timedelta(days=1)


def days_since_last_interaction(relationship: Relationship, today: datetime) -> int:
    if relationship.last_interaction_date is None:
        return NO_INTERACTION_DAYS
    return elapsed_days(relationship.last_interaction_date, today)


# ============================================================================
# CANDIDATE GENERATION
# ============================================================================

def date_candidates(relationship: Relationship, today: datetime) -> List[Notification]:
    """BIRTHDAY / ANNIVERSARY candidates for one relationship."""
    candidates = []
    for upcoming in upcoming_dates(relationship.important_dates, today.date(), config.UPCOMING_WINDOW_DAYS):
        label = upcoming.label
        kind = NotificationKind.BIRTHDAY if "birthday" in label.lower() else NotificationKind.ANNIVERSARY

        if upcoming.days_until == 0:
            when = "today"
        else:
            when = f"in {upcoming.days_until} day{'s' if upcoming.days_until > 1 else ''}"

        candidates.append(Notification(
            id=f"{relationship.id}-{label}",
            kind=kind,
            title=f"{label} coming up!",
            message=f"{relationship.display_name}'s {label.lower()} is {when}",
            event_date=datetime.combine(upcoming.next_date, time.min),
            priority=date_priority(upcoming.days_until),
            related_relationship_id=relationship.id,
            relationship_name=relationship.display_name,
            action_url="/ai-studio",
        ))
    return candidates


def reminder_candidate(relationship: Relationship, today: datetime) -> Optional[Notification]:
    """Re-engagement nudge when the relationship has gone quiet."""
    days = days_since_last_interaction(relationship, today)
    if days < config.REMINDER_THRESHOLD_DAYS:
        return None

    return Notification(
        id=f"reminder-{relationship.id}",
        kind=NotificationKind.REMINDER,
        title="Time to reconnect!",
        message=f"You haven't connected with {relationship.display_name} in {days} days",
        event_date=today,
        priority=reminder_priority(days),
        related_relationship_id=relationship.id,
        relationship_name=relationship.display_name,
        action_url="/messages",
    )


def milestone_candidate(relationship: Relationship, today: datetime) -> Optional[Notification]:
    """
    Milestone on the exact 30th, 100th or 365th day after creation.

    Only fires when a pass runs on that very day; a missed day is not
    surfaced later.
    """
    if relationship.strength_score < MILESTONE_SCORE_MIN or relationship.created_at is None:
        return None

    days = elapsed_days(relationship.created_at, today)
    if days not in MILESTONE_DAYS:
        return None

    return Notification(
        id=f"milestone-{relationship.id}-{days}",
        kind=NotificationKind.MILESTONE,
        title="Relationship milestone! 🎉",
        message=f"You've been nurturing your connection with {relationship.display_name} for {days} days!",
        event_date=today,
        priority=Priority.MEDIUM,
        related_relationship_id=relationship.id,
        relationship_name=relationship.display_name,
    )


def preview_text(text: str, length: Optional[int] = None) -> str:
    length = length or config.SUGGESTION_PREVIEW_LENGTH
    text = text.strip()
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."


def suggestion_candidates(
    suggestions: Iterable[AISuggestion],
    today: datetime,
    relationship_names: Dict[str, str],
) -> List[Notification]:
    """One LOW entry per recent, unacted suggestion (most recent first, capped)."""
    since = today - timedelta(days=config.SUGGESTION_LOOKBACK_DAYS)
    recent = [s for s in suggestions if not s.is_acted_on and s.generated_at >= since]
    recent.sort(key=lambda s: s.generated_at, reverse=True)

    candidates = []
    for suggestion in recent[:config.SUGGESTION_NOTIFICATION_LIMIT]:
        candidates.append(Notification(
            id=f"suggestion-{suggestion.id}",
            kind=NotificationKind.SUGGESTION,
            title="New AI suggestion",
            message=preview_text(suggestion.suggestion_text),
            event_date=suggestion.generated_at,
            priority=Priority.LOW,
            related_relationship_id=suggestion.relationship_id,
            relationship_name=relationship_names.get(suggestion.relationship_id),
            action_url="/ai-studio",
        ))
    return candidates


def derive_notifications(
    today: Any,
    relationships: Sequence[Relationship],
    suggestions: Sequence[AISuggestion] = (),
) -> List[Notification]:
    """
    Run one derivation pass and return the ranked feed.

    Args:
        today: Reference day; captured once and shared by every rule
        relationships: The user's relationships
        suggestions: The user's recent suggestions (filtered again here)

    Returns:
        Ranked, deduplicated notifications
    """
    today = start_of_day(today)
    candidates: List[Notification] = []

    for relationship in relationships:
        try:
            candidates.extend(date_candidates(relationship, today))
        except ValidationError as e:
            logger.warning(f"Skipping important dates for relationship {relationship.id}: {e}")

        reminder = reminder_candidate(relationship, today)
        if reminder:
            candidates.append(reminder)

        milestone = milestone_candidate(relationship, today)
        if milestone:
            candidates.append(milestone)

    names = {r.id: r.display_name for r in relationships}
    candidates.extend(suggestion_candidates(suggestions, today, names))

    ranked = rank_notifications(candidates)
    logger.debug(f"Derived {len(ranked)} notifications from {len(relationships)} relationships")
    return ranked


# ============================================================================
# RANKING
# ============================================================================

def rank_notifications(candidates: Iterable[Notification]) -> List[Notification]:
    """Drop repeated ids (first wins), then sort by priority desc, event date asc."""
    seen = set()
    unique = []
    for notification in candidates:
        if notification.id in seen:
            continue
        seen.add(notification.id)
        unique.append(notification)

    return sorted(unique, key=lambda n: (-n.priority.rank, n.event_date))


class NotificationFeed:
    """Ranked notifications plus session-local read state."""

    def __init__(self, notifications: List[Notification], today: datetime):
        self.notifications = notifications
        self.today = today

    def __len__(self):
        return len(self.notifications)

    def __iter__(self):
        return iter(self.notifications)

    def mark_as_read(self, notification_id: str) -> bool:
        for notification in self.notifications:
            if notification.id == notification_id:
                notification.is_read = True
                return True
        return False

    def mark_all_as_read(self):
        for notification in self.notifications:
            notification.is_read = True

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read)

    @property
    def high_priority_count(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read and n.priority is Priority.HIGH)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [n.to_dict() for n in self.notifications]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "today": self.today.date().isoformat(),
            "notifications": self.to_dicts(),
            "unread_count": self.unread_count,
            "high_priority_count": self.high_priority_count,
        }


def build_notification_feed(store, owner_id: str, today: Any = None, cache=None) -> NotificationFeed:
    """
    Fetch a user's data from the store and derive their feed.

    A failed read aborts the pass with UpstreamFetchError; no partial feed
    is returned.
    """
    today = start_of_day(today)

    if cache is not None:
        cached = cache.get(owner_id, today.date())
        if cached is not None:
            return NotificationFeed(cached, today)

    try:
        relationships = store.list_relationships(owner_id)
        suggestions = store.list_recent_suggestions(
            owner_id,
            since=today - timedelta(days=config.SUGGESTION_LOOKBACK_DAYS),
            limit=config.SUGGESTION_NOTIFICATION_LIMIT,
        )
    except Exception as e:
        logger.error(f"Notification pass aborted for user {owner_id}: {e}")
        raise UpstreamFetchError(f"Failed to load data for notifications: {e}") from e

    notifications = derive_notifications(today, relationships, suggestions)

    if cache is not None:
        cache.set(owner_id, today.date(), notifications)

    return NotificationFeed(notifications, today)
