"""
Domain models for EverBloom

Plain dataclasses mirroring the stored entities, plus the derived
Notification type. Rows are converted with ``from_row``; API payloads are
produced with ``to_dict``.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, Type, TypeVar

from .errors import ValidationError

E = TypeVar("E", bound=Enum)


class SubscriptionTier(Enum):
    FREE = "FREE"
    PREMIUM = "PREMIUM"
    PLATINUM = "PLATINUM"


class AITone(Enum):
    WARM = "WARM"
    EMPATHETIC = "EMPATHETIC"
    PRACTICAL = "PRACTICAL"


class RelationshipType(Enum):
    ROMANTIC = "ROMANTIC"
    FAMILY = "FAMILY"
    FRIEND = "FRIEND"
    PROFESSIONAL = "PROFESSIONAL"
    OTHER = "OTHER"


class InteractionType(Enum):
    GIFT_SENT = "GIFT_SENT"
    MESSAGE_SENT = "MESSAGE_SENT"
    DATE_PLANNED = "DATE_PLANNED"
    CONVERSATION = "CONVERSATION"
    REMINDER_RECEIVED = "REMINDER_RECEIVED"
    OTHER = "OTHER"


class SuggestionType(Enum):
    GIFT = "GIFT"
    ACTIVITY = "ACTIVITY"
    MESSAGE_PROMPT = "MESSAGE_PROMPT"
    CONVERSATION_STARTER = "CONVERSATION_STARTER"
    COMMUNICATION_FEEDBACK = "COMMUNICATION_FEEDBACK"


class NotificationKind(Enum):
    BIRTHDAY = "BIRTHDAY"
    ANNIVERSARY = "ANNIVERSARY"
    REMINDER = "REMINDER"
    SUGGESTION = "SUGGESTION"
    MILESTONE = "MILESTONE"


class Priority(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        """Sort weight: HIGH=3, MEDIUM=2, LOW=1."""
        return {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}[self]


def parse_enum(enum_cls: Type[E], value: Any) -> E:
    """Coerce a string (case-insensitive) or enum member into ``enum_cls``."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {enum_cls.__name__} '{value}' (expected one of: {allowed})")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class User:
    id: str
    email: str
    name: str
    subscription_status: SubscriptionTier = SubscriptionTier.FREE
    preferred_ai_tone: AITone = AITone.WARM
    notification_preferences: Dict[str, Any] = field(
        default_factory=lambda: {"email": True, "push": True, "frequency": "daily"}
    )
    locale: str = "en-US"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            subscription_status=SubscriptionTier(row["subscription_status"]),
            preferred_ai_tone=AITone(row["preferred_ai_tone"]),
            notification_preferences=json.loads(row["notification_preferences"] or "{}"),
            locale=row["locale"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            last_login=_parse_ts(row["last_login"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "subscription_status": self.subscription_status.value,
            "preferred_ai_tone": self.preferred_ai_tone.value,
            "notification_preferences": self.notification_preferences,
            "locale": self.locale,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "last_login": _iso(self.last_login),
        }


@dataclass
class Relationship:
    """One tracked connection, owned by a single user."""
    id: str
    owner_id: str
    display_name: str
    relationship_type: RelationshipType
    strength_score: int = 50
    last_interaction_date: Optional[datetime] = None
    # label -> stored date string; only month/day matter
    important_dates: Dict[str, Any] = field(default_factory=dict)
    # opaque context for the AI collaborator
    preferences: Dict[str, str] = field(default_factory=dict)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "Relationship":
        return cls(
            id=row["id"],
            owner_id=row["user_id"],
            display_name=row["display_name"],
            relationship_type=RelationshipType(row["relationship_type"]),
            strength_score=int(row["strength_score"]),
            last_interaction_date=_parse_ts(row["last_interaction_date"]),
            important_dates=json.loads(row["important_dates_json"] or "{}"),
            preferences=json.loads(row["preferences_json"] or "{}"),
            notes=row["notes"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "display_name": self.display_name,
            "relationship_type": self.relationship_type.value,
            "strength_score": self.strength_score,
            "last_interaction_date": _iso(self.last_interaction_date),
            "important_dates": self.important_dates,
            "preferences": self.preferences,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class InteractionLog:
    id: str
    relationship_id: str
    timestamp: datetime
    interaction_type: InteractionType
    description: str
    ai_suggestion_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "InteractionLog":
        return cls(
            id=row["id"],
            relationship_id=row["relationship_id"],
            timestamp=_parse_ts(row["timestamp"]),
            interaction_type=InteractionType(row["interaction_type"]),
            description=row["description"],
            ai_suggestion_id=row["ai_suggestion_id"],
            created_at=_parse_ts(row["created_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "relationship_id": self.relationship_id,
            "timestamp": _iso(self.timestamp),
            "interaction_type": self.interaction_type.value,
            "description": self.description,
            "ai_suggestion_id": self.ai_suggestion_id,
            "created_at": _iso(self.created_at),
        }


@dataclass
class AISuggestion:
    id: str
    owner_id: str
    suggestion_type: SuggestionType
    suggestion_text: str
    generated_at: datetime
    relationship_id: Optional[str] = None
    is_acted_on: bool = False
    feedback_score: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> "AISuggestion":
        return cls(
            id=row["id"],
            owner_id=row["user_id"],
            suggestion_type=SuggestionType(row["suggestion_type"]),
            suggestion_text=row["suggestion_text"],
            generated_at=_parse_ts(row["generated_at"]),
            relationship_id=row["relationship_id"],
            is_acted_on=bool(row["is_acted_on"]),
            feedback_score=row["feedback_score"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "relationship_id": self.relationship_id,
            "suggestion_type": self.suggestion_type.value,
            "suggestion_text": self.suggestion_text,
            "generated_at": _iso(self.generated_at),
            "is_acted_on": self.is_acted_on,
            "feedback_score": self.feedback_score,
        }


@dataclass
class Notification:
    """Derived feed entry. Never persisted."""
    id: str
    kind: NotificationKind
    title: str
    message: str
    event_date: datetime
    priority: Priority
    related_relationship_id: Optional[str] = None
    relationship_name: Optional[str] = None
    action_url: Optional[str] = None
    is_read: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "message": self.message,
            "event_date": self.event_date.isoformat(),
            "priority": self.priority.value,
            "related_relationship_id": self.related_relationship_id,
            "relationship_name": self.relationship_name,
            "action_url": self.action_url,
            "is_read": self.is_read,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Notification":
        return cls(
            id=data["id"],
            kind=NotificationKind(data["kind"]),
            title=data["title"],
            message=data["message"],
            event_date=datetime.fromisoformat(data["event_date"]),
            priority=Priority(data["priority"]),
            related_relationship_id=data.get("related_relationship_id"),
            relationship_name=data.get("relationship_name"),
            action_url=data.get("action_url"),
            is_read=data.get("is_read", False),
        )
