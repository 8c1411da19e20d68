"""
Entity store for EverBloom
SQLite-backed persistence for users, relationships, interaction logs and
AI suggestions. Every relationship-level query is scoped by owner id, so a
record owned by someone else is indistinguishable from a missing one.

Writes to ``last_interaction_date`` go through ``set_last_interaction``,
which rescores the relationship in the same transaction.
"""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from . import config
from .dates import parse_timestamp, validate_important_dates
from .errors import RecordNotFound, ValidationError
from .models import (
    AISuggestion,
    InteractionLog,
    InteractionType,
    Relationship,
    RelationshipType,
    SubscriptionTier,
    SuggestionType,
    User,
    parse_enum,
)
from .strength import INITIAL_SCORE, StrengthUpdate, compute_strength_score

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    subscription_status TEXT NOT NULL DEFAULT 'FREE'
        CHECK (subscription_status IN ('FREE', 'PREMIUM', 'PLATINUM')),
    preferred_ai_tone TEXT NOT NULL DEFAULT 'WARM'
        CHECK (preferred_ai_tone IN ('WARM', 'EMPATHETIC', 'PRACTICAL')),
    notification_preferences TEXT NOT NULL
        DEFAULT '{"email": true, "push": true, "frequency": "daily"}',
    locale TEXT NOT NULL DEFAULT 'en-US',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_login TEXT
);

CREATE TABLE IF NOT EXISTS relationships (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    display_name TEXT NOT NULL CHECK (length(trim(display_name)) > 0),
    relationship_type TEXT NOT NULL
        CHECK (relationship_type IN ('ROMANTIC', 'FAMILY', 'FRIEND', 'PROFESSIONAL', 'OTHER')),
    preferences_json TEXT NOT NULL DEFAULT '{}',
    important_dates_json TEXT NOT NULL DEFAULT '{}',
    last_interaction_date TEXT,
    strength_score INTEGER NOT NULL DEFAULT 50
        CHECK (strength_score >= 0 AND strength_score <= 100),
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ai_suggestions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    relationship_id TEXT REFERENCES relationships(id) ON DELETE CASCADE,
    suggestion_type TEXT NOT NULL
        CHECK (suggestion_type IN ('GIFT', 'ACTIVITY', 'MESSAGE_PROMPT',
                                   'CONVERSATION_STARTER', 'COMMUNICATION_FEEDBACK')),
    suggestion_text TEXT NOT NULL,
    generated_at TEXT NOT NULL,
    is_acted_on INTEGER NOT NULL DEFAULT 0,
    feedback_score INTEGER CHECK (feedback_score >= 1 AND feedback_score <= 5),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS interaction_logs (
    id TEXT PRIMARY KEY,
    relationship_id TEXT NOT NULL REFERENCES relationships(id) ON DELETE CASCADE,
    timestamp TEXT NOT NULL,
    interaction_type TEXT NOT NULL
        CHECK (interaction_type IN ('GIFT_SENT', 'MESSAGE_SENT', 'DATE_PLANNED',
                                    'CONVERSATION', 'REMINDER_RECEIVED', 'OTHER')),
    description TEXT NOT NULL CHECK (length(trim(description)) > 0),
    ai_suggestion_id TEXT REFERENCES ai_suggestions(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_relationships_user_strength ON relationships(user_id, strength_score DESC);
CREATE INDEX IF NOT EXISTS idx_relationships_last_interaction ON relationships(last_interaction_date);
CREATE INDEX IF NOT EXISTS idx_interaction_logs_relationship_timestamp ON interaction_logs(relationship_id, timestamp DESC);
CREATE INDEX IF NOT EXISTS idx_ai_suggestions_user_generated ON ai_suggestions(user_id, generated_at DESC);
CREATE INDEX IF NOT EXISTS idx_ai_suggestions_acted_on ON ai_suggestions(is_acted_on);
"""

# Columns callers may change through update_relationship
UPDATABLE_FIELDS = {"display_name", "relationship_type", "important_dates", "preferences", "notes"}


def _new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be non-empty text")
    return value.strip()


def _validate_preferences(preferences: Any) -> Dict[str, str]:
    if preferences is None:
        return {}
    if not isinstance(preferences, dict):
        raise ValidationError("preferences must be an object mapping keys to text")
    return {str(k): str(v) for k, v in preferences.items()}


class EntityStore:
    """SQLite entity store with owner-scoped access."""

    def __init__(self, db_path: Optional[Path] = None, feed_cache=None):
        """
        Initialize store.

        Args:
            db_path: SQLite database file (default from config)
            feed_cache: Optional FeedCache invalidated on every write
        """
        self.db_path = Path(db_path or config.DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.feed_cache = feed_cache
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        with self._connection() as conn:
            conn.executescript(SCHEMA_SQL)
        logger.debug(f"Entity store initialized at {self.db_path}")

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Connection with row access by name and enforced foreign keys; commits on success."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _invalidate(self, owner_id: str):
        if self.feed_cache is not None:
            self.feed_cache.invalidate(owner_id)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        email: str,
        name: str,
        subscription_status: Any = SubscriptionTier.FREE,
        user_id: Optional[str] = None,
    ) -> User:
        email = _require_text(email, "email").lower()
        name = _require_text(name, "name")
        tier = parse_enum(SubscriptionTier, subscription_status)
        user_id = user_id or _new_id()
        now = _iso(datetime.now())

        try:
            with self._connection() as conn:
                conn.execute(
                    """
                    INSERT INTO users (id, email, name, subscription_status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, email, name, tier.value, now, now),
                )
        except sqlite3.IntegrityError:
            raise ValidationError(f"A user with email {email} already exists")

        logger.info(f"Created user {user_id} ({tier.value})")
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> User:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            raise RecordNotFound(f"User {user_id} not found")
        return User.from_row(row)

    def set_subscription_tier(self, user_id: str, tier: Any) -> User:
        """Record the tier reported by the billing service."""
        tier = parse_enum(SubscriptionTier, tier)
        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE users SET subscription_status = ?, updated_at = ? WHERE id = ?",
                (tier.value, _iso(datetime.now()), user_id),
            )
            if cursor.rowcount == 0:
                raise RecordNotFound(f"User {user_id} not found")
        return self.get_user(user_id)

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    def create_relationship(
        self,
        owner_id: str,
        display_name: str,
        relationship_type: Any,
        important_dates: Optional[Dict[str, Any]] = None,
        preferences: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Relationship:
        """Create a relationship with the initial strength score."""
        display_name = _require_text(display_name, "display_name")
        rel_type = parse_enum(RelationshipType, relationship_type)
        dates = validate_important_dates(important_dates or {})
        prefs = _validate_preferences(preferences)
        self.get_user(owner_id)

        relationship_id = _new_id()
        created = _iso(now or datetime.now())

        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO relationships
                    (id, user_id, display_name, relationship_type, preferences_json,
                     important_dates_json, strength_score, notes, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    relationship_id, owner_id, display_name, rel_type.value,
                    json.dumps(prefs), json.dumps(dates), INITIAL_SCORE, notes,
                    created, created,
                ),
            )

        self._invalidate(owner_id)
        logger.info(f"Created relationship {relationship_id} for user {owner_id}")
        return self.get_relationship(owner_id, relationship_id)

    def get_relationship(self, owner_id: str, relationship_id: str) -> Relationship:
        with self._connection() as conn:
            row = self._fetch_relationship_row(conn, owner_id, relationship_id)
        return Relationship.from_row(row)

    def _fetch_relationship_row(self, conn: sqlite3.Connection, owner_id: str, relationship_id: str):
        row = conn.execute(
            "SELECT * FROM relationships WHERE id = ? AND user_id = ?",
            (relationship_id, owner_id),
        ).fetchone()
        if row is None:
            raise RecordNotFound(f"Relationship {relationship_id} not found")
        return row

    def list_relationships(self, owner_id: str, order_by_strength: bool = False,
                           limit: Optional[int] = None) -> List[Relationship]:
        query = "SELECT * FROM relationships WHERE user_id = ?"
        if order_by_strength:
            query += " ORDER BY strength_score DESC, created_at ASC"
        else:
            query += " ORDER BY created_at ASC"
        params: Tuple = (owner_id,)
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Relationship.from_row(row) for row in rows]

    def update_relationship(self, owner_id: str, relationship_id: str, **fields) -> Relationship:
        """
        Update editable relationship fields.

        ``last_interaction_date`` is routed through set_last_interaction so
        the score is recomputed; ``strength_score`` cannot be set directly.
        """
        if "strength_score" in fields:
            raise ValidationError("strength_score is derived and cannot be set directly")

        has_last_interaction = "last_interaction_date" in fields
        last_interaction = fields.pop("last_interaction_date", None)

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown relationship fields: {', '.join(sorted(unknown))}")

        columns = {}
        if "display_name" in fields:
            columns["display_name"] = _require_text(fields["display_name"], "display_name")
        if "relationship_type" in fields:
            columns["relationship_type"] = parse_enum(RelationshipType, fields["relationship_type"]).value
        if "important_dates" in fields:
            columns["important_dates_json"] = json.dumps(validate_important_dates(fields["important_dates"] or {}))
        if "preferences" in fields:
            columns["preferences_json"] = json.dumps(_validate_preferences(fields["preferences"]))
        if "notes" in fields:
            columns["notes"] = fields["notes"]

        if columns:
            columns["updated_at"] = _iso(datetime.now())
            assignments = ", ".join(f"{name} = ?" for name in columns)
            with self._connection() as conn:
                self._fetch_relationship_row(conn, owner_id, relationship_id)
                conn.execute(
                    f"UPDATE relationships SET {assignments} WHERE id = ? AND user_id = ?",
                    tuple(columns.values()) + (relationship_id, owner_id),
                )
            self._invalidate(owner_id)

        if has_last_interaction:
            value = parse_timestamp(last_interaction) if last_interaction is not None else None
            self.set_last_interaction(owner_id, relationship_id, value)

        return self.get_relationship(owner_id, relationship_id)

    def delete_relationship(self, owner_id: str, relationship_id: str):
        """Delete a relationship; its logs and suggestions cascade."""
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM relationships WHERE id = ? AND user_id = ?",
                (relationship_id, owner_id),
            )
            if cursor.rowcount == 0:
                raise RecordNotFound(f"Relationship {relationship_id} not found")

        self._invalidate(owner_id)
        logger.info(f"Deleted relationship {relationship_id} for user {owner_id}")

    # ------------------------------------------------------------------
    # Scoring write path
    # ------------------------------------------------------------------

    def set_last_interaction(
        self,
        owner_id: str,
        relationship_id: str,
        value: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> StrengthUpdate:
        """
        Write ``last_interaction_date`` and rescore in one transaction.

        Fires on every write, including rewriting the same value.
        """
        with self._connection() as conn:
            update = self._write_last_interaction(conn, owner_id, relationship_id, value, now)
        self._invalidate(owner_id)
        return update

    def _write_last_interaction(
        self,
        conn: sqlite3.Connection,
        owner_id: str,
        relationship_id: str,
        value: Optional[datetime],
        now: Optional[datetime],
    ) -> StrengthUpdate:
        now = now or datetime.now()
        row = self._fetch_relationship_row(conn, owner_id, relationship_id)
        previous = int(row["strength_score"])
        new_score = compute_strength_score(previous, value, now)

        conn.execute(
            """
            UPDATE relationships
            SET last_interaction_date = ?, strength_score = ?, updated_at = ?
            WHERE id = ? AND user_id = ?
            """,
            (_iso(value), new_score, _iso(now), relationship_id, owner_id),
        )

        logger.debug(f"Relationship {relationship_id} strength {previous} -> {new_score}")
        return StrengthUpdate(relationship_id=relationship_id, previous_score=previous, new_score=new_score)

    # ------------------------------------------------------------------
    # Interaction logs
    # ------------------------------------------------------------------

    def log_interaction(
        self,
        owner_id: str,
        relationship_id: str,
        interaction_type: Any,
        description: str,
        timestamp: Optional[datetime] = None,
        ai_suggestion_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[InteractionLog, StrengthUpdate]:
        """
        Record an interaction and stamp it as the relationship's last one.

        Returns:
            (log, strength update)
        """
        kind = parse_enum(InteractionType, interaction_type)
        description = _require_text(description, "description")
        now = now or datetime.now()
        timestamp = timestamp or now
        log_id = _new_id()

        with self._connection() as conn:
            self._fetch_relationship_row(conn, owner_id, relationship_id)
            if ai_suggestion_id is not None:
                self._fetch_suggestion_row(conn, owner_id, ai_suggestion_id)

            conn.execute(
                """
                INSERT INTO interaction_logs
                    (id, relationship_id, timestamp, interaction_type, description,
                     ai_suggestion_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (log_id, relationship_id, _iso(timestamp), kind.value, description,
                 ai_suggestion_id, _iso(now)),
            )
            update = self._write_last_interaction(conn, owner_id, relationship_id, timestamp, now)
            row = conn.execute("SELECT * FROM interaction_logs WHERE id = ?", (log_id,)).fetchone()

        self._invalidate(owner_id)
        logger.info(f"Logged {kind.value} for relationship {relationship_id} (score {update.previous_score} -> {update.new_score})")
        return InteractionLog.from_row(row), update

    def list_interactions(self, owner_id: str, relationship_id: str,
                          limit: Optional[int] = None) -> List[InteractionLog]:
        query = """
            SELECT l.* FROM interaction_logs l
            JOIN relationships r ON r.id = l.relationship_id
            WHERE r.user_id = ? AND l.relationship_id = ?
            ORDER BY l.timestamp DESC
        """
        params: Tuple = (owner_id, relationship_id)
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)

        with self._connection() as conn:
            self._fetch_relationship_row(conn, owner_id, relationship_id)
            rows = conn.execute(query, params).fetchall()
        return [InteractionLog.from_row(row) for row in rows]

    def list_all_interactions(self, owner_id: str, since: Optional[datetime] = None) -> List[InteractionLog]:
        query = """
            SELECT l.* FROM interaction_logs l
            JOIN relationships r ON r.id = l.relationship_id
            WHERE r.user_id = ?
        """
        params: Tuple = (owner_id,)
        if since is not None:
            query += " AND l.timestamp >= ?"
            params += (_iso(since),)
        query += " ORDER BY l.timestamp DESC"

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [InteractionLog.from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # AI suggestions
    # ------------------------------------------------------------------

    def create_suggestion(
        self,
        owner_id: str,
        suggestion_type: Any,
        suggestion_text: str,
        relationship_id: Optional[str] = None,
        generated_at: Optional[datetime] = None,
    ) -> AISuggestion:
        kind = parse_enum(SuggestionType, suggestion_type)
        suggestion_text = _require_text(suggestion_text, "suggestion_text")
        generated_at = generated_at or datetime.now()
        suggestion_id = _new_id()

        with self._connection() as conn:
            if relationship_id is not None:
                self._fetch_relationship_row(conn, owner_id, relationship_id)
            conn.execute(
                """
                INSERT INTO ai_suggestions
                    (id, user_id, relationship_id, suggestion_type, suggestion_text,
                     generated_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (suggestion_id, owner_id, relationship_id, kind.value, suggestion_text,
                 _iso(generated_at), _iso(datetime.now())),
            )

        self._invalidate(owner_id)
        return self.get_suggestion(owner_id, suggestion_id)

    def _fetch_suggestion_row(self, conn: sqlite3.Connection, owner_id: str, suggestion_id: str):
        row = conn.execute(
            "SELECT * FROM ai_suggestions WHERE id = ? AND user_id = ?",
            (suggestion_id, owner_id),
        ).fetchone()
        if row is None:
            raise RecordNotFound(f"Suggestion {suggestion_id} not found")
        return row

    def get_suggestion(self, owner_id: str, suggestion_id: str) -> AISuggestion:
        with self._connection() as conn:
            row = self._fetch_suggestion_row(conn, owner_id, suggestion_id)
        return AISuggestion.from_row(row)

    def list_suggestions(self, owner_id: str, relationship_id: Optional[str] = None,
                         limit: Optional[int] = None) -> List[AISuggestion]:
        query = "SELECT * FROM ai_suggestions WHERE user_id = ?"
        params: Tuple = (owner_id,)
        if relationship_id is not None:
            query += " AND relationship_id = ?"
            params += (relationship_id,)
        query += " ORDER BY generated_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [AISuggestion.from_row(row) for row in rows]

    def list_recent_suggestions(
        self,
        owner_id: str,
        since: datetime,
        limit: Optional[int] = None,
        unacted_only: bool = True,
    ) -> List[AISuggestion]:
        """Suggestions generated at or after ``since``, newest first."""
        query = "SELECT * FROM ai_suggestions WHERE user_id = ? AND generated_at >= ?"
        params: Tuple = (owner_id, _iso(since))
        if unacted_only:
            query += " AND is_acted_on = 0"
        query += " ORDER BY generated_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [AISuggestion.from_row(row) for row in rows]

    def set_suggestion_feedback(self, owner_id: str, suggestion_id: str, score: int) -> AISuggestion:
        if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
            raise ValidationError("feedback_score must be an integer between 1 and 5")

        with self._connection() as conn:
            self._fetch_suggestion_row(conn, owner_id, suggestion_id)
            conn.execute(
                "UPDATE ai_suggestions SET feedback_score = ? WHERE id = ? AND user_id = ?",
                (score, suggestion_id, owner_id),
            )
        return self.get_suggestion(owner_id, suggestion_id)

    def mark_suggestion_acted_on(self, owner_id: str, suggestion_id: str, acted_on: bool = True) -> AISuggestion:
        with self._connection() as conn:
            self._fetch_suggestion_row(conn, owner_id, suggestion_id)
            conn.execute(
                "UPDATE ai_suggestions SET is_acted_on = ? WHERE id = ? AND user_id = ?",
                (1 if acted_on else 0, suggestion_id, owner_id),
            )
        self._invalidate(owner_id)
        return self.get_suggestion(owner_id, suggestion_id)

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def get_usage(self, owner_id: str, now: Optional[datetime] = None) -> Dict[str, int]:
        """Counts the entitlement caps are checked against."""
        now = now or datetime.now()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        month_start = day_start.replace(day=1)

        with self._connection() as conn:
            relationship_count = conn.execute(
                "SELECT COUNT(*) FROM relationships WHERE user_id = ?", (owner_id,)
            ).fetchone()[0]
            ai_today = conn.execute(
                "SELECT COUNT(*) FROM ai_suggestions WHERE user_id = ? AND generated_at >= ?",
                (owner_id, _iso(day_start)),
            ).fetchone()[0]
            interactions_month = conn.execute(
                """
                SELECT COUNT(*) FROM interaction_logs l
                JOIN relationships r ON r.id = l.relationship_id
                WHERE r.user_id = ? AND l.created_at >= ?
                """,
                (owner_id, _iso(month_start)),
            ).fetchone()[0]

        return {
            "relationship_count": relationship_count,
            "ai_generations_today": ai_today,
            "interactions_this_month": interactions_month,
        }
