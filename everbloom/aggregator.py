"""
Aggregator for EverBloom
Dashboard statistics over relationships and interaction history
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
import pandas as pd

from . import config
from .dates import upcoming_dates
from .errors import ValidationError
from .models import InteractionLog, InteractionType, Relationship

logger = logging.getLogger(__name__)


class Aggregator:
    """Aggregate relationship and interaction records into dashboard metrics."""

    def relationships_frame(self, relationships: Sequence[Relationship]) -> pd.DataFrame:
        df = pd.DataFrame(
            [
                {
                    "id": r.id,
                    "display_name": r.display_name,
                    "relationship_type": r.relationship_type.value,
                    "strength_score": r.strength_score,
                    "last_interaction_date": r.last_interaction_date,
                }
                for r in relationships
            ],
            columns=["id", "display_name", "relationship_type", "strength_score", "last_interaction_date"],
        )
        df["last_interaction_date"] = pd.to_datetime(df["last_interaction_date"])
        return df

    def interactions_frame(self, logs: Sequence[InteractionLog]) -> pd.DataFrame:
        df = pd.DataFrame(
            [
                {
                    "id": log.id,
                    "relationship_id": log.relationship_id,
                    "timestamp": log.timestamp,
                    "interaction_type": log.interaction_type.value,
                }
                for log in logs
            ],
            columns=["id", "relationship_id", "timestamp", "interaction_type"],
        )
        df["timestamp"] = pd.to_datetime(df["timestamp"])
        return df

    def count_upcoming_dates(self, relationships: Sequence[Relationship], today: datetime,
                             window_days: Optional[int] = None) -> int:
        """Important dates falling within the window, over all relationships."""
        window = config.UPCOMING_WINDOW_DAYS if window_days is None else window_days
        count = 0
        for relationship in relationships:
            try:
                count += len(upcoming_dates(relationship.important_dates, today.date(), window))
            except ValidationError as e:
                logger.warning(f"Skipping dates for relationship {relationship.id}: {e}")
        return count

    def compute_dashboard_stats(
        self,
        relationships: Sequence[Relationship],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Headline numbers for the dashboard.

        Returns dict with:
            - total_relationships
            - strong_connections (score >= STRONG_CONNECTION_THRESHOLD)
            - interactions_this_week (last interaction within 7 days)
            - upcoming_dates (within UPCOMING_WINDOW_DAYS)
            - average_strength
            - by_type
        """
        now = now or datetime.now()
        if len(relationships) == 0:
            return self._empty_stats()

        df = self.relationships_frame(relationships)
        week_ago = now - timedelta(days=7)

        return {
            "total_relationships": int(len(df)),
            "strong_connections": int((df["strength_score"] >= config.STRONG_CONNECTION_THRESHOLD).sum()),
            "interactions_this_week": int((df["last_interaction_date"] > week_ago).sum()),
            "upcoming_dates": self.count_upcoming_dates(relationships, now),
            "average_strength": round(float(df["strength_score"].mean()), 1),
            "by_type": {k: int(v) for k, v in df.groupby("relationship_type").size().items()},
        }

    def interaction_breakdown(
        self,
        logs: Sequence[InteractionLog],
        now: Optional[datetime] = None,
        days: int = 30,
    ) -> Dict[str, Any]:
        """Counts per interaction type plus recency for a set of logs."""
        now = now or datetime.now()
        if len(logs) == 0:
            return {
                "total": 0,
                "by_type": {t.value: 0 for t in InteractionType},
                "most_recent": None,
                f"last_{days}_days": 0,
            }

        df = self.interactions_frame(logs)
        counts = df["interaction_type"].value_counts()
        cutoff = now - timedelta(days=days)

        return {
            "total": int(len(df)),
            "by_type": {t.value: int(counts.get(t.value, 0)) for t in InteractionType},
            "most_recent": df["timestamp"].max().to_pydatetime().isoformat(),
            f"last_{days}_days": int((df["timestamp"] >= cutoff).sum()),
        }

    def top_relationships(self, relationships: Sequence[Relationship], n: int = 6) -> List[Dict[str, Any]]:
        """Strongest relationships first, as shown on the dashboard."""
        ranked = sorted(relationships, key=lambda r: r.strength_score, reverse=True)
        return [r.to_dict() for r in ranked[:n]]

    def _empty_stats(self) -> Dict[str, Any]:
        return {
            "total_relationships": 0,
            "strong_connections": 0,
            "interactions_this_week": 0,
            "upcoming_dates": 0,
            "average_strength": 0.0,
            "by_type": {},
        }
