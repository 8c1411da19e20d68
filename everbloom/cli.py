"""
CLI interface for EverBloom
"""

import sys
import json
import logging
import argparse
from datetime import date, datetime, timedelta

from . import config
from .aggregator import Aggregator
from .entitlements import require_action
from .errors import EverBloomError
from .models import InteractionType
from .notifications import build_notification_feed, start_of_day
from .store import EntityStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def show_notifications(store: EntityStore, user_id: str, today: str = None, output_file: str = None) -> dict:
    """
    Derive a user's notification feed.

    Args:
        store: Entity store
        user_id: Owner of the feed
        today: Optional YYYY-MM-DD evaluation date
        output_file: Optional output JSON file

    Returns:
        Feed dict
    """
    day = date.fromisoformat(today) if today else None
    feed = build_notification_feed(store, user_id, today=day).to_dict()

    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump(feed, f, indent=2)
        logger.info(f"Feed saved to {output_file}")
    else:
        print(json.dumps(feed, indent=2))

    return feed


def show_dashboard(store: EntityStore, user_id: str) -> dict:
    now = datetime.now()
    agg = Aggregator()
    relationships = store.list_relationships(user_id, order_by_strength=True)
    logs = store.list_all_interactions(user_id, since=start_of_day(now) - timedelta(days=30))

    report = {
        "stats": agg.compute_dashboard_stats(relationships, now),
        "top_relationships": [
            {"name": r.display_name, "strength_score": r.strength_score}
            for r in relationships[:6]
        ],
        "interactions": agg.interaction_breakdown(logs, now),
    }
    print(json.dumps(report, indent=2))
    return report


def log_interaction(store: EntityStore, user_id: str, relationship_id: str,
                    interaction_type: str, description: str) -> dict:
    user = store.get_user(user_id)
    require_action(user.subscription_status, "interaction", store.get_usage(user_id))

    log, update = store.log_interaction(user_id, relationship_id, interaction_type, description)
    result = {
        "interaction": log.to_dict(),
        "previous_score": update.previous_score,
        "new_score": update.new_score,
    }
    print(json.dumps(result, indent=2))
    return result


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="EverBloom - relationship reminders and strength tracking"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging"
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        help=f"SQLite database path (default: {config.DB_PATH})"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database schema")

    notifications = commands.add_parser("notifications", help="Print a user's notification feed")
    notifications.add_argument("user_id")
    notifications.add_argument("--today", help="Evaluation date (YYYY-MM-DD)")
    notifications.add_argument("-o", "--output", dest="output_file", help="Output JSON file path")

    dashboard = commands.add_parser("dashboard", help="Print dashboard statistics")
    dashboard.add_argument("user_id")

    log = commands.add_parser("log", help="Log an interaction and rescore the relationship")
    log.add_argument("user_id")
    log.add_argument("relationship_id")
    log.add_argument("interaction_type", help=", ".join(t.value for t in InteractionType))
    log.add_argument("description")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    store = EntityStore(db_path=args.db_path)

    try:
        if args.command == "init-db":
            logger.info(f"Database ready at {store.db_path}")
        elif args.command == "notifications":
            show_notifications(store, args.user_id, args.today, args.output_file)
        elif args.command == "dashboard":
            show_dashboard(store, args.user_id)
        elif args.command == "log":
            log_interaction(store, args.user_id, args.relationship_id, args.interaction_type, args.description)
    except (EverBloomError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
