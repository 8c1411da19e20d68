"""
Background suggestion generation for EverBloom
"""

import logging
import sqlite3
from typing import Any, Dict, Optional

from .celery_app import celery
from ..ai_client import AIClient
from ..errors import EverBloomError
from ..feed_cache import FeedCache
from ..store import EntityStore
from ..suggestions import generate_suggestion

logger = logging.getLogger(__name__)


@celery.task(bind=True, name='everbloom.tasks.suggestions.generate_suggestion_async')
def generate_suggestion_async(
    self,
    owner_id: str,
    tool: str,
    relationship_id: Optional[str] = None,
    params: Optional[Dict[str, Any]] = None,
):
    """
    Generate and store a suggestion in a worker.

    Args:
        owner_id: Requesting user
        tool: nudge, gift, activity, message or analysis
        relationship_id: Optional relationship providing context
        params: Tool-specific inputs

    Returns:
        Result dict from generate_suggestion, or {"status": "error", ...}
        when the request itself is invalid
    """
    try:
        result = generate_suggestion(
            EntityStore(feed_cache=FeedCache.from_config()),
            AIClient(),
            owner_id,
            tool,
            relationship_id=relationship_id,
            params=params,
        )
        result['status'] = 'success'
        return result

    except EverBloomError as e:
        # Bad input or missing record; retrying will not help
        logger.warning(f"Suggestion task rejected for user {owner_id}: {e}")
        return {'status': 'error', 'error': str(e), 'tool': tool}

    except sqlite3.OperationalError as e:
        logger.warning(f"Database busy in suggestion task: {e} - retrying")
        raise self.retry(exc=e, countdown=10, max_retries=3)
