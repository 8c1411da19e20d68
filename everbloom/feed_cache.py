"""
Notification feed cache for EverBloom

Caches derived feeds in Redis keyed by owner and day. Entries are dropped
whenever the store writes anything the feed is derived from; the TTL only
bounds memory. With Redis unreachable every call is a miss.
"""

import json
import logging
from datetime import date
from typing import List, Optional

import redis
from redis.exceptions import RedisError

from . import config
from .models import Notification
from .utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)

KEY_PREFIX = "everbloom:feed"


def escape_glob(value: str) -> str:
    """Escape Redis MATCH wildcards so ``value`` matches only itself."""
    return "".join("\\" + ch if ch in "*?[]\\" else ch for ch in value)


class FeedCache:
    """Redis-backed cache of ranked notification lists."""

    def __init__(self, client: Optional[redis.Redis] = None, ttl_hours: Optional[int] = None):
        self.client = client
        self.ttl_seconds = int((ttl_hours or config.FEED_CACHE_TTL_HOURS) * 3600)
        self.hits = 0
        self.misses = 0

    @classmethod
    def from_config(cls) -> Optional["FeedCache"]:
        """Build a cache when FEED_CACHE_ENABLED and Redis answers; None otherwise."""
        if not config.FEED_CACHE_ENABLED:
            return None
        client = get_redis_client(max_retries=1)
        if client is None:
            return None
        return cls(client=client)

    def _key(self, owner_id: str, day: date) -> str:
        return f"{KEY_PREFIX}:{owner_id}:{day.isoformat()}"

    def get(self, owner_id: str, day: date) -> Optional[List[Notification]]:
        if self.client is None:
            return None
        try:
            raw = self.client.get(self._key(owner_id, day))
        except RedisError as e:
            logger.warning(f"Feed cache read failed: {e}")
            return None

        if raw is None:
            self.misses += 1
            return None

        self.hits += 1
        logger.debug(f"Feed cache hit for user {owner_id} on {day}")
        # read state is session-local, never carried over
        return [Notification.from_dict({**item, "is_read": False}) for item in json.loads(raw)]

    def set(self, owner_id: str, day: date, notifications: List[Notification]):
        if self.client is None:
            return
        payload = json.dumps([n.to_dict() for n in notifications])
        try:
            self.client.set(self._key(owner_id, day), payload, ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning(f"Feed cache write failed: {e}")

    def invalidate(self, owner_id: str):
        """Drop every cached day for ``owner_id``."""
        if self.client is None:
            return
        try:
            keys = list(self.client.scan_iter(match=f"{KEY_PREFIX}:{escape_glob(owner_id)}:*"))
            if keys:
                self.client.delete(*keys)
                logger.debug(f"Invalidated {len(keys)} cached feed(s) for user {owner_id}")
        except RedisError as e:
            logger.warning(f"Feed cache invalidation failed: {e}")

    def stats(self):
        return {"hits": self.hits, "misses": self.misses}
