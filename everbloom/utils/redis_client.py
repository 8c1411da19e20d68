"""
Shared Redis connection for the feed cache, health check and worker startup
"""

import time
import logging
import threading
from typing import Optional
import redis
from redis.exceptions import RedisError

from everbloom import config

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None
_lock = threading.Lock()


def _connect(url: str) -> Optional[redis.Redis]:
    try:
        client = redis.Redis.from_url(
            url,
            socket_connect_timeout=5,
            socket_timeout=5,
            decode_responses=True
        )
        client.ping()
    except RedisError as e:
        logger.warning(f"Redis not reachable at {url}: {e}")
        return None
    logger.info(f"Connected to Redis at {url}")
    return client


def get_redis_client(max_retries: int = 3) -> Optional[redis.Redis]:
    """
    Return the shared client, connecting on first use.

    Failed connects are retried with exponential backoff (0.5s, 1s, 2s...).
    Returns None when Redis stays unreachable; callers treat that as
    "no cache".
    """
    global _client
    with _lock:
        if _client is not None:
            return _client

        for attempt in range(max_retries + 1):
            if attempt:
                time.sleep(0.5 * (2 ** (attempt - 1)))
            _client = _connect(config.REDIS_URL)
            if _client is not None:
                return _client

    logger.warning("Redis unavailable after retries. Feed cache disabled.")
    return None


def reset_redis_client():
    """Forget the shared client so the next call reconnects."""
    global _client
    with _lock:
        _client = None
