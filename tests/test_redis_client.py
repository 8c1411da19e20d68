"""
Tests for the shared Redis connection
"""

import pytest
from unittest.mock import MagicMock, patch
from redis.exceptions import ConnectionError as RedisConnectionError
from everbloom.utils import redis_client
from everbloom.utils.redis_client import get_redis_client, reset_redis_client


@pytest.fixture(autouse=True)
def fresh_client():
    reset_redis_client()
    yield
    reset_redis_client()


def test_connects_once_and_reuses():
    """Test that the client is created on first use and shared afterwards."""
    client = MagicMock()
    with patch.object(redis_client.redis.Redis, "from_url", return_value=client) as from_url:
        assert get_redis_client() is client
        assert get_redis_client() is client

    from_url.assert_called_once()
    client.ping.assert_called_once()


def test_unreachable_returns_none_after_retries():
    client = MagicMock()
    client.ping.side_effect = RedisConnectionError("refused")
    with patch.object(redis_client.redis.Redis, "from_url", return_value=client) as from_url, \
         patch.object(redis_client.time, "sleep") as sleep:
        assert get_redis_client(max_retries=2) is None

    assert from_url.call_count == 3
    assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]


def test_no_retries_means_single_attempt():
    client = MagicMock()
    client.ping.side_effect = RedisConnectionError("refused")
    with patch.object(redis_client.redis.Redis, "from_url", return_value=client) as from_url, \
         patch.object(redis_client.time, "sleep") as sleep:
        assert get_redis_client(max_retries=0) is None

    from_url.assert_called_once()
    sleep.assert_not_called()


def test_recovers_on_later_attempt():
    down, up = MagicMock(), MagicMock()
    down.ping.side_effect = RedisConnectionError("refused")
    with patch.object(redis_client.redis.Redis, "from_url", side_effect=[down, up]), \
         patch.object(redis_client.time, "sleep"):
        assert get_redis_client(max_retries=1) is up


def test_reset_forces_reconnect():
    first, second = MagicMock(), MagicMock()
    with patch.object(redis_client.redis.Redis, "from_url", side_effect=[first, second]):
        assert get_redis_client() is first
        reset_redis_client()
        assert get_redis_client() is second
