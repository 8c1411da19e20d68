"""
Tests for background suggestion tasks (run in-process, no broker)
"""

import pytest
from unittest.mock import MagicMock, patch
from everbloom.ai_client import AIClient
from everbloom.store import EntityStore
from everbloom.tasks.suggestions import generate_suggestion_async


@pytest.fixture
def store(tmp_path):
    return EntityStore(db_path=tmp_path / "tasks.db")


def test_task_name():
    assert generate_suggestion_async.name == "everbloom.tasks.suggestions.generate_suggestion_async"


def test_task_generates_and_stores(store):
    user = store.create_user("sam@example.com", "Sam")
    with patch("everbloom.tasks.suggestions.EntityStore", return_value=store), \
         patch("everbloom.tasks.suggestions.AIClient", return_value=AIClient(mock_mode=True)):
        result = generate_suggestion_async(user.id, "activity", None, {"mood": "adventurous"})

    assert result["status"] == "success"
    assert result["suggestion"]["suggestion_type"] == "ACTIVITY"
    assert len(store.list_suggestions(user.id)) == 1


def test_task_rejects_bad_request(store):
    user = store.create_user("sam@example.com", "Sam")
    with patch("everbloom.tasks.suggestions.EntityStore", return_value=store), \
         patch("everbloom.tasks.suggestions.AIClient", return_value=AIClient(mock_mode=True)):
        result = generate_suggestion_async(user.id, "poem")

    assert result["status"] == "error"
    assert store.list_suggestions(user.id) == []


def test_task_invalidates_cached_feed(tmp_path):
    """Test that a suggestion stored by the worker drops the owner's cached feed."""
    seed = EntityStore(db_path=tmp_path / "tasks.db")
    user = seed.create_user("sam@example.com", "Sam")
    cache = MagicMock()

    def worker_store(feed_cache=None):
        return EntityStore(db_path=tmp_path / "tasks.db", feed_cache=feed_cache)

    with patch("everbloom.tasks.suggestions.FeedCache") as feed_cache_cls, \
         patch("everbloom.tasks.suggestions.EntityStore", side_effect=worker_store), \
         patch("everbloom.tasks.suggestions.AIClient", return_value=AIClient(mock_mode=True)):
        feed_cache_cls.from_config.return_value = cache
        result = generate_suggestion_async(user.id, "gift", None, {})

    assert result["status"] == "success"
    cache.invalidate.assert_called_with(user.id)


def test_task_rejects_unsupported_params(store):
    user = store.create_user("sam@example.com", "Sam")
    with patch("everbloom.tasks.suggestions.EntityStore", return_value=store), \
         patch("everbloom.tasks.suggestions.AIClient", return_value=AIClient(mock_mode=True)):
        result = generate_suggestion_async(user.id, "gift", None, {"relationship_id": "x"})

    assert result["status"] == "error"
    assert "relationship_id" in result["error"]
    assert store.list_suggestions(user.id) == []
