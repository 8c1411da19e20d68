"""
Tests for the suggestion service
"""

import pytest
from unittest.mock import MagicMock
from everbloom.ai_client import FALLBACK_GIFT, AIClient
from everbloom.errors import RecordNotFound, ValidationError
from everbloom.models import SuggestionType
from everbloom.store import EntityStore
from everbloom.suggestions import (
    build_analysis_prompt,
    build_gift_prompt,
    generate_suggestion,
    mark_acted_on,
    record_feedback,
)


@pytest.fixture
def store(tmp_path):
    return EntityStore(db_path=tmp_path / "everbloom.db")


@pytest.fixture
def user(store):
    return store.create_user("sam@example.com", "Sam")


@pytest.fixture
def relationship(store, user):
    return store.create_relationship(user.id, "Alex", "ROMANTIC", preferences={"likes": "jazz"})


def test_gift_suggestion_persisted(store, user, relationship):
    """Test that generated gift ideas are stored as GIFT suggestions."""
    result = generate_suggestion(
        store, AIClient(mock_mode=True), user.id, "gift",
        relationship_id=relationship.id, params={"budget": "under $50"},
    )

    assert result["tool"] == "gift"
    assert result["text"] == FALLBACK_GIFT
    assert result["suggestion"]["suggestion_type"] == "GIFT"
    assert result["suggestion"]["relationship_id"] == relationship.id

    stored = store.list_suggestions(user.id)
    assert len(stored) == 1
    assert stored[0].suggestion_type is SuggestionType.GIFT


@pytest.mark.parametrize("tool,suggestion_type", [
    ("message", "MESSAGE_PROMPT"),
    ("activity", "ACTIVITY"),
    ("nudge", "CONVERSATION_STARTER"),
])
def test_tool_types(store, user, relationship, tool, suggestion_type):
    result = generate_suggestion(store, AIClient(mock_mode=True), user.id, tool, relationship_id=relationship.id)
    assert result["suggestion"]["suggestion_type"] == suggestion_type


def test_analysis_not_persisted(store, user, relationship):
    result = generate_suggestion(
        store, AIClient(mock_mode=True), user.id, "analysis",
        relationship_id=relationship.id, params={"message": "Miss you!"},
    )
    assert result["suggestion"] is None
    assert result["text"]
    assert store.list_suggestions(user.id) == []


def test_analysis_requires_message(store, user):
    with pytest.raises(ValidationError):
        generate_suggestion(store, AIClient(mock_mode=True), user.id, "analysis", params={"message": "  "})


def test_unknown_tool(store, user):
    with pytest.raises(ValidationError):
        generate_suggestion(store, AIClient(mock_mode=True), user.id, "poem")


@pytest.mark.parametrize("tool,params", [
    ("gift", {"relationship_id": "x"}),
    ("gift", {"message": "hi"}),
    ("analysis", {"message": 42}),
    ("message", {"keywords": ["jazz", "coffee"]}),
])
def test_rejects_bad_params(store, user, tool, params):
    """Test that params a tool does not take, or non-string values, are rejected."""
    with pytest.raises(ValidationError):
        generate_suggestion(store, AIClient(mock_mode=True), user.id, tool, params=params)
    assert store.list_suggestions(user.id) == []


def test_null_params_use_defaults(store, user):
    client = MagicMock()
    client.complete.return_value = "Go hiking."
    generate_suggestion(store, client, user.id, "activity", params={"mood": None})
    prompt = client.complete.call_args[0][0]
    assert "Desired mood: relaxed" in prompt


def test_unknown_relationship(store, user):
    with pytest.raises(RecordNotFound):
        generate_suggestion(store, AIClient(mock_mode=True), user.id, "gift", relationship_id="missing")


def test_prompt_uses_relationship_context(store, user, relationship):
    client = MagicMock()
    client.complete.return_value = "Take Alex to a jazz club."

    generate_suggestion(store, client, user.id, "nudge", relationship_id=relationship.id)

    prompt, system_prompt = client.complete.call_args[0]
    assert "Sam" in prompt
    assert "Alex (ROMANTIC)" in prompt
    assert "jazz" in prompt
    assert "relationship nurturer" in system_prompt


def test_prompt_builders_without_relationship():
    assert "your loved one" in build_gift_prompt(None, budget="small")
    assert "small" in build_gift_prompt(None, budget="small")
    assert "\"hey\"" in build_analysis_prompt(None, message=" hey ")


def test_record_feedback(store, user):
    suggestion = store.create_suggestion(user.id, "GIFT", "Flowers")
    assert record_feedback(store, user.id, suggestion.id, "4").feedback_score == 4
    with pytest.raises(ValidationError):
        record_feedback(store, user.id, suggestion.id, "great")
    with pytest.raises(ValidationError):
        record_feedback(store, user.id, suggestion.id, 7)


def test_mark_acted_on(store, user):
    suggestion = store.create_suggestion(user.id, "GIFT", "Flowers")
    assert mark_acted_on(store, user.id, suggestion.id).is_acted_on is True
    assert mark_acted_on(store, user.id, suggestion.id, acted_on=False).is_acted_on is False
