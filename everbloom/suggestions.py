"""
AI suggestion service for EverBloom

Builds prompts from a relationship's context, asks the AI client for text
and stores the result as an AISuggestion. Communication analysis is
returned to the caller but not stored.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

from .ai_client import AIClient
from .errors import ValidationError
from .models import AISuggestion, Relationship, SuggestionType

logger = logging.getLogger(__name__)

SYSTEM_PROMPTS = {
    "nudge": (
        "You are an empathetic relationship nurturer AI for EverBloom. Generate warm, actionable, "
        "and personalized relationship suggestions that help people connect meaningfully with their "
        "loved ones. Keep suggestions simple, genuine, and culturally appropriate."
    ),
    "gift": (
        "You are a creative relationship strategist AI. Generate specific, thoughtful gift ideas that "
        "show genuine care and consideration for the person's interests and the relationship dynamic."
    ),
    "activity": (
        "You are an activity planning expert AI. Suggest engaging, meaningful activities that "
        "strengthen relationships and create positive shared experiences."
    ),
    "message": (
        "You are an expert communication coach specializing in authentic, heartfelt expression. Help "
        "craft messages that genuinely convey emotions and strengthen relationships through "
        "thoughtful, personal communication."
    ),
    "analysis": (
        "You are a neutral communication analyst. Provide constructive, actionable feedback to improve "
        "message clarity, warmth, and emotional impact without being judgmental."
    ),
}

# tool -> stored suggestion type (None = not persisted)
TOOL_TYPES: Dict[str, Optional[SuggestionType]] = {
    "nudge": SuggestionType.CONVERSATION_STARTER,
    "gift": SuggestionType.GIFT,
    "activity": SuggestionType.ACTIVITY,
    "message": SuggestionType.MESSAGE_PROMPT,
    "analysis": None,
}


def _context(relationship: Optional[Relationship]) -> Tuple[str, str, str]:
    if relationship is None:
        return "your loved one", "FRIEND", "{}"
    return (
        relationship.display_name,
        relationship.relationship_type.value,
        json.dumps(relationship.preferences),
    )


def build_nudge_prompt(relationship: Optional[Relationship], user_name: str = "you") -> str:
    name, rel_type, prefs = _context(relationship)
    last = relationship.last_interaction_date.isoformat() if relationship and relationship.last_interaction_date else None
    dates = json.dumps(relationship.important_dates if relationship else {})
    return (
        f"Generate a concise, actionable, and personalized suggestion for {user_name} to connect "
        f"with {name} ({rel_type}).\n\n"
        f"Context:\n"
        f"- Preferences: {prefs}\n"
        f"- Last interaction: {last or 'No recent interactions'}\n"
        f"- Important dates: {dates}\n\n"
        "Provide a warm, specific suggestion that takes into account their relationship type and "
        "preferences. Keep it under 150 words and make it actionable."
    )


def build_gift_prompt(relationship: Optional[Relationship], mood: str = "thoughtful",
                      budget: str = "moderate") -> str:
    name, rel_type, prefs = _context(relationship)
    return (
        f"Generate 3 diverse, specific, and actionable gift ideas for {name} ({rel_type}).\n\n"
        f"Context:\n"
        f"- Preferences: {prefs}\n"
        f"- Desired mood: {mood}\n"
        f"- Budget range: {budget}\n\n"
        "Provide creative, thoughtful gifts that are:\n"
        "1. Thoughtful and personal\n"
        "2. Suitable for the relationship type\n"
        "3. Within the specified budget range\n\n"
        "Format as a numbered list with brief explanations."
    )


def build_activity_prompt(relationship: Optional[Relationship], mood: str = "relaxed") -> str:
    name, rel_type, prefs = _context(relationship)
    return (
        f"Generate 3 diverse activity ideas for spending quality time with {name} ({rel_type}).\n\n"
        f"Context:\n"
        f"- Preferences: {prefs}\n"
        f"- Desired mood: {mood}\n\n"
        "Suggest activities that are:\n"
        "1. Engaging and meaningful for both people\n"
        "2. Appropriate for the relationship type\n"
        "3. Match the desired mood\n\n"
        "Include both indoor and outdoor options. Format as a numbered list."
    )


def build_message_prompt(relationship: Optional[Relationship], goal: str = "check in",
                         length: str = "short", keywords: Optional[str] = None) -> str:
    name, rel_type, prefs = _context(relationship)
    return (
        f"Draft a {length} message for {name} ({rel_type}) with the goal: \"{goal}\".\n\n"
        f"Context:\n"
        f"- Preferences: {prefs}\n"
        f"- Keywords to include: {keywords or 'None specified'}\n\n"
        "Create a message that is:\n"
        "1. Authentic and heartfelt\n"
        "2. Appropriate for the relationship type\n"
        "3. Incorporates their preferences naturally\n"
        "4. Achieves the communication goal\n"
        "5. Feels personal and meaningful\n\n"
        "After the message, provide brief feedback on how to make it even more impactful."
    )


def build_analysis_prompt(relationship: Optional[Relationship], message: str = "") -> str:
    if not message or not message.strip():
        raise ValidationError("analysis requires a non-empty 'message'")
    _, rel_type, prefs = _context(relationship)
    return (
        f"Analyze this message for a {rel_type} relationship:\n\n"
        f"\"{message.strip()}\"\n\n"
        f"Context about recipient:\n"
        f"- Preferences: {prefs}\n\n"
        "Provide:\n"
        "1. Sentiment analysis (positive/neutral/negative)\n"
        "2. Potential emotional impact\n"
        "3. Areas for improvement\n"
        "4. Specific suggestions to enhance warmth and connection\n\n"
        "Be encouraging and constructive in your feedback."
    )


PROMPT_BUILDERS = {
    "nudge": build_nudge_prompt,
    "gift": build_gift_prompt,
    "activity": build_activity_prompt,
    "message": build_message_prompt,
    "analysis": build_analysis_prompt,
}

# tool -> inputs its prompt builder accepts
TOOL_PARAMS = {
    "nudge": ("user_name",),
    "gift": ("mood", "budget"),
    "activity": ("mood",),
    "message": ("goal", "length", "keywords"),
    "analysis": ("message",),
}


def check_request(tool: Optional[str], params: Optional[Dict[str, Any]] = None) -> Tuple[str, Dict[str, Any]]:
    """
    Normalize and validate a suggestion request.

    Returns:
        (tool, params) with null params dropped

    Raises:
        ValidationError: unknown tool, unsupported param or non-string value
    """
    tool = tool.lower() if isinstance(tool, str) else ""
    if tool not in PROMPT_BUILDERS:
        raise ValidationError(f"Unknown suggestion tool '{tool}' (expected one of: {', '.join(PROMPT_BUILDERS)})")

    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ValidationError("'params' must be an object")

    allowed = TOOL_PARAMS[tool]
    unknown = sorted(set(params) - set(allowed))
    if unknown:
        raise ValidationError(
            f"Unsupported params for {tool}: {', '.join(unknown)} "
            f"(accepted: {', '.join(allowed)})"
        )

    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"'{key}' must be a string")
        cleaned[key] = value
    return tool, cleaned


def generate_suggestion(
    store,
    client: AIClient,
    owner_id: str,
    tool: str,
    relationship_id: Optional[str] = None,
    params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Generate AI text for ``tool`` and persist it (except analysis).

    Args:
        store: EntityStore
        client: AIClient (falls back locally on failure)
        owner_id: Requesting user
        tool: One of nudge, gift, activity, message, analysis
        relationship_id: Optional relationship providing context
        params: Tool-specific inputs, see TOOL_PARAMS

    Returns:
        {"tool", "text", "suggestion"} where suggestion is None for analysis
    """
    tool, params = check_request(tool, params)

    relationship = store.get_relationship(owner_id, relationship_id) if relationship_id else None
    if tool == "nudge" and "user_name" not in params:
        params["user_name"] = store.get_user(owner_id).name

    prompt = PROMPT_BUILDERS[tool](relationship, **params)
    text = client.complete(prompt, SYSTEM_PROMPTS[tool])

    suggestion: Optional[AISuggestion] = None
    suggestion_type = TOOL_TYPES[tool]
    if suggestion_type is not None:
        suggestion = store.create_suggestion(
            owner_id,
            suggestion_type,
            text,
            relationship_id=relationship_id,
        )
        logger.info(f"Stored {suggestion_type.value} suggestion {suggestion.id} for user {owner_id}")

    return {
        "tool": tool,
        "text": text,
        "suggestion": suggestion.to_dict() if suggestion else None,
    }


def record_feedback(store, owner_id: str, suggestion_id: str, score: Any) -> AISuggestion:
    """Store a 1-5 rating for a suggestion."""
    try:
        score = int(score)
    except (TypeError, ValueError):
        raise ValidationError("feedback_score must be an integer between 1 and 5")
    return store.set_suggestion_feedback(owner_id, suggestion_id, score)


def mark_acted_on(store, owner_id: str, suggestion_id: str, acted_on: bool = True) -> AISuggestion:
    return store.mark_suggestion_acted_on(owner_id, suggestion_id, acted_on)
