"""
Configuration module for EverBloom
Loads environment variables and provides default settings
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Database
DB_PATH = os.getenv("EVERBLOOM_DB_PATH", str(PROJECT_ROOT / "everbloom.db"))

# AI collaborator (OpenRouter chat completions)
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_API_URL = os.getenv("OPENROUTER_API_URL", "https://openrouter.ai/api/v1/chat/completions")
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "qwen/qwen-2.5-72b-instruct")
AI_APP_TITLE = os.getenv("AI_APP_TITLE", "EverBloom - AI Relationship Nurturer")
AI_TEMPERATURE = float(os.getenv("AI_TEMPERATURE", "0.7"))
AI_MAX_TOKENS = int(os.getenv("AI_MAX_TOKENS", "1000"))
API_TIMEOUT = int(os.getenv("API_TIMEOUT", "30"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))

# Redis / feed cache
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
FEED_CACHE_ENABLED = os.getenv("FEED_CACHE_ENABLED", "False").lower() == "true"
FEED_CACHE_TTL_HOURS = int(os.getenv("FEED_CACHE_TTL_HOURS", "24"))

# Celery Configuration
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", REDIS_URL)
BROKER_POOL_LIMIT = int(os.getenv("BROKER_POOL_LIMIT", "3"))
BROKER_CONNECTION_RETRY = os.getenv("BROKER_CONNECTION_RETRY", "True").lower() == "true"

# Dev Server Settings
DEV_USE_RELOADER = os.getenv("EVERBLOOM_DEV_RELOAD", "True").lower() == "true"

# ============================================================================
# Notification derivation
# ============================================================================

UPCOMING_WINDOW_DAYS = int(os.getenv("UPCOMING_WINDOW_DAYS", "30"))
REMINDER_THRESHOLD_DAYS = int(os.getenv("REMINDER_THRESHOLD_DAYS", "7"))
SUGGESTION_LOOKBACK_DAYS = int(os.getenv("SUGGESTION_LOOKBACK_DAYS", "3"))
SUGGESTION_NOTIFICATION_LIMIT = int(os.getenv("SUGGESTION_NOTIFICATION_LIMIT", "3"))
SUGGESTION_PREVIEW_LENGTH = int(os.getenv("SUGGESTION_PREVIEW_LENGTH", "100"))

# Dashboard
STRONG_CONNECTION_THRESHOLD = int(os.getenv("STRONG_CONNECTION_THRESHOLD", "70"))

# ============================================================================
# Subscription caps (None = unlimited)
# ============================================================================

FEATURE_LIMITS: Dict[str, Dict[str, Optional[int]]] = {
    "FREE": {
        "max_relationships": 3,
        "max_ai_generations_per_day": 5,
        "max_interactions_per_month": 50,
    },
    "PREMIUM": {
        "max_relationships": None,
        "max_ai_generations_per_day": 50,
        "max_interactions_per_month": None,
    },
    "PLATINUM": {
        "max_relationships": None,
        "max_ai_generations_per_day": None,
        "max_interactions_per_month": None,
    },
}


def get_config_summary() -> Dict[str, Any]:
    """Return a summary of current configuration."""
    return {
        "database": {
            "path": DB_PATH,
        },
        "ai": {
            "url": OPENROUTER_API_URL,
            "model": OPENROUTER_MODEL,
            "key_configured": bool(OPENROUTER_API_KEY),
            "temperature": AI_TEMPERATURE,
            "max_tokens": AI_MAX_TOKENS,
            "timeout": API_TIMEOUT,
            "max_retries": MAX_RETRIES,
        },
        "cache": {
            "enabled": FEED_CACHE_ENABLED,
            "redis_url": REDIS_URL,
            "ttl_hours": FEED_CACHE_TTL_HOURS,
        },
        "notifications": {
            "upcoming_window_days": UPCOMING_WINDOW_DAYS,
            "reminder_threshold_days": REMINDER_THRESHOLD_DAYS,
            "suggestion_lookback_days": SUGGESTION_LOOKBACK_DAYS,
            "suggestion_limit": SUGGESTION_NOTIFICATION_LIMIT,
            "suggestion_preview_length": SUGGESTION_PREVIEW_LENGTH,
        },
        "dev_server": {
            "use_reloader": DEV_USE_RELOADER,
        },
    }


def validate_config() -> tuple[bool, str]:
    """Validate configuration. Returns (is_valid, message)."""
    if not OPENROUTER_API_KEY:
        return False, "OPENROUTER_API_KEY not set in .env file (AI suggestions will use local fallbacks)"

    if UPCOMING_WINDOW_DAYS < 0 or REMINDER_THRESHOLD_DAYS < 0:
        return False, "Notification windows must be non-negative"

    if set(FEATURE_LIMITS) != {"FREE", "PREMIUM", "PLATINUM"}:
        return False, "FEATURE_LIMITS must define FREE, PREMIUM and PLATINUM tiers"

    return True, "Configuration valid"


if __name__ == "__main__":
    # Print config summary for debugging
    import json
    print("EverBloom Configuration:")
    print(json.dumps(get_config_summary(), indent=2))
    print()
    valid, msg = validate_config()
    print(f"Validation: {msg}")
