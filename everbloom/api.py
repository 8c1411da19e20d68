"""
Flask API for EverBloom
JSON endpoints for relationships, interactions, notifications and AI suggestions
"""

import logging
import sqlite3
from datetime import date, datetime, timedelta

from flask import Flask, request, jsonify, abort
from redis.exceptions import RedisError
from werkzeug.exceptions import HTTPException

from . import config
from .aggregator import Aggregator
from .ai_client import AIClient
from .dates import parse_timestamp
from .entitlements import entitlement_summary, require_action
from .errors import EntitlementError, RecordNotFound, UpstreamFetchError, ValidationError
from .feed_cache import FeedCache
from .notifications import build_notification_feed, start_of_day
from .store import EntityStore
from .suggestions import check_request, generate_suggestion, mark_acted_on, record_feedback
from .utils.redis_client import get_redis_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.json.sort_keys = False

# Initialize components
store = None
ai_client = None
feed_cache = None
_feed_cache_loaded = False
aggregator = Aggregator()


def get_feed_cache():
    """Lazy-load the feed cache (None when disabled or Redis is down)."""
    global feed_cache, _feed_cache_loaded
    if not _feed_cache_loaded:
        feed_cache = FeedCache.from_config()
        _feed_cache_loaded = True
    return feed_cache


def get_store():
    """Lazy-load the entity store."""
    global store
    if store is None:
        store = EntityStore(feed_cache=get_feed_cache())
    return store


def get_ai_client():
    """Lazy-load AI client."""
    global ai_client
    if ai_client is None:
        mock_mode = not config.OPENROUTER_API_KEY
        ai_client = AIClient(mock_mode=mock_mode)
        if mock_mode:
            logger.warning("Running in MOCK mode - using local fallback responses")
    return ai_client


def current_user_id() -> str:
    """Caller identity from the X-User-Id header."""
    user_id = request.headers.get('X-User-Id', '').strip()
    if not user_id:
        abort(401, description="Missing X-User-Id header")
    return user_id


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def int_arg(name: str):
    value = request.args.get(name)
    if value is None:
        return None
    try:
        parsed = int(value)
    except ValueError:
        raise ValidationError(f"'{name}' must be an integer")
    if parsed < 1:
        raise ValidationError(f"'{name}' must be positive")
    return parsed


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(RecordNotFound)
def handle_not_found(e):
    return jsonify({"error": str(e)}), 404


@app.errorhandler(EntitlementError)
def handle_entitlement_error(e):
    return jsonify({
        "error": str(e),
        "action": e.action,
        "tier": e.tier,
        "limit": e.limit,
    }), 402


@app.errorhandler(UpstreamFetchError)
def handle_upstream_error(e):
    return jsonify({"error": str(e), "notifications": None}), 502


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return jsonify({"error": e.description}), e.code
    logger.error(f"Unhandled error on {request.path}: {e}", exc_info=True)
    return jsonify({"error": "Internal server error"}), 500


# ============================================================================
# USERS
# ============================================================================

@app.route('/api/users', methods=['POST'])
def create_user():
    """Register a user (identity comes from the auth provider)."""
    data = json_body()
    user = get_store().create_user(
        data.get('email'),
        data.get('name'),
        subscription_status=data.get('subscription_status', 'FREE'),
        user_id=data.get('id'),
    )
    return jsonify(user.to_dict()), 201


@app.route('/api/me')
def me():
    user = get_store().get_user(current_user_id())
    return jsonify(user.to_dict())


@app.route('/api/entitlements')
def entitlements():
    """Tier caps, current usage and remaining allowance."""
    owner_id = current_user_id()
    user = get_store().get_user(owner_id)
    usage = get_store().get_usage(owner_id)
    return jsonify(entitlement_summary(user.subscription_status, usage))


def _require(owner_id: str, action: str):
    user = get_store().get_user(owner_id)
    require_action(user.subscription_status, action, get_store().get_usage(owner_id))


# ============================================================================
# RELATIONSHIPS
# ============================================================================

@app.route('/api/relationships', methods=['GET'])
def list_relationships():
    owner_id = current_user_id()
    order_by_strength = request.args.get('order') == 'strength'
    relationships = get_store().list_relationships(
        owner_id, order_by_strength=order_by_strength, limit=int_arg('limit')
    )
    return jsonify({"relationships": [r.to_dict() for r in relationships]})


@app.route('/api/relationships', methods=['POST'])
def create_relationship():
    owner_id = current_user_id()
    data = json_body()
    _require(owner_id, 'add_relationship')
    relationship = get_store().create_relationship(
        owner_id,
        data.get('display_name'),
        data.get('relationship_type'),
        important_dates=data.get('important_dates'),
        preferences=data.get('preferences'),
        notes=data.get('notes'),
    )
    return jsonify(relationship.to_dict()), 201


@app.route('/api/relationships/<relationship_id>', methods=['GET'])
def get_relationship(relationship_id):
    relationship = get_store().get_relationship(current_user_id(), relationship_id)
    return jsonify(relationship.to_dict())


@app.route('/api/relationships/<relationship_id>', methods=['PATCH'])
def update_relationship(relationship_id):
    owner_id = current_user_id()
    relationship = get_store().update_relationship(owner_id, relationship_id, **json_body())
    return jsonify(relationship.to_dict())


@app.route('/api/relationships/<relationship_id>', methods=['DELETE'])
def delete_relationship(relationship_id):
    get_store().delete_relationship(current_user_id(), relationship_id)
    return jsonify({"deleted": relationship_id})


@app.route('/api/relationships/<relationship_id>/last-interaction', methods=['PUT'])
def set_last_interaction(relationship_id):
    """Write last_interaction_date (null clears it) and return the rescored relationship."""
    owner_id = current_user_id()
    data = json_body()
    if 'last_interaction_date' not in data:
        raise ValidationError("'last_interaction_date' is required (may be null)")

    raw = data['last_interaction_date']
    value = parse_timestamp(raw) if raw is not None else None
    update = get_store().set_last_interaction(owner_id, relationship_id, value)

    return jsonify({
        "relationship": get_store().get_relationship(owner_id, relationship_id).to_dict(),
        "previous_score": update.previous_score,
        "new_score": update.new_score,
        "delta": update.delta,
    })


# ============================================================================
# INTERACTIONS
# ============================================================================

@app.route('/api/relationships/<relationship_id>/interactions', methods=['GET'])
def list_interactions(relationship_id):
    owner_id = current_user_id()
    logs = get_store().list_interactions(owner_id, relationship_id, limit=int_arg('limit'))
    return jsonify({
        "interactions": [log.to_dict() for log in logs],
        "summary": aggregator.interaction_breakdown(logs),
    })


@app.route('/api/relationships/<relationship_id>/interactions', methods=['POST'])
def log_interaction(relationship_id):
    owner_id = current_user_id()
    data = json_body()
    _require(owner_id, 'interaction')

    timestamp = data.get('timestamp')
    log, update = get_store().log_interaction(
        owner_id,
        relationship_id,
        data.get('interaction_type'),
        data.get('description'),
        timestamp=parse_timestamp(timestamp) if timestamp else None,
        ai_suggestion_id=data.get('ai_suggestion_id'),
    )
    return jsonify({
        "interaction": log.to_dict(),
        "previous_score": update.previous_score,
        "new_score": update.new_score,
    }), 201


# ============================================================================
# NOTIFICATIONS & DASHBOARD
# ============================================================================

@app.route('/api/notifications')
def notifications():
    """Ranked notification feed for the caller."""
    owner_id = current_user_id()
    today_param = request.args.get('today')
    if today_param:
        try:
            today = date.fromisoformat(today_param)
        except ValueError:
            raise ValidationError(f"'today' must be YYYY-MM-DD, got '{today_param}'")
    else:
        today = None

    feed = build_notification_feed(get_store(), owner_id, today=today, cache=get_feed_cache())
    return jsonify(feed.to_dict())


@app.route('/api/dashboard')
def dashboard():
    owner_id = current_user_id()
    now = datetime.now()
    relationships = get_store().list_relationships(owner_id, order_by_strength=True)
    recent_logs = get_store().list_all_interactions(owner_id, since=start_of_day(now) - timedelta(days=30))
    recent_suggestions = get_store().list_suggestions(owner_id, limit=5)

    return jsonify({
        "stats": aggregator.compute_dashboard_stats(relationships, now),
        "top_relationships": aggregator.top_relationships(relationships),
        "interactions": aggregator.interaction_breakdown(recent_logs, now),
        "recent_suggestions": [s.to_dict() for s in recent_suggestions],
    })


# ============================================================================
# AI SUGGESTIONS
# ============================================================================

@app.route('/api/suggestions', methods=['GET'])
def list_suggestions():
    owner_id = current_user_id()
    suggestions = get_store().list_suggestions(
        owner_id,
        relationship_id=request.args.get('relationship_id'),
        limit=int_arg('limit'),
    )
    return jsonify({"suggestions": [s.to_dict() for s in suggestions]})


@app.route('/api/suggestions', methods=['POST'])
def create_suggestion():
    """
    Generate a suggestion.

    Body: {"tool": ..., "relationship_id": ..., "params": {...}}
    With ?async=1 the work is queued and 202 is returned with the task id.
    """
    owner_id = current_user_id()
    data = json_body()
    relationship_id = data.get('relationship_id')
    tool, params = check_request(data.get('tool'), data.get('params'))

    _require(owner_id, 'ai_generation')

    if request.args.get('async') in ('1', 'true'):
        from .tasks.suggestions import generate_suggestion_async
        if relationship_id:
            get_store().get_relationship(owner_id, relationship_id)
        task = generate_suggestion_async.delay(owner_id, tool, relationship_id, params)
        logger.info(f"Queued {tool} suggestion task {task.id} for user {owner_id}")
        return jsonify({"task_id": task.id, "status": "queued"}), 202

    result = generate_suggestion(
        get_store(), get_ai_client(), owner_id, tool, relationship_id=relationship_id, params=params
    )
    return jsonify(result), 201


@app.route('/api/suggestions/<suggestion_id>/feedback', methods=['POST'])
def suggestion_feedback(suggestion_id):
    data = json_body()
    suggestion = record_feedback(get_store(), current_user_id(), suggestion_id, data.get('score'))
    return jsonify(suggestion.to_dict())


@app.route('/api/suggestions/<suggestion_id>/acted-on', methods=['POST'])
def suggestion_acted_on(suggestion_id):
    data = json_body()
    suggestion = mark_acted_on(
        get_store(), current_user_id(), suggestion_id, bool(data.get('acted_on', True))
    )
    return jsonify(suggestion.to_dict())


# ============================================================================
# HEALTH
# ============================================================================

@app.route('/health')
def health():
    """Health check endpoint for Docker and monitoring."""
    status = {
        'status': 'ok',
        'timestamp': datetime.now().isoformat(),
        'feed_cache_enabled': config.FEED_CACHE_ENABLED,
        'components': {}
    }

    # Redis only backs the feed cache and the task queue
    redis_status = {'status': 'down', 'latency_ms': None}
    try:
        client = get_redis_client(max_retries=0)
        if client:
            start = datetime.now()
            client.ping()
            latency = (datetime.now() - start).total_seconds() * 1000
            redis_status = {'status': 'up', 'latency_ms': round(latency, 2)}
    except RedisError as e:
        redis_status['error'] = str(e)
    status['components']['redis'] = redis_status

    cache = get_feed_cache()
    if cache is not None:
        status['components']['feed_cache'] = cache.stats()

    db_status = {'status': 'down'}
    try:
        with sqlite3.connect(get_store().db_path) as conn:
            conn.execute("SELECT 1")
        db_status = {'status': 'up'}
    except sqlite3.Error as e:
        db_status['error'] = str(e)
    status['components']['db'] = db_status

    if db_status['status'] == 'down':
        status['status'] = 'degraded'
        return jsonify(status), 503

    return jsonify(status)


if __name__ == '__main__':
    valid, msg = config.validate_config()
    if not valid:
        logger.warning(f"Config validation: {msg}")

    logger.info(f"Starting server (debug=True, use_reloader={config.DEV_USE_RELOADER})")
    app.run(debug=True, use_reloader=config.DEV_USE_RELOADER, host='0.0.0.0', port=5000)
