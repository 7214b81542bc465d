"""Notification Service HTTP handler.

Preferences, device registration, history and test sends. User ids come
from the path; authentication happens upstream of this service.
"""
import logging
import os
import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import Flask, request, jsonify

from soulbloom.shared.database import RepositoryError
from soulbloom.shared.models import DevicePlatform, NotificationType
from soulbloom.shared.models.notifications import PREFERENCE_TYPES
from soulbloom.shared.utils import configure_pii_salt_from_env, hash_pii
from .config import DEFAULT_HISTORY_LIMIT
from .gate import get_gate

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 100
MAX_DAILY_LIMIT = 20

VALID_PREFERENCE_KEYS = frozenset(
    [t.value for t in PREFERENCE_TYPES]
    + ["quiet_hours_enabled", "quiet_hours_start", "quiet_hours_end", "daily_limit", "timezone"]
)
_HHMM = re.compile(r"^\d{2}:\d{2}$")

# Initialize Flask app
app = Flask(__name__)

configure_pii_salt_from_env()

gate = get_gate()


@app.errorhandler(RepositoryError)
def handle_repository_error(error):
    logger.error("NOTIFICATION_REQUEST_STORAGE_FAILED", extra={"error": str(error)})
    return jsonify({"error": "Storage unavailable"}), 503


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint for ECS/ALB."""
    return jsonify({
        "status": "healthy",
        "service": "notification-service",
        "push_enabled": gate.transport is not None,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    if gate is None:
        return jsonify({"status": "not_ready", "reason": "gate_not_initialized"}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/notifications/preferences/<user_id>", methods=["GET"])
def get_preferences(user_id: str):
    return jsonify({"preferences": gate.get_preferences(user_id).to_dict()}), 200


def _validate_preference_updates(updates) -> str:
    """Return an error message, or an empty string when the update is valid."""
    if not isinstance(updates, dict) or not updates:
        return "Request body must be a non-empty JSON object"

    invalid = sorted(k for k in updates if k not in VALID_PREFERENCE_KEYS)
    if invalid:
        return f"Invalid preference keys: {', '.join(invalid)}"

    for key in ("quiet_hours_start", "quiet_hours_end"):
        if key in updates and not (isinstance(updates[key], str) and _HHMM.match(updates[key])):
            return f"Invalid {key} format. Use HH:MM"

    if "daily_limit" in updates:
        try:
            limit = int(updates["daily_limit"])
        except (TypeError, ValueError):
            return f"daily_limit must be between 0 and {MAX_DAILY_LIMIT}"
        if not 0 <= limit <= MAX_DAILY_LIMIT:
            return f"daily_limit must be between 0 and {MAX_DAILY_LIMIT}"

    if "timezone" in updates:
        try:
            ZoneInfo(updates["timezone"])
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            return f"Unknown timezone: {updates['timezone']}"
    return ""


@app.route("/notifications/preferences/<user_id>", methods=["PUT"])
def update_preferences(user_id: str):
    """Partially update a user's preferences.

    Request Body:
        Any subset of the preference keys, e.g.
        {"re_engagement": false, "quiet_hours_start": "22:00", "daily_limit": 3}
    """
    updates = request.get_json(silent=True)
    error = _validate_preference_updates(updates)
    if error:
        return jsonify({"error": error}), 400

    try:
        preferences = gate.update_preferences(user_id, updates)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"preferences": preferences.to_dict()}), 200


@app.route("/notifications/history/<user_id>", methods=["GET"])
def get_history(user_id: str):
    try:
        limit = int(request.args.get("limit", DEFAULT_HISTORY_LIMIT))
    except ValueError:
        limit = DEFAULT_HISTORY_LIMIT
    limit = max(1, min(limit, MAX_HISTORY_LIMIT))

    entries = gate.history(user_id, limit)
    return jsonify({"history": [e.to_dict() for e in entries]}), 200


@app.route("/notifications/test/<user_id>", methods=["POST"])
def send_test(user_id: str):
    result = gate.send_test_notification(user_id)
    return jsonify(result.to_dict()), 200


@app.route("/notifications/devices/<user_id>", methods=["POST"])
def register_device(user_id: str):
    """Register a push device.

    Request Body:
        {"token": "device-token", "platform": "ios" | "android" | "web"}
    """
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    if not token or not isinstance(token, str):
        return jsonify({"error": "Device token is required"}), 400
    try:
        platform = DevicePlatform(data.get("platform"))
    except ValueError:
        return jsonify({"error": "Valid platform (ios, android, web) is required"}), 400

    gate.register_device(user_id, token, platform)
    return jsonify({"success": True}), 201


@app.route("/notifications/devices/<user_id>/unregister", methods=["POST"])
def unregister_device(user_id: str):
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    if not token or not isinstance(token, str):
        return jsonify({"error": "Device token is required"}), 400

    changed = gate.unregister_device(user_id, token)
    return jsonify({"success": True, "changed": changed}), 200


@app.route("/notifications/send", methods=["POST"])
def send():
    """Send one notification through the admission gate.

    Request Body:
        {
            "user_id": "42",
            "notification_type": "pattern_intervention",
            "title": "...",
            "body": "...",
            "data": {"action": "open_breathing"}
        }
    """
    data = request.get_json(silent=True) or {}
    missing = [k for k in ("user_id", "notification_type", "title", "body") if not data.get(k)]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    try:
        notification_type = NotificationType(data["notification_type"])
    except ValueError:
        return jsonify({"error": f"Unknown notification_type: {data['notification_type']}"}), 400
    if data.get("data") is not None and not isinstance(data["data"], dict):
        return jsonify({"error": "data must be a JSON object"}), 400

    user_id = str(data["user_id"])
    result = gate.send(user_id, notification_type, data["title"], data["body"], data.get("data"))
    logger.info(
        "SEND_REQUEST_HANDLED",
        extra={"user_hash": hash_pii(user_id), "success": result.success, "reason": result.reason}
    )
    return jsonify(result.to_dict()), 200


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    port = int(os.getenv("PORT", "8004"))
    app.run(host="0.0.0.0", port=port, debug=False)
