"""Safety Service HTTP handler.

Exposes the keyword scanner and the sensitive-topic resources. Check-in
text is never logged; only its length and fingerprint.
"""
import logging
import os

from flask import Flask, request, jsonify

from soulbloom.shared.utils import configure_pii_salt_from_env, hash_text_for_audit
from .config import SafetyConfig
from .scanner import SafetyKeywordScanner
from .topic_detector import TopicDetector

logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

configure_pii_salt_from_env()

config = SafetyConfig.from_env()
scanner = SafetyKeywordScanner(config=config)
topic_detector = TopicDetector()


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint for ECS/ALB."""
    return jsonify({
        "status": "healthy",
        "service": "safety-service",
        "pattern_version": config.pattern_version,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check - verifies scanner and topic table are loaded."""
    if scanner is None or topic_detector is None:
        return jsonify({"status": "not_ready", "reason": "scanner_not_initialized"}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/scan", methods=["POST"])
def scan_text():
    """Run the keyword scanner over check-in text.

    Request Body:
        {"text": "check-in text"}

    Response:
        {"level": "none" | "high" | "critical", "indicators": [...]}
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data.get("text"), str):
        logger.warning("SCAN_REQUEST_INVALID", extra={"reason": "missing_text"})
        return jsonify({"error": "Missing required field: text"}), 400

    text = data["text"]
    logger.info(
        "SCAN_REQUESTED",
        extra={"text_hash": hash_text_for_audit(text), "text_length": len(text)}
    )
    result = scanner.scan(text)
    return jsonify(result.to_dict()), 200


@app.route("/topics", methods=["POST"])
def detect_topics_endpoint():
    """Detect sensitive topics in text.

    Request Body:
        {"text": "check-in text"}

    Response:
        {"topics": [{"topic_id", "topic_name", "resource"}, ...]}
    """
    data = request.get_json(silent=True) or {}
    topics = topic_detector.detect(data.get("text"))
    return jsonify({"topics": [t.to_dict() for t in topics]}), 200


@app.route("/resources", methods=["GET"])
def list_resources():
    """List every topic with its support resource."""
    return jsonify({
        "topics": [t.to_dict() for t in topic_detector.all_topics()],
    }), 200


@app.route("/resources/<topic_id>", methods=["GET"])
def get_topic_resource(topic_id: str):
    resource = topic_detector.get_resource(topic_id)
    if resource is None:
        return jsonify({"error": f"Unknown topic: {topic_id}"}), 404
    return jsonify({"topic_id": topic_id, "resource": resource.to_dict()}), 200


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    port = int(os.getenv("PORT", "8001"))
    app.run(host="0.0.0.0", port=port, debug=False)
