"""Analysis Service HTTP handler.

Check-in text is never logged here; the classifier logs fingerprints.
"""
import logging
import os

from flask import Flask, request, jsonify

from soulbloom.shared.utils import configure_pii_salt_from_env
from .aggregate import aggregate_analyses
from .classifier import RiskClassifier
from .config import AnalysisConfig
from .errors import InvalidInput, ProviderAuthError, ProviderRateLimited
from .provider import create_provider

logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

configure_pii_salt_from_env()

config = AnalysisConfig.from_env()
classifier = RiskClassifier(provider=create_provider(config))


@app.errorhandler(InvalidInput)
def handle_invalid_input(error):
    return jsonify({"error": str(error)}), 400


@app.errorhandler(ProviderAuthError)
def handle_provider_auth(error):
    logger.error("ANALYZE_PROVIDER_AUTH_FAILED", extra={"error": str(error)})
    return jsonify({"error": "Analysis provider authentication failed"}), 502


@app.errorhandler(ProviderRateLimited)
def handle_rate_limited(error):
    return jsonify({"error": str(error)}), 429


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint for ECS/ALB."""
    return jsonify({
        "status": "healthy",
        "service": "analysis-service",
        "provider": classifier.provider.name if classifier.provider else None,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    if classifier is None:
        return jsonify({"status": "not_ready", "reason": "classifier_not_initialized"}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/analyze", methods=["POST"])
def analyze():
    """Classify a check-in.

    Request Body:
        {
            "text": "optional free text",
            "mood_rating": "great" | "good" | "okay" | "not_good" | "terrible",
            "stress_level": 1-10,
            "selected_emotions": ["anxious", ...],
            "user_id": "optional, hashed for logs"
        }

    Response:
        RiskAnalysis as JSON
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput("Request body required")

    analysis = classifier.classify(
        text=data.get("text"),
        structured={
            "mood_rating": data.get("mood_rating"),
            "stress_level": data.get("stress_level"),
            "selected_emotions": data.get("selected_emotions"),
        },
        user_id=data.get("user_id"),
    )
    return jsonify(analysis.to_dict()), 200


@app.route("/analyze/batch", methods=["POST"])
def analyze_batch():
    """Classify several free-text entries. Body: {"texts": [...]}"""
    data = request.get_json(silent=True) or {}
    results = classifier.classify_batch(data.get("texts"))
    return jsonify({"results": [r.to_dict() for r in results]}), 200


@app.route("/analyze/aggregate", methods=["POST"])
def analyze_aggregate():
    """Summarize stored analyses. Body: {"analyses": [...]}"""
    data = request.get_json(silent=True) or {}
    summary = aggregate_analyses(data.get("analyses") or [])
    return jsonify({"aggregate": summary.to_dict() if summary else None}), 200


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    port = int(os.getenv("PORT", "8002"))
    app.run(host="0.0.0.0", port=port, debug=False)
