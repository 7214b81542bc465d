"""SoulBloom risk classification and notification gating.

Entry points:
    classify(text, structured)        -> RiskAnalysis
    detect_topics(text)               -> list of TopicMatch
    run_pattern_checks(user_id)       -> list of Pattern
    send_notification(user_id, type, title, body, data) -> SendResult

Services are imported on first use so importing the package does not
pull in every client library.
"""

__version__ = "0.1.0"


def classify(text=None, structured=None, user_id=None):
    from soulbloom.services.analysis_service import classify as _classify
    return _classify(text, structured, user_id=user_id)


def detect_topics(text):
    from soulbloom.services.safety_service import detect_topics as _detect_topics
    return _detect_topics(text)


def run_pattern_checks(user_id):
    from soulbloom.services.pattern_service import run_pattern_checks as _run
    return _run(user_id)


def send_notification(user_id, notification_type, title, body, data=None):
    from soulbloom.services.notification_service import send_notification as _send
    return _send(user_id, notification_type, title, body, data)


__all__ = [
    "classify",
    "detect_topics",
    "run_pattern_checks",
    "send_notification",
]
