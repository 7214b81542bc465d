"""SoulBloom services.

- safety_service: Deterministic keyword and topic checks
- analysis_service: Check-in risk classification (provider + overrides)
- pattern_service: Scheduled mood pattern detection
- notification_service: Push admission control and audit log
"""
