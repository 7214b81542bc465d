"""Pattern Service: scheduled mood pattern detection.

Scans recent check-ins of users with an active device and turns detected
patterns into notifications for the notification gate.

Components:
- detector.py: PatternDetector rules (negative streak, high stress,
  streak at risk, re-engagement)
- checkin_repository.py: Check-in reads (in-memory and PostgreSQL)
- messages.py: Notification copy per pattern
- job.py: PatternCheckJob passes over all active users
- scheduler.py: APScheduler cron wiring and entry point
"""

from .checkin_repository import (
    CheckinRepository,
    InMemoryCheckinRepository,
    PostgresCheckinRepository,
)
from .config import PatternJobConfig
from .detector import PatternDetector, get_detector, leading_streak, run_pattern_checks
from .job import JobRunSummary, PatternCheckJob, UserRunResult
from .messages import PatternNotification, notification_for
from .scheduler import PatternCheckScheduler, build_scheduler

__all__ = [
    "CheckinRepository",
    "InMemoryCheckinRepository",
    "PostgresCheckinRepository",
    "PatternJobConfig",
    "PatternDetector",
    "get_detector",
    "leading_streak",
    "run_pattern_checks",
    "JobRunSummary",
    "PatternCheckJob",
    "UserRunResult",
    "PatternNotification",
    "notification_for",
    "PatternCheckScheduler",
    "build_scheduler",
]
