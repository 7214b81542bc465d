"""Scheduled pattern check passes.

Each pass loads the users with an active device, runs its rules for every
user on a bounded thread pool and hands detected patterns to the
notification gate. A failure for one user is logged and the pass moves
on; a failure of the whole pass is logged and does not affect the next
scheduled run.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from soulbloom.shared.models import Pattern
from soulbloom.shared.utils import hash_pii

from .config import PatternJobConfig
from .detector import PatternDetector
from .messages import notification_for

logger = logging.getLogger(__name__)


@dataclass
class UserRunResult:
    """Outcome of one pass for one user."""
    user_id: str
    patterns: List[Pattern] = field(default_factory=list)
    notifications_sent: int = 0
    error: Optional[str] = None


@dataclass
class JobRunSummary:
    """Totals for one scheduled pass."""
    run_name: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    users_checked: int = 0
    patterns_detected: int = 0
    notifications_sent: int = 0
    failures: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_name": self.run_name,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "users_checked": self.users_checked,
            "patterns_detected": self.patterns_detected,
            "notifications_sent": self.notifications_sent,
            "failures": self.failures,
            "error": self.error,
        }


class PatternCheckJob:
    """Runs the negative-pattern, streak-risk and re-engagement passes.

    `gate` is anything with the NotificationGate `send` signature.
    """

    def __init__(
        self,
        detector: PatternDetector,
        gate: Any,
        config: Optional[PatternJobConfig] = None,
    ):
        self.detector = detector
        self.gate = gate
        self.config = config or PatternJobConfig()

    def run_negative_patterns(self) -> JobRunSummary:
        """Midday pass: negative mood streaks and high stress."""
        return self._run_pass(
            "negative_patterns",
            [self.detector.check_negative_pattern, self.detector.check_high_stress_pattern],
        )

    def run_streak_risk(self) -> JobRunSummary:
        """Evening pass: streaks about to lapse."""
        return self._run_pass("streak_risk", [self.detector.check_streak_at_risk])

    def run_reengagement(self) -> JobRunSummary:
        """Morning pass: users who stopped checking in a few days ago."""
        return self._run_pass("reengagement", [self.detector.check_reengagement])

    def _run_pass(
        self,
        run_name: str,
        rules: Sequence[Callable[[str], Optional[Pattern]]],
    ) -> JobRunSummary:
        summary = JobRunSummary(run_name=run_name, started_at=datetime.now(timezone.utc))
        logger.info("PATTERN_JOB_STARTED", extra={"run_name": run_name})

        try:
            user_ids = self.detector.active_user_ids()
            with ThreadPoolExecutor(
                max_workers=self.config.max_workers,
                thread_name_prefix=f"pattern-{run_name}",
            ) as executor:
                results = list(executor.map(lambda uid: self._process_user(uid, rules), user_ids))
        except Exception as e:
            summary.error = str(e)
            summary.finished_at = datetime.now(timezone.utc)
            logger.exception(
                "PATTERN_JOB_FAILED",
                extra={"run_name": run_name, "error_type": type(e).__name__}
            )
            return summary

        for result in results:
            summary.users_checked += 1
            summary.patterns_detected += len(result.patterns)
            summary.notifications_sent += result.notifications_sent
            if result.error is not None:
                summary.failures += 1

        summary.finished_at = datetime.now(timezone.utc)
        logger.info("PATTERN_JOB_COMPLETED", extra=summary.to_dict())
        return summary

    def _process_user(
        self,
        user_id: str,
        rules: Sequence[Callable[[str], Optional[Pattern]]],
    ) -> UserRunResult:
        result = UserRunResult(user_id=user_id)
        try:
            for rule in rules:
                pattern = rule(user_id)
                if pattern is None:
                    continue
                result.patterns.append(pattern)
                message = notification_for(pattern)
                outcome = self.gate.send(
                    user_id,
                    message.notification_type,
                    message.title,
                    message.body,
                    message.data,
                )
                if outcome.success:
                    result.notifications_sent += 1
        except Exception as e:
            result.error = str(e)
            logger.exception(
                "PATTERN_JOB_USER_FAILED",
                extra={"user_hash": hash_pii(user_id), "error_type": type(e).__name__}
            )
        return result
