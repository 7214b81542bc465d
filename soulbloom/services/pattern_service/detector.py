"""Mood pattern detection over recent check-in history.

Each rule reads a bounded window of check-ins for one user and returns a
pattern or None. Rules are independent: a storage failure in one rule is
logged and that rule yields nothing, the others still run.
"""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from soulbloom.shared.database import RepositoryError
from soulbloom.shared.models import (
    CheckinRecord,
    HighStressPattern,
    NegativeStreakPattern,
    Pattern,
    ReEngagementPattern,
    StreakAtRiskPattern,
)
from soulbloom.shared.utils import ensure_pii_salt, hash_pii

from .checkin_repository import CheckinRepository, as_utc
from .config import (
    HIGH_STRESS_THRESHOLD,
    MIN_STREAK_DAYS,
    NEGATIVE_MOOD_THRESHOLD,
    REENGAGEMENT_MAX_DAYS,
    REENGAGEMENT_MIN_DAYS,
    STREAK_REMINDER_HOUR,
    WINDOW_DAYS,
)

logger = logging.getLogger(__name__)

# How far back to look when counting an active check-in streak
STREAK_LOOKBACK_DAYS = 30

DailyAverage = Tuple[date, float]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def leading_streak(
    daily: Sequence[DailyAverage],
    predicate: Callable[[float], bool],
) -> List[DailyAverage]:
    """Walk days newest first and collect the run that satisfies `predicate`.

    The walk stops at the first failing day or at a calendar gap.
    """
    streak: List[DailyAverage] = []
    for day, value in daily:
        if streak and (streak[-1][0] - day).days != 1:
            break
        if not predicate(value):
            break
        streak.append((day, value))
    return streak


class PatternDetector:
    """Detects negative, high-stress, streak-at-risk and re-engagement patterns.

    Time comes from the injected `now` callable. Streak-at-risk uses the
    user's local day; `timezone_lookup` maps a user id to an IANA zone name.
    """

    def __init__(
        self,
        checkin_repository: CheckinRepository,
        device_repository: Any = None,
        now: Optional[Callable[[], datetime]] = None,
        timezone_lookup: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.checkins = checkin_repository
        self.devices = device_repository
        self._now = now or _utc_now
        self._timezone_lookup = timezone_lookup
        ensure_pii_salt()

    def run_all_checks(self, user_id: str) -> List[Pattern]:
        """Run every rule for a user and return the patterns that fired."""
        checks = (
            self.check_negative_pattern,
            self.check_streak_at_risk,
            self.check_reengagement,
            self.check_high_stress_pattern,
        )
        patterns = [p for p in (check(user_id) for check in checks) if p is not None]

        logger.info(
            "PATTERN_CHECKS_COMPLETED",
            extra={
                "user_hash": hash_pii(user_id),
                "patterns": [p.kind.value for p in patterns],
            }
        )
        return patterns

    def check_negative_pattern(self, user_id: str) -> Optional[NegativeStreakPattern]:
        """Most recent consecutive days with average mood <= 2."""
        daily = self._daily_averages(user_id, "negative_streak", lambda r: r.mood_rating.score)
        if daily is None or len(daily) < MIN_STREAK_DAYS:
            return None

        streak = leading_streak(daily, lambda avg: avg <= NEGATIVE_MOOD_THRESHOLD)
        if len(streak) < MIN_STREAK_DAYS:
            return None

        return NegativeStreakPattern(
            days=len(streak),
            avg_mood=sum(v for _, v in streak) / len(streak),
            start=streak[-1][0],
            end=streak[0][0],
        )

    def check_high_stress_pattern(self, user_id: str) -> Optional[HighStressPattern]:
        """Most recent consecutive days with average stress >= 7."""
        daily = self._daily_averages(user_id, "high_stress", lambda r: r.stress_level)
        if daily is None or len(daily) < MIN_STREAK_DAYS:
            return None

        streak = leading_streak(daily, lambda avg: avg >= HIGH_STRESS_THRESHOLD)
        if len(streak) < MIN_STREAK_DAYS:
            return None

        return HighStressPattern(
            days=len(streak),
            avg_stress=sum(v for _, v in streak) / len(streak),
        )

    def check_streak_at_risk(self, user_id: str) -> Optional[StreakAtRiskPattern]:
        """Streak of 3+ days, no check-in yet today, and it is evening locally."""
        now = as_utc(self._now())
        local_now = now.astimezone(self._user_zone(user_id))
        if local_now.hour < STREAK_REMINDER_HOUR:
            return None

        try:
            records = self.checkins.list_since(
                user_id, now - timedelta(days=STREAK_LOOKBACK_DAYS)
            )
        except RepositoryError as e:
            self._log_rule_failure(user_id, "streak_at_risk", e)
            return None

        zone = local_now.tzinfo
        checkin_days = {as_utc(r.created_at).astimezone(zone).date() for r in records}
        today = local_now.date()
        if today in checkin_days:
            return None

        streak = 0
        day = today - timedelta(days=1)
        while day in checkin_days:
            streak += 1
            day -= timedelta(days=1)

        if streak < MIN_STREAK_DAYS:
            return None
        return StreakAtRiskPattern(current_streak=streak, hours_remaining=24 - local_now.hour)

    def check_reengagement(self, user_id: str) -> Optional[ReEngagementPattern]:
        """Last check-in between 3 and 14 whole days ago."""
        try:
            last = self.checkins.latest(user_id)
        except RepositoryError as e:
            self._log_rule_failure(user_id, "re_engagement", e)
            return None
        if last is None:
            return None

        last_at = as_utc(last.created_at)
        days_since = (as_utc(self._now()) - last_at) // timedelta(days=1)
        if not REENGAGEMENT_MIN_DAYS <= days_since <= REENGAGEMENT_MAX_DAYS:
            return None

        return ReEngagementPattern(
            days_since_last_checkin=days_since,
            last_mood=last.mood_rating.value,
            last_checkin_at=last_at,
        )

    def active_user_ids(self) -> List[str]:
        """Users with at least one active device registration."""
        if self.devices is None:
            return []
        try:
            return list(self.devices.active_user_ids())
        except RepositoryError as e:
            logger.error(
                "ACTIVE_USERS_LOOKUP_FAILED",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            return []

    def _daily_averages(
        self,
        user_id: str,
        rule: str,
        value_of: Callable[[CheckinRecord], float],
    ) -> Optional[List[DailyAverage]]:
        """Average a value per UTC calendar day over the window, newest first."""
        since = as_utc(self._now()) - timedelta(days=WINDOW_DAYS)
        try:
            records = self.checkins.list_since(user_id, since)
        except RepositoryError as e:
            self._log_rule_failure(user_id, rule, e)
            return None

        by_day: Dict[date, List[float]] = defaultdict(list)
        for record in records:
            by_day[as_utc(record.created_at).date()].append(value_of(record))
        return sorted(
            ((day, sum(values) / len(values)) for day, values in by_day.items()),
            reverse=True,
        )

    def _user_zone(self, user_id: str):
        name = None
        if self._timezone_lookup is not None:
            try:
                name = self._timezone_lookup(user_id)
            except RepositoryError as e:
                self._log_rule_failure(user_id, "timezone_lookup", e)
        if not name:
            return timezone.utc
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "UNKNOWN_USER_TIMEZONE",
                extra={"user_hash": hash_pii(user_id), "timezone": name}
            )
            return timezone.utc

    def _log_rule_failure(self, user_id: str, rule: str, error: Exception) -> None:
        logger.error(
            "PATTERN_RULE_FAILED",
            extra={
                "user_hash": hash_pii(user_id),
                "rule": rule,
                "error": str(error),
                "error_type": type(error).__name__,
            }
        )


_default_detector: Optional[PatternDetector] = None


def get_detector() -> PatternDetector:
    """Get or create the detector backed by PostgreSQL from the environment."""
    global _default_detector
    if _default_detector is None:
        from soulbloom.shared.database import get_connection_manager
        from soulbloom.shared.models import NotificationPreferences
        from soulbloom.services.notification_service import (
            PostgresDeviceRepository,
            PostgresPreferencesRepository,
        )
        from .checkin_repository import PostgresCheckinRepository

        manager = get_connection_manager()
        preferences = PostgresPreferencesRepository(manager)

        def user_timezone(user_id: str) -> str:
            return (preferences.get(user_id) or NotificationPreferences()).timezone

        _default_detector = PatternDetector(
            PostgresCheckinRepository(manager),
            device_repository=PostgresDeviceRepository(manager),
            timezone_lookup=user_timezone,
        )
    return _default_detector


def run_pattern_checks(user_id: str) -> List[Pattern]:
    """Run every pattern rule for one user with the environment-configured detector."""
    return get_detector().run_all_checks(user_id)
