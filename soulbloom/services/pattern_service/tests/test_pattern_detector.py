"""Tests for pattern detection rules."""
from datetime import date, datetime, timedelta, timezone

import pytest

from soulbloom.shared.database import StorageError
from soulbloom.shared.models import (
    CheckinRecord,
    DevicePlatform,
    MoodRating,
    PatternKind,
)
from soulbloom.shared.utils import configure_pii_salt, pii
from soulbloom.services.notification_service import InMemoryDeviceRepository
from soulbloom.services.pattern_service.checkin_repository import InMemoryCheckinRepository
from soulbloom.services.pattern_service.detector import PatternDetector, leading_streak

# Tuesday evening UTC
NOW = datetime(2024, 12, 24, 20, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def checkins():
    return InMemoryCheckinRepository()


@pytest.fixture
def detector(checkins):
    return PatternDetector(checkins, now=lambda: NOW)


def add(repo, days_ago, mood=MoodRating.OKAY, stress=5, hour=12, user_id="user_1"):
    created = datetime(2024, 12, 24, hour, 0, tzinfo=timezone.utc) - timedelta(days=days_ago)
    repo.add(CheckinRecord(
        user_id=user_id,
        mood_rating=mood,
        stress_level=stress,
        created_at=created,
    ))


class FailingCheckinRepository(InMemoryCheckinRepository):
    """Window reads fail; latest still works."""

    def list_since(self, user_id, since):
        raise StorageError("connection reset")


class TestLeadingStreak:
    """Tests for the walk-backward helper."""

    def test_stops_at_first_failure(self):
        daily = [(date(2024, 12, 24), 1.0), (date(2024, 12, 23), 4.0), (date(2024, 12, 22), 1.0)]

        assert leading_streak(daily, lambda v: v <= 2) == [(date(2024, 12, 24), 1.0)]

    def test_stops_at_calendar_gap(self):
        daily = [(date(2024, 12, 24), 1.0), (date(2024, 12, 22), 1.0)]

        assert len(leading_streak(daily, lambda v: v <= 2)) == 1

    def test_empty(self):
        assert leading_streak([], lambda v: True) == []


class TestNegativePattern:
    """Tests for check_negative_pattern."""

    def test_three_negative_days_then_positive_day(self, checkins, detector):
        for days_ago in (0, 1, 2):
            add(checkins, days_ago, MoodRating.NOT_GOOD)
        add(checkins, 3, MoodRating.GOOD)

        pattern = detector.check_negative_pattern("user_1")

        assert pattern.days == 3
        assert pattern.avg_mood == 2.0
        assert pattern.start == date(2024, 12, 22)
        assert pattern.end == date(2024, 12, 24)
        assert pattern.kind == PatternKind.NEGATIVE_STREAK

    def test_daily_average_is_used(self, checkins, detector):
        add(checkins, 0, MoodRating.TERRIBLE, hour=9)
        add(checkins, 0, MoodRating.OKAY, hour=15)
        add(checkins, 1, MoodRating.TERRIBLE)
        add(checkins, 2, MoodRating.NOT_GOOD)

        pattern = detector.check_negative_pattern("user_1")

        assert pattern.days == 3
        assert pattern.avg_mood == pytest.approx(5 / 3)

    def test_day_averaging_above_threshold_breaks(self, checkins, detector):
        add(checkins, 0, MoodRating.TERRIBLE, hour=9)
        add(checkins, 0, MoodRating.GOOD, hour=15)
        add(checkins, 1, MoodRating.TERRIBLE)
        add(checkins, 2, MoodRating.TERRIBLE)

        assert detector.check_negative_pattern("user_1") is None

    def test_calendar_gap_breaks_streak(self, checkins, detector):
        for days_ago in (0, 1, 3, 4):
            add(checkins, days_ago, MoodRating.TERRIBLE)

        assert detector.check_negative_pattern("user_1") is None

    def test_fewer_than_three_days(self, checkins, detector):
        add(checkins, 0, MoodRating.TERRIBLE)
        add(checkins, 1, MoodRating.TERRIBLE)

        assert detector.check_negative_pattern("user_1") is None

    def test_records_outside_window_ignored(self, checkins, detector):
        for days_ago in (8, 9, 10):
            add(checkins, days_ago, MoodRating.TERRIBLE)

        assert detector.check_negative_pattern("user_1") is None


class TestHighStressPattern:
    """Tests for check_high_stress_pattern."""

    def test_three_high_stress_days(self, checkins, detector):
        for days_ago, stress in ((0, 8), (1, 7), (2, 9)):
            add(checkins, days_ago, stress=stress)

        pattern = detector.check_high_stress_pattern("user_1")

        assert pattern.days == 3
        assert pattern.avg_stress == 8.0

    def test_most_recent_day_below_threshold(self, checkins, detector):
        add(checkins, 0, stress=6)
        for days_ago in (1, 2, 3):
            add(checkins, days_ago, stress=9)

        assert detector.check_high_stress_pattern("user_1") is None


class TestStreakAtRisk:
    """Tests for check_streak_at_risk."""

    def test_evening_without_checkin_today(self, checkins, detector):
        for days_ago in (1, 2, 3):
            add(checkins, days_ago)

        pattern = detector.check_streak_at_risk("user_1")

        assert pattern.current_streak == 3
        assert pattern.hours_remaining == 4

    def test_already_checked_in_today(self, checkins, detector):
        for days_ago in (0, 1, 2, 3):
            add(checkins, days_ago)

        assert detector.check_streak_at_risk("user_1") is None

    def test_before_evening(self, checkins):
        for days_ago in (1, 2, 3):
            add(checkins, days_ago)
        morning = PatternDetector(checkins, now=lambda: NOW.replace(hour=17))

        assert morning.check_streak_at_risk("user_1") is None

    def test_short_streak(self, checkins, detector):
        add(checkins, 1)
        add(checkins, 2)
        add(checkins, 4)

        assert detector.check_streak_at_risk("user_1") is None

    def test_uses_user_local_time(self, checkins):
        # 03:00 UTC on the 25th is 19:00 on the 24th in Los Angeles
        now = datetime(2024, 12, 25, 3, 0, tzinfo=timezone.utc)
        for day in (21, 22, 23):
            checkins.add(CheckinRecord(
                user_id="user_1",
                mood_rating=MoodRating.GOOD,
                stress_level=3,
                created_at=datetime(2024, 12, day, 20, 0, tzinfo=timezone.utc),
            ))
        detector = PatternDetector(
            checkins,
            now=lambda: now,
            timezone_lookup=lambda user_id: "America/Los_Angeles",
        )

        pattern = detector.check_streak_at_risk("user_1")

        assert pattern.current_streak == 3
        assert pattern.hours_remaining == 5

    def test_unknown_timezone_falls_back_to_utc(self, checkins):
        for days_ago in (1, 2, 3):
            add(checkins, days_ago)
        detector = PatternDetector(
            checkins, now=lambda: NOW, timezone_lookup=lambda user_id: "Mars/Olympus",
        )

        assert detector.check_streak_at_risk("user_1").hours_remaining == 4


class TestReengagement:
    """Tests for check_reengagement."""

    @pytest.mark.parametrize("elapsed,expected_days", [
        (timedelta(days=3), 3),
        (timedelta(days=5, hours=6), 5),
        (timedelta(days=14, hours=23), 14),
    ])
    def test_inside_band(self, checkins, detector, elapsed, expected_days):
        checkins.add(CheckinRecord(
            user_id="user_1",
            mood_rating=MoodRating.NOT_GOOD,
            stress_level=6,
            created_at=NOW - elapsed,
        ))

        pattern = detector.check_reengagement("user_1")

        assert pattern.days_since_last_checkin == expected_days
        assert pattern.last_mood == "not_good"
        assert pattern.last_checkin_at == NOW - elapsed

    @pytest.mark.parametrize("elapsed", [
        timedelta(days=2, hours=23),
        timedelta(days=15),
        timedelta(days=40),
    ])
    def test_outside_band(self, checkins, detector, elapsed):
        checkins.add(CheckinRecord(
            user_id="user_1",
            mood_rating=MoodRating.OKAY,
            stress_level=5,
            created_at=NOW - elapsed,
        ))

        assert detector.check_reengagement("user_1") is None

    def test_no_checkins(self, detector):
        assert detector.check_reengagement("user_1") is None


class TestRunAllChecks:
    """Tests for running every rule together."""

    def test_multiple_patterns_fire(self, checkins, detector):
        for days_ago in (1, 2, 3):
            add(checkins, days_ago, MoodRating.TERRIBLE, stress=9)

        kinds = {p.kind for p in detector.run_all_checks("user_1")}

        # Streak of three lapsing tonight, and three negative high-stress days
        assert kinds == {
            PatternKind.NEGATIVE_STREAK,
            PatternKind.HIGH_STRESS,
            PatternKind.STREAK_AT_RISK,
        }

    def test_storage_error_isolated_per_rule(self):
        checkins = FailingCheckinRepository()
        checkins.add(CheckinRecord(
            user_id="user_1",
            mood_rating=MoodRating.OKAY,
            stress_level=5,
            created_at=NOW - timedelta(days=4),
        ))
        detector = PatternDetector(checkins, now=lambda: NOW)

        patterns = detector.run_all_checks("user_1")

        assert [p.kind for p in patterns] == [PatternKind.RE_ENGAGEMENT]

    def test_other_users_unaffected(self, checkins, detector):
        for days_ago in (0, 1, 2):
            add(checkins, days_ago, MoodRating.TERRIBLE, user_id="user_2")

        assert detector.run_all_checks("user_1") == []


class TestActiveUsers:
    """Tests for active_user_ids."""

    def test_users_with_active_devices(self, checkins):
        devices = InMemoryDeviceRepository()
        devices.register("user_1", "token_a", DevicePlatform.IOS)
        devices.register("user_2", "token_b", DevicePlatform.ANDROID)
        devices.deactivate("user_2", "token_b")
        detector = PatternDetector(checkins, device_repository=devices)

        assert detector.active_user_ids() == ["user_1"]

    def test_without_device_repository(self, detector):
        assert detector.active_user_ids() == []


class TestSaltConfiguration:
    """A detector built by a scheduler job still hashes user ids."""

    def test_detector_configures_missing_salt(self, checkins, monkeypatch):
        monkeypatch.setattr(pii, "_PII_SALT", None)
        monkeypatch.delenv("PII_HASH_SALT", raising=False)
        for days_ago in range(3):
            add(checkins, days_ago, mood=MoodRating.TERRIBLE)

        patterns = PatternDetector(checkins, now=lambda: NOW).run_all_checks("user_1")

        assert PatternKind.NEGATIVE_STREAK in [p.kind for p in patterns]
