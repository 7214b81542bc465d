"""Tests for pattern job config, notification copy and cron scheduling."""
from datetime import date
from unittest.mock import MagicMock

import pytest
from apscheduler.triggers.cron import CronTrigger

from soulbloom.shared.models import (
    HighStressPattern,
    NegativeStreakPattern,
    NotificationType,
    ReEngagementPattern,
    StreakAtRiskPattern,
)
from soulbloom.services.pattern_service.config import PatternJobConfig
from soulbloom.services.pattern_service.messages import notification_for
from soulbloom.services.pattern_service.scheduler import JOB_IDS, PatternCheckScheduler


def cron_hour(trigger: CronTrigger) -> str:
    return next(str(f) for f in trigger.fields if f.name == "hour")


@pytest.fixture
def job():
    job = MagicMock()
    job.config = PatternJobConfig(enabled=True)
    return job


class TestPatternJobConfig:
    """Tests for PatternJobConfig."""

    def test_defaults(self):
        config = PatternJobConfig()

        assert config.timezone == "America/Los_Angeles"
        assert config.max_workers == 4
        assert config.enabled is False

    def test_from_env_production_enables(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.delenv("ENABLE_CRON_JOBS", raising=False)

        assert PatternJobConfig.from_env().enabled is True

    def test_from_env_explicit_flag(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setenv("ENABLE_CRON_JOBS", "true")
        monkeypatch.setenv("PATTERN_JOB_MAX_WORKERS", "8")
        monkeypatch.setenv("PATTERN_JOB_TIMEZONE", "UTC")

        config = PatternJobConfig.from_env()

        assert config.enabled is True
        assert config.max_workers == 8
        assert config.timezone == "UTC"

    def test_from_env_disabled_in_development(self, monkeypatch):
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.delenv("ENABLE_CRON_JOBS", raising=False)

        assert PatternJobConfig.from_env().enabled is False

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            PatternJobConfig(max_workers=0)
        with pytest.raises(ValueError):
            PatternJobConfig(streak_risk_hour=24)


class TestNotificationFor:
    """Tests for pattern notification copy."""

    def test_negative_streak(self):
        message = notification_for(NegativeStreakPattern(
            days=4, avg_mood=1.5, start=date(2024, 12, 21), end=date(2024, 12, 24),
        ))

        assert message.notification_type == NotificationType.PATTERN_INTERVENTION
        assert message.data == {"action": "open_breathing", "pattern": "negative_streak", "days": "4"}

    def test_high_stress(self):
        message = notification_for(HighStressPattern(days=3, avg_stress=8.333333))

        assert message.data["action"] == "open_mindfulness"
        assert message.data["avg_stress"] == "8.33"

    def test_streak_title_includes_count(self):
        message = notification_for(StreakAtRiskPattern(current_streak=12, hours_remaining=3))

        assert message.title == "Your 12-day streak! 🔥"
        assert message.notification_type == NotificationType.STREAK_REMINDERS

    def test_reengagement(self):
        message = notification_for(ReEngagementPattern(days_since_last_checkin=5, last_mood="okay"))

        assert message.notification_type == NotificationType.RE_ENGAGEMENT
        assert message.data["days_since_last_checkin"] == "5"

    def test_unknown_pattern(self):
        with pytest.raises(TypeError):
            notification_for(object())


class TestPatternCheckScheduler:
    """Tests for cron registration and guarded runs."""

    def test_registers_three_cron_jobs(self, job):
        backend = MagicMock()
        scheduler = PatternCheckScheduler(job, scheduler=backend)

        scheduler.register_jobs()
        scheduler.register_jobs()

        assert backend.add_job.call_count == 3
        hours = {
            call.kwargs["id"]: cron_hour(call.args[1])
            for call in backend.add_job.call_args_list
        }
        assert hours == {
            "pattern_negative": "10",
            "pattern_reengagement": "11",
            "pattern_streak_risk": "19",
        }
        assert set(hours) == set(JOB_IDS)

    def test_start_when_enabled(self, job):
        backend = MagicMock()
        scheduler = PatternCheckScheduler(job, scheduler=backend)

        assert scheduler.start() is True
        backend.start.assert_called_once()

    def test_start_when_disabled(self, job):
        backend = MagicMock()
        scheduler = PatternCheckScheduler(job, PatternJobConfig(enabled=False), scheduler=backend)

        assert scheduler.start() is False
        backend.add_job.assert_not_called()
        backend.start.assert_not_called()

    def test_failed_run_does_not_raise(self, job):
        backend = MagicMock()
        job.run_streak_risk.side_effect = RuntimeError("boom")
        scheduler = PatternCheckScheduler(job, scheduler=backend)
        scheduler.register_jobs()
        runners = {c.kwargs["id"]: c.args[0] for c in backend.add_job.call_args_list}

        assert runners["pattern_streak_risk"]() is None
        job.run_reengagement.return_value = "summary"
        assert runners["pattern_reengagement"]() == "summary"

    def test_shutdown(self, job):
        backend = MagicMock()
        backend.running = True
        scheduler = PatternCheckScheduler(job, scheduler=backend)

        scheduler.shutdown()

        backend.shutdown.assert_called_once_with(wait=True)
