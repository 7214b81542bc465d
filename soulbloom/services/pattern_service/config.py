"""Pattern Service configuration."""
import os
from dataclasses import dataclass

# Rule thresholds on the 1-5 mood and 1-10 stress scales
NEGATIVE_MOOD_THRESHOLD = 2
HIGH_STRESS_THRESHOLD = 7
MIN_STREAK_DAYS = 3
WINDOW_DAYS = 7

STREAK_REMINDER_HOUR = 18
REENGAGEMENT_MIN_DAYS = 3
REENGAGEMENT_MAX_DAYS = 14


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class PatternJobConfig:
    """Schedule and worker pool settings for the pattern check job.

    Cron hours are in `timezone`. Jobs only run when enabled explicitly
    or when the environment is production.
    """
    timezone: str = "America/Los_Angeles"
    max_workers: int = 4
    negative_pattern_hour: int = 10
    reengagement_hour: int = 11
    streak_risk_hour: int = 19
    enabled: bool = False

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        for hour in (self.negative_pattern_hour, self.reengagement_hour, self.streak_risk_hour):
            if not 0 <= hour <= 23:
                raise ValueError(f"Cron hour must be 0-23, got {hour}")

    @classmethod
    def from_env(cls) -> "PatternJobConfig":
        """Create config from environment variables.

        Environment variables:
            PATTERN_JOB_TIMEZONE: Timezone the cron hours are expressed in
            PATTERN_JOB_MAX_WORKERS: Bounded pool size for per-user scans
            PATTERN_JOB_NEGATIVE_HOUR / _REENGAGEMENT_HOUR / _STREAK_HOUR
            ENABLE_CRON_JOBS: "true" to run outside production
            ENVIRONMENT: "production" enables the jobs
        """
        return cls(
            timezone=os.getenv("PATTERN_JOB_TIMEZONE", "America/Los_Angeles"),
            max_workers=int(os.getenv("PATTERN_JOB_MAX_WORKERS", "4")),
            negative_pattern_hour=int(os.getenv("PATTERN_JOB_NEGATIVE_HOUR", "10")),
            reengagement_hour=int(os.getenv("PATTERN_JOB_REENGAGEMENT_HOUR", "11")),
            streak_risk_hour=int(os.getenv("PATTERN_JOB_STREAK_HOUR", "19")),
            enabled=(
                os.getenv("ENVIRONMENT", "development") == "production"
                or _env_flag("ENABLE_CRON_JOBS")
            ),
        )
