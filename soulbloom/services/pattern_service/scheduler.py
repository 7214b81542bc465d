"""Cron scheduling for the pattern check passes.

Three daily jobs on an APScheduler BackgroundScheduler:
- negative mood / high stress pass (10:00)
- re-engagement pass (11:00)
- streak-at-risk pass (19:00)

Each job catches its own failures so a bad run never stops the next one.
"""
import logging
import signal
import threading
from typing import Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import PatternJobConfig
from .job import JobRunSummary, PatternCheckJob

logger = logging.getLogger(__name__)

JOB_IDS = ("pattern_negative", "pattern_reengagement", "pattern_streak_risk")


class PatternCheckScheduler:
    """Owns the BackgroundScheduler that runs the pattern check job."""

    def __init__(
        self,
        job: PatternCheckJob,
        config: Optional[PatternJobConfig] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.job = job
        self.config = config or job.config
        self.scheduler = scheduler or BackgroundScheduler(timezone=self.config.timezone)
        self._registered = False

    def _runs(self) -> Dict[str, tuple]:
        return {
            "pattern_negative": (self.job.run_negative_patterns, self.config.negative_pattern_hour),
            "pattern_reengagement": (self.job.run_reengagement, self.config.reengagement_hour),
            "pattern_streak_risk": (self.job.run_streak_risk, self.config.streak_risk_hour),
        }

    def register_jobs(self) -> None:
        """Add the three cron jobs to the scheduler (once)."""
        if self._registered:
            return
        for job_id, (run, hour) in self._runs().items():
            self.scheduler.add_job(
                self._guarded(job_id, run),
                CronTrigger(hour=hour, minute=0, timezone=self.config.timezone),
                id=job_id,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        self._registered = True

    def start(self) -> bool:
        """Register and start the jobs if enabled. Returns whether it started."""
        if not self.config.enabled:
            logger.info(
                "PATTERN_SCHEDULER_DISABLED",
                extra={"hint": "set ENABLE_CRON_JOBS=true to enable outside production"}
            )
            return False

        self.register_jobs()
        self.scheduler.start()
        logger.info(
            "PATTERN_SCHEDULER_STARTED",
            extra={
                "timezone": self.config.timezone,
                "negative_pattern_hour": self.config.negative_pattern_hour,
                "reengagement_hour": self.config.reengagement_hour,
                "streak_risk_hour": self.config.streak_risk_hour,
                "max_workers": self.config.max_workers,
            }
        )
        return True

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("PATTERN_SCHEDULER_STOPPED")

    @staticmethod
    def _guarded(job_id: str, run: Callable[[], JobRunSummary]) -> Callable[[], Optional[JobRunSummary]]:
        def runner() -> Optional[JobRunSummary]:
            try:
                return run()
            except Exception:
                logger.exception("PATTERN_SCHEDULED_RUN_FAILED", extra={"job_id": job_id})
                return None
        runner.__name__ = job_id
        return runner


def build_scheduler(config: Optional[PatternJobConfig] = None) -> PatternCheckScheduler:
    """Wire the detector, gate and job from the environment."""
    from soulbloom.services.notification_service import get_gate
    from .detector import get_detector

    config = config or PatternJobConfig.from_env()
    job = PatternCheckJob(get_detector(), get_gate(), config)
    return PatternCheckScheduler(job, config)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    from soulbloom.shared.database import get_connection_manager
    from soulbloom.shared.utils import configure_pii_salt_from_env
    configure_pii_salt_from_env()

    pattern_scheduler = build_scheduler()
    if not pattern_scheduler.start():
        return

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    stop.wait()
    pattern_scheduler.shutdown()
    get_connection_manager().close()


if __name__ == "__main__":
    main()
