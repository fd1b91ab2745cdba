"""Scheduler service for the periodic recovery sweep."""

from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dispatch_worker.logging import get_logger

logger = get_logger(__name__, component="scheduler")

SWEEP_JOB_ID = "recovery-sweep"


class SchedulerService:
    """
    Wraps APScheduler to run the recovery sweep at a fixed interval.

    Uses BackgroundScheduler so sweeps run on a scheduler thread while the
    main thread runs the channel listener. The startup sweep is run directly
    by the worker, so the first scheduled run is one interval after start.
    """

    def __init__(self, sweep_callable: Callable[[], object], interval_seconds: float):
        """
        Args:
            sweep_callable: Function to call on each scheduled run (e.g., RecoverySweep.run)
            interval_seconds: Interval between runs in seconds
        """
        self.sweep_callable = sweep_callable
        self.interval_seconds = interval_seconds

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": max(1, int(interval_seconds)),
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """Register the sweep job and start the scheduler thread."""
        trigger = IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc)

        next_run = datetime.now(timezone.utc) + timedelta(seconds=self.interval_seconds)
        self.scheduler.add_job(
            func=self.sweep_callable,
            trigger=trigger,
            id=SWEEP_JOB_ID,
            name="Pending notification recovery sweep",
            replace_existing=True,
            next_run_time=next_run,
        )

        self.scheduler.start()

        logger.info(
            f"Recovery sweep scheduled every {self.interval_seconds:g} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat(),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Stop the scheduler.

        Args:
            wait: If True, wait for a running sweep to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def is_running(self) -> bool:
        return self.scheduler.running
