"""
Background reset scheduler using APScheduler.

A ResetScheduler owns its own BackgroundScheduler and runs the monthly
balance reset due check on a fixed interval. State lives on the instance,
so several schedulers can coexist (tests create their own).
"""

import atexit
import logging
import threading
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from balancecycle.utils.reset_schedule import ResetConfig
from balancecycle.utils.timezone import get_timezone

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = timedelta(hours=1)


class ResetScheduler:
    """Hourly due check for the monthly balance reset."""

    JOB_ID = 'balance_reset_check'

    def __init__(self, app, interval: timedelta = DEFAULT_CHECK_INTERVAL):
        """
        Args:
            app: Flask application instance (jobs run in its app context)
            interval: Time between due checks
        """
        self.app = app
        self.interval = interval
        self._scheduler: Optional[BackgroundScheduler] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def _config(self) -> ResetConfig:
        # Read on every call; the config is never cached on the scheduler
        return ResetConfig.from_value(self.app.config.get('BALANCE_RESET_DAY'))

    def run_check(self):
        """Run one due check/reset cycle within the app context."""
        from balancecycle.jobs.balance_reset import check_and_reset

        with self.app.app_context():
            return check_and_reset()

    def start(self) -> bool:
        """
        Start the periodic due check.

        Runs one check immediately (covers a process that was down on the
        reset day), then checks on every interval.

        Returns:
            True if started, False if already running or auto-reset is disabled
        """
        with self._lock:
            if self._scheduler is not None:
                logger.info("Reset scheduler already initialized, skipping")
                return False

            config = self._config()
            if not config.enabled:
                logger.info("Auto-reset disabled (BALANCE_RESET_DAY=0 or not set)")
                return False

            logger.info(f"Initializing reset scheduler with reset day: {config.reset_day}")

            self.run_check()

            # Same timezone the due check uses for local_now()
            with self.app.app_context():
                tz = get_timezone()

            scheduler = BackgroundScheduler(timezone=tz)
            scheduler.add_job(
                self.run_check,
                trigger=IntervalTrigger(seconds=int(self.interval.total_seconds()), timezone=tz),
                id=self.JOB_ID,
                name='Check for monthly balance reset',
                replace_existing=True,
                max_instances=3,
            )
            scheduler.start()
            self._scheduler = scheduler

            logger.info(f"Reset scheduler started - checking every {self.interval} for reset day")
            return True

    def stop(self) -> bool:
        """
        Stop the periodic due check. An in-flight check is not cancelled.

        Returns:
            True if stopped, False if it was not running
        """
        with self._lock:
            if self._scheduler is None:
                return False

            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None

            logger.info("Reset scheduler stopped")
            return True

    def next_run_time(self):
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(self.JOB_ID)
        return job.next_run_time if job else None

    def status(self) -> dict:
        """Get scheduler status (enabled, reset day, running, next run)."""
        config = self._config()
        next_run = self.next_run_time()
        return {
            'enabled': config.enabled,
            'reset_day': config.reset_day,
            'running': self.running,
            'next_run': next_run.isoformat() if next_run else None,
        }


def init_scheduler(app) -> ResetScheduler:
    """
    Create the app's reset scheduler and start it unless disabled.

    Args:
        app: Flask application instance

    Returns:
        ResetScheduler: stored in app.extensions['reset_scheduler']
    """
    reset_scheduler = ResetScheduler(app)
    app.extensions['reset_scheduler'] = reset_scheduler

    if not app.config.get('SCHEDULER_ENABLED', True):
        logger.info("Background scheduler disabled via configuration")
        return reset_scheduler

    # Don't run scheduler in testing mode
    if app.config.get('TESTING', False):
        logger.info("Background scheduler disabled in testing mode")
        return reset_scheduler

    if reset_scheduler.start():
        atexit.register(reset_scheduler.stop)

    return reset_scheduler


def get_scheduler(app=None) -> Optional[ResetScheduler]:
    """Get the reset scheduler of the given (or current) app."""
    if app is None:
        from flask import current_app
        app = current_app
    return app.extensions.get('reset_scheduler')
