"""
Background scheduling of the daily cookie scan and retention cleanup.

Uses APScheduler with a thread pool executor. Each job runs at most one
instance at a time and missed runs coalesce into one.
"""

import logging
import time
from typing import Any, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from core.exceptions import ScanInProgress
from models.settings import ScannerSettings

logger = logging.getLogger(__name__)

SCAN_JOB_ID = "daily_cookie_scan"
RETENTION_JOB_ID = "consent_retention_cleanup"

JOB_MAX_INSTANCES = 1
JOB_COALESCE = True
JOB_MISFIRE_GRACE_TIME = 3600


def job_listener(event: Any) -> None:
    """
    Listen to job events and log results.

    Args:
        event: APScheduler job event (success or error).
    """
    if event.exception:
        logger.error(f"Job {event.job_id} failed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully")


def _parse_time(value: str):
    hour, minute = value.split(":")
    return int(hour), int(minute)


class ConsentLoggerScheduler:
    """Owns the BackgroundScheduler and its two daily jobs."""

    def __init__(
        self,
        scan_service,
        settings_store,
        retention_service=None,
        retention_config=None,
        max_workers: int = 2,
    ):
        self.scan_service = scan_service
        self.settings_store = settings_store
        self.retention_service = retention_service
        self.retention_config = retention_config

        executors = {"default": ThreadPoolExecutor(max_workers=max_workers)}
        self.scheduler = BackgroundScheduler(executors=executors)
        self.scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    def run_scheduled_scan(self) -> None:
        try:
            self.scan_service.run_scan(trigger="scheduled")
        except ScanInProgress:
            logger.warning("Scheduled cookie scan skipped: another scan is running")

    def run_retention_cleanup(self) -> None:
        self.retention_service.purge_expired()

    def schedule_scan(self, settings: Optional[ScannerSettings] = None) -> None:
        """
        Add, move or remove the daily scan job to match scanner settings.
        """
        settings = settings or self.settings_store.get()

        if not settings.scan_enabled:
            if self.scheduler.get_job(SCAN_JOB_ID):
                self.scheduler.remove_job(SCAN_JOB_ID)
            logger.info("Daily cookie scan disabled")
            return

        self.scheduler.add_job(
            self.run_scheduled_scan,
            CronTrigger(hour=settings.hour, minute=settings.minute),
            id=SCAN_JOB_ID,
            replace_existing=True,
            max_instances=JOB_MAX_INSTANCES,
            coalesce=JOB_COALESCE,
            misfire_grace_time=JOB_MISFIRE_GRACE_TIME,
        )
        logger.info(f"Daily cookie scan scheduled at {settings.scan_time}")

    def schedule_retention(self) -> None:
        if self.retention_service is None or self.retention_config is None:
            return
        if not self.retention_config.enabled:
            logger.info("Retention cleanup disabled")
            return

        hour, minute = _parse_time(self.retention_config.cleanup_time)
        self.scheduler.add_job(
            self.run_retention_cleanup,
            CronTrigger(hour=hour, minute=minute),
            id=RETENTION_JOB_ID,
            replace_existing=True,
            max_instances=JOB_MAX_INSTANCES,
            coalesce=JOB_COALESCE,
            misfire_grace_time=JOB_MISFIRE_GRACE_TIME,
        )
        logger.info(f"Retention cleanup scheduled at {self.retention_config.cleanup_time}")

    def reschedule(self, settings: ScannerSettings) -> None:
        """Apply changed scanner settings to the running scheduler."""
        self.schedule_scan(settings)

    def start(self) -> None:
        self.schedule_scan()
        self.schedule_retention()
        self.scheduler.start()
        logger.info("Scheduler started")

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")

    def run_forever(self, poll_seconds: int = 60) -> None:
        """Start and block until interrupted."""
        self.start()
        try:
            while True:
                time.sleep(poll_seconds)
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler interrupted")
        finally:
            self.shutdown()
