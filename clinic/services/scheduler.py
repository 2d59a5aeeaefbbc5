"""
Periodic appointment reminder job.

A single :class:`NotificationScheduler` runs per process, started from the
WSGI/ASGI entrypoints via :func:`start_default_scheduler`.  Concurrent
schedulers in other workers are harmless: reminder dispatch claims each
appointment before sending.
"""
import logging
import threading
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from django.conf import settings
from django.db import close_old_connections

from clinic.services.notifications import dispatch_due_reminders

logger = logging.getLogger(__name__)

JOB_ID = 'appointment_reminders'


def run_reminder_job() -> int:
    """One scan; never raises so the scheduler keeps its job."""
    close_old_connections()
    try:
        return dispatch_due_reminders()
    except Exception:
        logger.exception("reminder job failed")
        return 0
    finally:
        close_old_connections()


class NotificationScheduler:
    """Background scheduler dispatching appointment reminders on an interval."""

    def __init__(self, interval_seconds: Optional[int] = None, enabled: Optional[bool] = None):
        self.interval_seconds = interval_seconds or settings.NOTIFICATION_INTERVAL_SECONDS
        self.enabled = settings.NOTIFICATION_SCHEDULER_ENABLED if enabled is None else enabled
        self._scheduler: Optional[BackgroundScheduler] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> bool:
        """Start the job; returns False when disabled or already running."""
        if not self.enabled:
            logger.info("notification scheduler disabled, skipping start")
            return False
        with self._lock:
            if self.running:
                return False
            scheduler = BackgroundScheduler(timezone=settings.TIME_ZONE, daemon=True)
            scheduler.add_job(
                run_reminder_job,
                IntervalTrigger(seconds=self.interval_seconds),
                id=JOB_ID,
                name='Appointment reminders',
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            scheduler.start()
            self._scheduler = scheduler
        logger.info("notification scheduler started (every %ss, lead %s min)",
                    self.interval_seconds, settings.REMINDER_LEAD_MINUTES)
        return True

    def stop(self, wait: bool = True) -> None:
        with self._lock:
            if self._scheduler is not None and self._scheduler.running:
                self._scheduler.shutdown(wait=wait)
                logger.info("notification scheduler stopped")
            self._scheduler = None


_default: Optional[NotificationScheduler] = None
_default_lock = threading.Lock()


def get_default_scheduler() -> NotificationScheduler:
    global _default
    with _default_lock:
        if _default is None:
            _default = NotificationScheduler()
        return _default


def start_default_scheduler() -> NotificationScheduler:
    scheduler = get_default_scheduler()
    scheduler.start()
    return scheduler
