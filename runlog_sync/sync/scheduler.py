"""Periodic background upload to Google Drive."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..errors import RunLogSyncError
from .protocols import DriveClientProtocol

__all__ = ["AutoSyncScheduler", "SyncOutcome"]

logger = logging.getLogger(__name__)

JOB_ID = "drive_auto_sync"


@dataclass
class SyncOutcome:
    """Result of one scheduled upload."""

    success: bool
    error: Optional[str] = None
    skipped: bool = False


class AutoSyncScheduler:
    """Arms a repeating upload job while the user has auto-sync on.

    A failing tick is reported through the callback and never disarms
    the job. State is process-lifetime only.
    """

    def __init__(
        self,
        client: DriveClientProtocol,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.client = client
        self.scheduler = scheduler or BackgroundScheduler()
        self._on_result: Optional[Callable[[SyncOutcome], None]] = None
        self._interval_minutes: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self.scheduler.running and self.scheduler.get_job(JOB_ID) is not None

    @property
    def interval_minutes(self) -> Optional[float]:
        return self._interval_minutes if self.is_running else None

    def start(
        self,
        interval_minutes: float = 5,
        on_result: Optional[Callable[[SyncOutcome], None]] = None,
    ) -> None:
        """Arm the upload job, replacing any previous one."""
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")

        self.stop()
        self._on_result = on_result
        self._interval_minutes = interval_minutes

        self.scheduler.add_job(
            self.run_now,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info(f"Auto-sync started (interval: {interval_minutes} min)")

    def stop(self) -> None:
        """Disarm the upload job."""
        if self.scheduler.get_job(JOB_ID) is not None:
            self.scheduler.remove_job(JOB_ID)
            logger.info("Auto-sync stopped")
        self._interval_minutes = None

    def shutdown(self) -> None:
        """Stop the job and the scheduler thread."""
        self.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def run_now(self) -> SyncOutcome:
        """Run one tick: upload, report, never raise."""
        try:
            uploaded = self.client.upload(wait=False)
            outcome = SyncOutcome(success=True, skipped=not uploaded)
        except RunLogSyncError as e:
            logger.warning(f"Auto-sync failed: {e}")
            outcome = SyncOutcome(success=False, error=str(e))
        except Exception as e:
            logger.exception(f"Auto-sync error: {e}")
            outcome = SyncOutcome(success=False, error=str(e))

        if self._on_result:
            try:
                self._on_result(outcome)
            except Exception as e:
                logger.warning(f"Auto-sync result callback failed: {e}")
        return outcome
