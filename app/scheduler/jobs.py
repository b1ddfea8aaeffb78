"""MSYNC — Scheduler Jobs.

Two APScheduler cron jobs in the source time zone:
  - hourly at :MM   → sync today's row (today is always re-writable)
  - daily at HH:00  → re-check yesterday once its numbers are final; rows that
                      already hold data on write-once sheets are left alone

SyncScheduler owns the scheduler handle and its start/stop transitions; the
FastAPI lifespan owns the SyncScheduler.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import settings
from app.core.dates import now_local, today_key, yesterday_key
from app.core.logging import get_logger
from app.sync.service import SyncService

logger = get_logger("scheduler")

HOURLY_JOB_ID = "hourly_today_sync"
DAILY_JOB_ID = "daily_yesterday_check"


class SyncScheduler:
    """Start/stop/status for the recurring sync triggers."""

    def __init__(
        self,
        service_provider: Callable[[], SyncService],
        hourly_minute: Optional[int] = None,
        daily_check_hour: Optional[int] = None,
        timezone: Optional[str] = None,
    ):
        self._service_provider = service_provider
        self.hourly_minute = settings.hourly_minute if hourly_minute is None else hourly_minute
        self.daily_check_hour = (
            settings.daily_check_hour if daily_check_hour is None else daily_check_hour
        )
        self.timezone = timezone or settings.source_timezone
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def description(self) -> str:
        return (
            f"Today's data every hour at :{self.hourly_minute:02d}, "
            f"yesterday re-checked daily at {self.daily_check_hour:02d}:00 ({self.timezone})"
        )

    # ── Jobs ──

    async def hourly_today_job(self) -> None:
        """Sync today's date key."""
        date_key = today_key()
        logger.info(f"Scheduled sync starting for {date_key}", extra={"date_key": date_key})
        try:
            outcome = await self._service_provider().sync_date(date_key)
            logger.info(
                f"Scheduled sync for {date_key}: {outcome.status.value}",
                extra={"date_key": date_key, "outcome": outcome.status.value},
            )
        except Exception as e:
            logger.error(f"Scheduled sync for {date_key} failed: {e}", extra={"date_key": date_key})

    async def daily_check_job(self) -> None:
        """Routine re-sync of yesterday; never overwrites filled write-once rows."""
        date_key = yesterday_key()
        logger.info(f"Daily check starting for {date_key}", extra={"date_key": date_key})
        try:
            outcome = await self._service_provider().sync_date(date_key)
            logger.info(
                f"Daily check for {date_key}: {outcome.status.value}",
                extra={"date_key": date_key, "outcome": outcome.status.value},
            )
        except Exception as e:
            logger.error(f"Daily check for {date_key} failed: {e}", extra={"date_key": date_key})

    # ── Lifecycle ──

    def start(self) -> bool:
        """Configure and start the scheduler. False if it was already running."""
        if self.running:
            return False

        scheduler = AsyncIOScheduler(timezone=ZoneInfo(self.timezone))
        scheduler.add_job(
            self.hourly_today_job,
            "cron",
            minute=self.hourly_minute,
            id=HOURLY_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=600,
        )
        scheduler.add_job(
            self.daily_check_job,
            "cron",
            hour=self.daily_check_hour,
            minute=0,
            id=DAILY_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(f"Scheduler started. {self.description}")
        return True

    def stop(self) -> bool:
        """Shutdown the scheduler. False if it was not running."""
        if not self.running:
            self._scheduler = None
            return False
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler stopped")
        return True

    def status(self) -> Dict[str, Any]:
        jobs: List[Dict[str, Any]] = []
        if self.running:
            for job in self._scheduler.get_jobs():
                next_run: Optional[datetime] = job.next_run_time
                jobs.append(
                    {"id": job.id, "next_run_time": next_run.isoformat() if next_run else None}
                )
        return {
            "is_running": self.running,
            "schedule": self.description,
            "jobs": jobs,
            "current_time": now_local(ZoneInfo(self.timezone)).isoformat(),
        }
