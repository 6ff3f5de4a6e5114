"""
Periodic sync scheduler using APScheduler.

Runs the sync orchestrator every 5 minutes, aligned to wall-clock
boundaries (:00, :05, :10, ...), plus once immediately on start.

Features:
- Single run lock: manual triggers never overlap a timer run
- Prevents job pile-up (max_instances=1, coalesce)
- Tick failures are logged and surfaced through status()
- Injectable clock for deterministic tests
"""
import asyncio
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Callable
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import (
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    JobEvent,
)

from replenish.config import SchedulerConfig, config
from replenish.exceptions import SyncAlreadyRunningError
from replenish.models import SyncRunSummary
from replenish.observability import get_logger
from replenish.sync_service import SyncOrchestrator

logger = get_logger(__name__)

JOB_ID = "sync_all"


def next_boundary(now: datetime, interval_minutes: int = 5) -> datetime:
    """Next wall-clock boundary of interval_minutes strictly after now."""
    floored = now.replace(second=0, microsecond=0) - timedelta(minutes=now.minute % interval_minutes)
    return floored + timedelta(minutes=interval_minutes)


class SyncScheduler:
    """
    Timer-driven and manual sync runs over one orchestrator.

    Usage:
        scheduler = SyncScheduler(orchestrator)
        await scheduler.start()

        # Later...
        scheduler.stop()
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        settings: Optional[SchedulerConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.orchestrator = orchestrator
        self.settings = settings or config.scheduler
        self.timezone = ZoneInfo(self.settings.timezone)
        self.clock = clock or (lambda: datetime.now(self.timezone))

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._run_lock = asyncio.Lock()
        self._started = False

        self.last_run_time: Optional[datetime] = None
        self.last_results: Optional[SyncRunSummary] = None
        self.last_error: Optional[str] = None
        self.run_count = 0
        self.error_count = 0
        self.skipped_count = 0

    async def start(self) -> None:
        """Arm the recurring timer, then run once immediately."""
        if self._started:
            logger.warning("Sync scheduler already started")
            return

        self._scheduler = AsyncIOScheduler(timezone=self.timezone)
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)
        self._scheduler.add_listener(self._on_job_max_instances, EVENT_JOB_MAX_INSTANCES)
        self._scheduler.add_job(
            self._tick,
            trigger=CronTrigger(minute=f"*/{self.settings.interval_minutes}", timezone=self.timezone),
            id=JOB_ID,
            name="Upstream Sync",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._started = True
        logger.info(
            f"Sync scheduler started ({self.settings.cron_expression}, {self.settings.timezone})"
        )

        if self.settings.run_on_start:
            await self._tick(trigger="startup")

    def stop(self) -> None:
        """Disarm the timer. An in-flight run is left to finish."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=False)
            logger.info("Sync scheduler stopped")
        self._scheduler = None
        self._started = False

    async def trigger_manual_run(self) -> SyncRunSummary:
        """
        Run a sync now, outside the cadence.

        Raises:
            SyncAlreadyRunningError: a run is already in progress
        """
        if self._run_lock.locked():
            raise SyncAlreadyRunningError()

        async with self._run_lock:
            logger.info("Manual sync triggered")
            return await self._execute()

    @property
    def is_running(self) -> bool:
        return self._started and self._scheduler is not None

    @property
    def is_sync_in_progress(self) -> bool:
        return self._run_lock.locked()

    def next_run_time(self) -> Optional[datetime]:
        if not self.is_running:
            return None
        return next_boundary(self.clock(), self.settings.interval_minutes)

    def status(self) -> Dict[str, Any]:
        next_run = self.next_run_time()
        return {
            "isRunning": self.is_running,
            "isSyncInProgress": self.is_sync_in_progress,
            "lastRunTime": self.last_run_time.isoformat() if self.last_run_time else None,
            "nextRunTime": next_run.isoformat() if next_run else None,
            "schedule": self.settings.cron_expression,
            "timezone": self.settings.timezone,
            "lastResults": self.last_results.to_dict() if self.last_results else None,
            "lastError": self.last_error,
            "runCount": self.run_count,
            "errorCount": self.error_count,
            "skippedCount": self.skipped_count,
        }

    # ═══════════════════════════════════════════════════════════════════════════
    # RUNS
    # ═══════════════════════════════════════════════════════════════════════════

    async def _tick(self, trigger: str = "cron") -> None:
        """Timer entry point. Never raises."""
        if self._run_lock.locked():
            self.skipped_count += 1
            logger.info(f"Sync already in progress, skipping {trigger} run")
            return

        async with self._run_lock:
            try:
                await self._execute()
            except Exception as e:
                logger.exception(f"Scheduled sync ({trigger}) failed: {e}")

    async def _execute(self) -> SyncRunSummary:
        """Run the orchestrator and record the outcome. Caller holds the run lock."""
        self.last_run_time = self.clock()
        self.run_count += 1
        try:
            summary = await self.orchestrator.run_all()
        except Exception as e:
            self.error_count += 1
            self.last_error = str(e) or type(e).__name__
            raise

        self.last_results = summary
        self.last_error = None
        if not summary.success:
            self.error_count += 1
        return summary

    # ═══════════════════════════════════════════════════════════════════════════
    # APSCHEDULER EVENTS
    # ═══════════════════════════════════════════════════════════════════════════

    def _on_job_missed(self, event: JobEvent) -> None:
        logger.warning(f"Job {event.job_id} missed scheduled execution", extra={"job_id": event.job_id})

    def _on_job_max_instances(self, event: JobEvent) -> None:
        self.skipped_count += 1
        logger.info(f"Job {event.job_id} still running, tick skipped", extra={"job_id": event.job_id})
