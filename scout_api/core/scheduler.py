"""
In-process schedule for the sync jobs.

Two jobs keep the database fresh between deploys:

``llm_schedule``
    Every ``LLM_SYNC_INTERVAL_HOURS``; today plus ``LLM_SYNC_DAYS_AHEAD``
    days, polled in background mode so a slow search never blocks a tick.
``minutes``
    Daily at ``MINUTES_SYNC_HOUR`` league time; season minutes feed the
    ``minutes`` sort of the player listing.

Triggers only decide *when*. Locking, retries and the failure alert belong
to the JobRunner behind ``run_job``, shared with the CLI and admin endpoint.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from scout_api.core.config import settings
from scout_api.core.exceptions import JobLockedError, PollCancelledError
from scout_api.core.logging import get_logger
from scout_api.services.sync.jobs import run_job
from scout_api.services.sync.llm_sync import MODE_BACKGROUND

logger = get_logger(__name__)


@dataclass
class ScheduledSync:
    job: str
    title: str
    trigger: Callable[[], BaseTrigger]
    kwargs: Callable[["AutomationScheduler"], Dict[str, Any]] = lambda _: {}
    options: Dict[str, Any] = field(default_factory=dict)


SCHEDULED_SYNCS: List[ScheduledSync] = [
    ScheduledSync(
        job="llm_schedule",
        title="LLM Schedule Sync",
        trigger=lambda: IntervalTrigger(hours=settings.LLM_SYNC_INTERVAL_HOURS),
        kwargs=lambda owner: {
            "days": settings.LLM_SYNC_DAYS_AHEAD,
            "mode": MODE_BACKGROUND,
            "cancel_event": owner.shutdown_event,
        },
    ),
    ScheduledSync(
        job="minutes",
        title="Player Minutes Sync",
        trigger=lambda: CronTrigger(
            hour=settings.MINUTES_SYNC_HOUR, minute=0, timezone=settings.SCHEDULER_TIMEZONE
        ),
        # A missed 5AM run is still worth doing an hour late
        options={"misfire_grace_time": 3600},
    ),
]


class AutomationScheduler:
    """Owns the APScheduler instance and the shutdown signal for LLM polls."""

    def __init__(self, syncs: Optional[List[ScheduledSync]] = None):
        self.syncs = SCHEDULED_SYNCS if syncs is None else syncs
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self.shutdown_event = asyncio.Event()

    async def start(self):
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.shutdown_event.clear()
        self.scheduler = AsyncIOScheduler(
            timezone=settings.SCHEDULER_TIMEZONE,
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 300},
        )
        for sync in self.syncs:
            self.scheduler.add_job(
                self.fire,
                trigger=sync.trigger(),
                args=[sync],
                id=sync.job,
                name=sync.title,
                **sync.options,
            )

        self.scheduler.start()
        self.running = True
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            logger.info(
                f"📅 {job.name} scheduled",
                extra={"job": job.id, "next_run": next_run.isoformat() if next_run else None},
            )
        logger.info("✅ Scheduler started with %d jobs", len(self.syncs))

    async def stop(self):
        if not self.running:
            return
        # In-flight polls watch this event and give up at their next check
        self.shutdown_event.set()
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("✅ Scheduler stopped")

    async def fire(self, sync: ScheduledSync) -> None:
        """One trigger tick. Never raises; APScheduler would only log it again."""
        try:
            result = await run_job(sync.job, **sync.kwargs(self))
        except JobLockedError:
            logger.info(f"⏭️ {sync.job} skipped, already running on another node")
        except PollCancelledError:
            logger.info(f"⏹️ {sync.job} cancelled by shutdown")
        except Exception as e:
            # The JobRunner has retried and alerted already
            logger.error(f"❌ {sync.job} failed: {e}")
        else:
            logger.info(f"✅ {sync.job}: {result}")


_scheduler: Optional[AutomationScheduler] = None


async def start_scheduler() -> AutomationScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = AutomationScheduler()
        await _scheduler.start()
    return _scheduler


async def stop_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[AutomationScheduler]:
    return _scheduler
