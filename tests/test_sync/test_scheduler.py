"""
Tests for the in-process sync schedule.

Test Strategy:
- run_job is replaced; these tests only cover wiring and error handling
- The scheduler is started for real on the test event loop, then stopped
"""
from apscheduler.triggers.interval import IntervalTrigger

from scout_api.core import scheduler as automation
from scout_api.core.exceptions import JobLockedError, PollCancelledError, ProviderError
from scout_api.core.scheduler import SCHEDULED_SYNCS, AutomationScheduler, ScheduledSync
from scout_api.services.sync.llm_sync import MODE_BACKGROUND


class RecordingJob:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def __call__(self, name, **kwargs):
        self.calls.append((name, kwargs))
        if self.error:
            raise self.error
        return {"created": 1}


def _sync(name="minutes"):
    return ScheduledSync(job=name, title=name.title(), trigger=lambda: IntervalTrigger(hours=1))


class TestScheduledSyncs:

    def test_registered_jobs(self):
        """Should schedule the LLM lookup and the minutes sync."""
        assert [sync.job for sync in SCHEDULED_SYNCS] == ["llm_schedule", "minutes"]

    def test_llm_job_polls_in_background_and_watches_shutdown(self):
        """Should pass background mode and the owner's shutdown event."""
        owner = AutomationScheduler()
        llm = SCHEDULED_SYNCS[0]

        kwargs = llm.kwargs(owner)

        assert kwargs["mode"] == MODE_BACKGROUND
        assert kwargs["cancel_event"] is owner.shutdown_event


class TestFire:

    async def test_passes_kwargs_to_run_job(self, monkeypatch):
        job = RecordingJob()
        monkeypatch.setattr(automation, "run_job", job)
        owner = AutomationScheduler(syncs=[])

        await owner.fire(SCHEDULED_SYNCS[0])

        name, kwargs = job.calls[0]
        assert name == "llm_schedule"
        assert kwargs["cancel_event"] is owner.shutdown_event

    async def test_swallows_locked_cancelled_and_failed_runs(self, monkeypatch):
        """Should never let a job error escape into APScheduler."""
        owner = AutomationScheduler(syncs=[])
        for error in (JobLockedError("minutes"), PollCancelledError("stop"), ProviderError("sportsblaze", "HTTP 500")):
            monkeypatch.setattr(automation, "run_job", RecordingJob(error))
            await owner.fire(_sync())


class TestLifecycle:

    async def test_start_and_stop(self):
        owner = AutomationScheduler(syncs=[_sync("minutes"), _sync("teams")])

        await owner.start()
        try:
            assert owner.running is True
            assert {job.id for job in owner.scheduler.get_jobs()} == {"minutes", "teams"}
        finally:
            await owner.stop()

        assert owner.running is False
        assert owner.shutdown_event.is_set()

    async def test_start_twice_is_noop(self):
        owner = AutomationScheduler(syncs=[_sync()])
        await owner.start()
        first = owner.scheduler
        try:
            await owner.start()
            assert owner.scheduler is first
        finally:
            await owner.stop()

    async def test_global_instance(self, monkeypatch):
        monkeypatch.setattr(automation, "SCHEDULED_SYNCS", [_sync()])
        monkeypatch.setattr(automation, "_scheduler", None)

        started = await automation.start_scheduler()
        try:
            assert automation.get_scheduler() is started
        finally:
            await automation.stop_scheduler()

        assert automation.get_scheduler() is None
