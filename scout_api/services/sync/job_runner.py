"""
Single-flight job execution with retries and a critical alert.

Every scheduled or admin-triggered sync goes through JobRunner.run:

1. Take the fleet-wide lock ``job:{name}`` from the cache (SET NX EX on
   Redis). If another node holds it the run is refused with JobLockedError.
2. Run the job, retrying with a fixed backoff (3 tries, 120 s apart by
   default). Configuration errors, lock conflicts and cancellation are not
   retried.
3. When the last attempt fails, send a Slack alert with the job name, the
   last error and the caller's context, then re-raise.
4. Release the lock in ``finally``; the lock TTL covers a crashed worker.

Each attempt is cut off after ``JOB_LOCK_TIMEOUT`` seconds. The lock TTL
spans one attempt plus the backoff after it and is renewed before every
attempt, so it cannot lapse while the job is still running. A run that
finds its lock gone stops with JobLockedError rather than race the new owner.
"""
import asyncio
import math
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from scout_api.core.cache import BaseCache, get_cache
from scout_api.core.config import settings
from scout_api.core.exceptions import ConfigurationError, JobLockedError, JobTimeoutError, PollCancelledError
from scout_api.core.logging import get_logger, job_correlation
from scout_api.core.metrics import sync_job_retries_total, sync_job_runs_total
from scout_api.services.alert_service import SlackAlertService

logger = get_logger(__name__)

T = TypeVar("T")

NON_RETRYABLE = (ConfigurationError, JobLockedError, PollCancelledError)

# Room for the failure alert and the release after the last attempt
LOCK_GRACE_SECONDS = 30


class JobRunner:
    """
    Runs named jobs under a lock with bounded retries.

    Usage:
        runner = JobRunner()
        result = await runner.run("llm_schedule", lambda: sync_llm(), context={"Date": today})
    """

    def __init__(
        self,
        cache: Optional[BaseCache] = None,
        alerts: Optional[SlackAlertService] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        attempt_timeout: Optional[float] = None,
    ):
        self.cache = cache or get_cache()
        self.alerts = alerts or SlackAlertService()
        self.max_attempts = max_attempts or settings.JOB_MAX_ATTEMPTS
        self.backoff_seconds = settings.JOB_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self.attempt_timeout = attempt_timeout or settings.JOB_LOCK_TIMEOUT

    @property
    def lock_ttl(self) -> int:
        return math.ceil(self.attempt_timeout + self.backoff_seconds) + LOCK_GRACE_SECONDS

    def _log_retry(self, name: str) -> Callable[[RetryCallState], None]:
        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            sync_job_retries_total.labels(job=name).inc()
            logger.warning(
                f"Job {name} attempt {state.attempt_number}/{self.max_attempts} failed: {error}; "
                f"retrying in {self.backoff_seconds}s"
            )
        return before_sleep

    async def _bounded(self, name: str, job: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(job(), self.attempt_timeout)
        except asyncio.TimeoutError:
            raise JobTimeoutError(f"Job {name} attempt exceeded {self.attempt_timeout}s") from None

    async def _attempt(self, name: str, job: Callable[[], Awaitable[T]], lock_name: str, token: str) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.backoff_seconds),
            retry=retry_if_not_exception_type(NON_RETRYABLE),
            before_sleep=self._log_retry(name),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if not self.cache.extend_lock(lock_name, token, self.lock_ttl):
                    raise JobLockedError(f"Job {name} lost its lock")
                result = await self._bounded(name, job)
        return result

    async def run(
        self,
        name: str,
        job: Callable[[], Awaitable[T]],
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Run job under the named lock.

        Raises:
            JobLockedError: Another run of this job holds the lock
            Exception: Whatever the last attempt raised
        """
        lock_name = f"job:{name}"
        token = self.cache.acquire_lock(lock_name, self.lock_ttl)
        if token is None:
            sync_job_runs_total.labels(job=name, status="locked").inc()
            logger.warning(f"Job {name} is already running elsewhere, skipping")
            raise JobLockedError(f"Job {name} is already running")

        with job_correlation(name):
            try:
                logger.info(f"Job {name} started")
                result = await self._attempt(name, job, lock_name, token)
            except ConfigurationError as e:
                sync_job_runs_total.labels(job=name, status="failed").inc()
                logger.error(f"❌ Job {name} not run: {e}")
                raise
            except PollCancelledError:
                sync_job_runs_total.labels(job=name, status="cancelled").inc()
                logger.warning(f"Job {name} cancelled")
                raise
            except Exception as e:
                sync_job_runs_total.labels(job=name, status="failed").inc()
                logger.critical(
                    f"❌ Job {name} failed after {self.max_attempts} attempts, manual intervention required: {e}"
                )
                await self.alerts.sync_failure(name, str(e), context)
                raise
            finally:
                self.cache.release_lock(lock_name, token)

            sync_job_runs_total.labels(job=name, status="success").inc()
            logger.info(f"✅ Job {name} completed")
            return result
