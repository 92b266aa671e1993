"""
Prometheus metrics for the scouting API.

Metrics exposed:
- Sync record outcomes per source and entity
- Sync job runs, retries and final failures
- External provider request failures
- Critical alert deliveries
- Scheduler status gauge

HTTP request metrics come from prometheus-fastapi-instrumentator in main.py.
"""
from prometheus_client import Counter, Gauge

# Sync Metrics
sync_records_total = Counter(
    "sync_records_total",
    "Records handled by sync orchestrators",
    ["source", "entity", "outcome"]  # outcome: created, updated, skipped
)

sync_job_runs_total = Counter(
    "sync_job_runs_total",
    "Sync job executions by final status",
    ["job", "status"]  # status: success, failed, locked
)

sync_job_retries_total = Counter(
    "sync_job_retries_total",
    "Sync job attempts that were retried",
    ["job"]
)

# External API Metrics
provider_requests_failure_total = Counter(
    "provider_requests_failure_total",
    "Failed requests to external providers",
    ["provider", "error_type"]
)

# Alerts
alerts_sent_total = Counter(
    "alerts_sent_total",
    "Critical alerts delivered to Slack",
    ["status"]  # status: sent, failed, skipped
)

# Scheduler Metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the automation scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "scheduler_jobs_total",
    "Total number of scheduled jobs"
)


def record_sync_outcome(source: str, entity: str, outcome: str, amount: int = 1):
    """Record upsert outcomes for a sync run."""
    if amount:
        sync_records_total.labels(source=source, entity=entity, outcome=outcome).inc(amount)


def record_provider_failure(provider: str, error_type: str = "unknown"):
    """Record a failed provider request."""
    provider_requests_failure_total.labels(provider=provider, error_type=error_type).inc()


def update_scheduler_metrics():
    """
    Update scheduler metrics.

    Call after the scheduler starts or stops.
    """
    from scout_api.core.scheduler import get_scheduler

    scheduler = get_scheduler()
    if scheduler and scheduler.running:
        scheduler_running.set(1)
        if scheduler.scheduler:
            scheduler_jobs_total.set(len(scheduler.scheduler.get_jobs()))
    else:
        scheduler_running.set(0)
        scheduler_jobs_total.set(0)
