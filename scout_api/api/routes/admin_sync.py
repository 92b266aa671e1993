"""Admin routes for data synchronization and cleanup.

Provides endpoints for:
- Triggering any named sync job (same lock, retry and alert policy as the scheduler)
- Sync health per (source, data_type)
- Team and player deduplication, with a dry-run preview
"""
from typing import Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from scout_api.core.auth import require_admin
from scout_api.core.database import get_db
from scout_api.core.exceptions import ConfigurationError, JobLockedError
from scout_api.core.logging import get_logger
from scout_api.models import User
from scout_api.services.sync.deduplicator import Deduplicator
from scout_api.services.sync.jobs import JOBS, run_job
from scout_api.services.sync.llm_sync import MODE_BACKGROUND, MODE_SYNC
from scout_api.services.sync.orchestrator import sync_status

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin-sync"])


async def _run_in_background(name: str, **kwargs) -> None:
    try:
        result = await run_job(name, **kwargs)
        logger.info(f"Background job {name} finished: {result}")
    except Exception as e:
        # The JobRunner has already retried and alerted
        logger.error(f"Background job {name} failed: {e}")


@router.get("/sync/status")
async def get_sync_status(
    db: Session = Depends(get_db),
    admin: Optional[User] = Depends(require_admin),
) -> Dict:
    """Last run of every sync: status, timings and record counts."""
    return {"jobs": sorted(JOBS), "syncs": sync_status(db)}


@router.post("/sync/{job}")
async def trigger_sync(
    job: str,
    background_tasks: BackgroundTasks,
    days: Optional[int] = Query(None, ge=0, le=30, description="Days ahead (job-specific default)"),
    mode: Optional[str] = Query(None, pattern=f"^({MODE_SYNC}|{MODE_BACKGROUND})$"),
    season: Optional[str] = Query(None, max_length=7, description="Season label, e.g. 2025-26"),
    background: bool = Query(False, description="Return immediately and run the job afterwards"),
    admin: Optional[User] = Depends(require_admin),
) -> Dict:
    """
    Manually trigger a named sync job.

    Jobs: primary_games, teams, players, games, llm_schedule, llm_bulk, minutes
    """
    if job not in JOBS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown job '{job}'")

    kwargs = {key: value for key, value in {"days": days, "mode": mode, "season": season}.items() if value is not None}

    if background:
        background_tasks.add_task(_run_in_background, job, **kwargs)
        return {"job": job, "status": "accepted"}

    try:
        result = await run_job(job, **kwargs)
    except JobLockedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return {"job": job, "status": "success", "result": result}


@router.post("/deduplicate")
async def deduplicate(
    dry_run: bool = Query(True, description="Report the plan without changing anything"),
    db: Session = Depends(get_db),
    admin: Optional[User] = Depends(require_admin),
) -> Dict:
    """Merge duplicate teams and remove duplicate players."""
    return Deduplicator(db).run(dry_run=dry_run)
