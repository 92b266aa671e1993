"""
Named sync jobs.

Each job opens its own database session per attempt, runs one orchestrator
(or a short sequence of them) and returns a JSON-friendly summary. The
scheduler, the CLI and the admin sync endpoint all start jobs through
``run_job`` so they share the same lock, retry and alert policy.
"""
import asyncio
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from scout_api.core.config import settings
from scout_api.core.database import session_scope
from scout_api.core.logging import get_logger
from scout_api.services.sync import schedule_time
from scout_api.services.sync.balldontlie_sync import BdlGamesSync, BdlPlayersSync, BdlTeamsSync
from scout_api.services.sync.job_runner import JobRunner
from scout_api.services.sync.llm_sync import MODE_BACKGROUND, LlmBulkScheduleSync, LlmScheduleSync
from scout_api.services.sync.minutes_sync import MinutesSync
from scout_api.services.sync.primary_sync import PrimaryGamesSync

logger = get_logger(__name__)


async def sync_primary_games(days: int = 0, **_) -> Dict[str, Any]:
    start = schedule_time.league_today()
    with session_scope() as db:
        stats = await PrimaryGamesSync(db).run(start, start + timedelta(days=days))
        return stats.as_dict()


async def sync_teams(**_) -> Dict[str, Any]:
    with session_scope() as db:
        return (await BdlTeamsSync(db).run()).as_dict()


async def sync_players(**_) -> Dict[str, Any]:
    with session_scope() as db:
        return (await BdlPlayersSync(db).run()).as_dict()


async def sync_games(days: int = 7, **_) -> Dict[str, Any]:
    with session_scope() as db:
        return (await BdlGamesSync(db).run(days=days)).as_dict()


async def sync_llm_schedule(
    days: Optional[int] = None,
    mode: str = MODE_BACKGROUND,
    cancel_event: Optional[asyncio.Event] = None,
    **_,
) -> Dict[str, Any]:
    """Per-date LLM lookups for today and the following days."""
    days = days or settings.LLM_SYNC_DAYS_AHEAD
    today = schedule_time.league_today()
    results = {}
    with session_scope() as db:
        for offset in range(days):
            on_date = today + timedelta(days=offset)
            stats = await LlmScheduleSync(db, cancel_event=cancel_event).run(on_date, mode=mode)
            results[on_date.isoformat()] = stats.as_dict()
    return results


async def sync_llm_bulk(days: int = 7, **_) -> Dict[str, Any]:
    with session_scope() as db:
        return (await LlmBulkScheduleSync(db).run(days=days)).as_dict()


async def sync_minutes(season: Optional[str] = None, **_) -> Dict[str, Any]:
    with session_scope() as db:
        return (await MinutesSync(db).run(season=season)).as_dict()


JOBS: Dict[str, Callable[..., Awaitable[Dict[str, Any]]]] = {
    "primary_games": sync_primary_games,
    "teams": sync_teams,
    "players": sync_players,
    "games": sync_games,
    "llm_schedule": sync_llm_schedule,
    "llm_bulk": sync_llm_bulk,
    "minutes": sync_minutes,
}


async def run_job(name: str, runner: Optional[JobRunner] = None, **kwargs) -> Dict[str, Any]:
    """
    Run a named job through the JobRunner.

    Raises:
        KeyError: Unknown job name
    """
    job = JOBS[name]
    runner = runner or JobRunner()
    context = {"Date": schedule_time.league_today().isoformat()}
    return await runner.run(name, lambda: job(**kwargs), context=context)
