"""
Command-line entry point for sync jobs and maintenance.

Usage:
    python -m scout_api.cli sync-primary --days 1
    python -m scout_api.cli sync-teams
    python -m scout_api.cli sync-players
    python -m scout_api.cli sync-games --days 7
    python -m scout_api.cli sync-llm --mode background --days 3
    python -m scout_api.cli sync-llm-bulk --days 7
    python -m scout_api.cli sync-minutes --season 2025-26
    python -m scout_api.cli dedupe --dry-run
    python -m scout_api.cli mark-active
    python -m scout_api.cli run-scheduler

Sync commands go through the same JobRunner as the scheduler (lock, retries,
Slack alert). A missing provider credential exits with status 2 before any
request is made.
"""
import argparse
import asyncio
import json
import signal
import sys
from typing import Any, Dict, List, Optional

from scout_api.core.config import settings
from scout_api.core.database import init_db, session_scope
from scout_api.core.exceptions import ConfigurationError, JobLockedError
from scout_api.core.logging import configure_logging, get_logger
from scout_api.services.sync.jobs import run_job
from scout_api.services.sync.llm_sync import MODE_BACKGROUND, MODE_SYNC

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_LOCKED = 3

# sub-command -> job name
SYNC_COMMANDS = {
    "sync-primary": "primary_games",
    "sync-teams": "teams",
    "sync-players": "players",
    "sync-games": "games",
    "sync-llm": "llm_schedule",
    "sync-llm-bulk": "llm_bulk",
    "sync-minutes": "minutes",
}


class SchedulerRunner:
    """Runs the automation scheduler in the foreground until SIGINT/SIGTERM."""

    def __init__(self):
        self.scheduler = None
        self.shutdown = asyncio.Event()

    async def start(self):
        from scout_api.core.scheduler import AutomationScheduler

        logger.info("🚀 Starting scheduler runner...")
        self.scheduler = AutomationScheduler()
        await self.scheduler.start()

        logger.info("✅ Scheduler is now running")
        logger.info("Press Ctrl+C to stop")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        await self.shutdown.wait()

        await self.scheduler.stop()
        logger.info("✅ Scheduler runner stopped")

    def _set_shutdown(self):
        logger.info("⏹️  Shutdown signal received")
        self.shutdown.set()


def _print(result: Any) -> None:
    print(json.dumps(result, indent=2, default=str))


def _job_kwargs(args: argparse.Namespace) -> Dict[str, Any]:
    kwargs = {}
    for key in ("days", "mode", "season"):
        value = getattr(args, key, None)
        if value is not None:
            kwargs[key] = value
    return kwargs


def run_sync_command(args: argparse.Namespace) -> int:
    job = SYNC_COMMANDS[args.command]
    try:
        result = asyncio.run(run_job(job, **_job_kwargs(args)))
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_CONFIG
    except JobLockedError as e:
        print(f"⏭️ {e}", file=sys.stderr)
        return EXIT_LOCKED
    except Exception as e:
        print(f"❌ {job} failed: {e}", file=sys.stderr)
        return EXIT_FAILED
    _print(result)
    return EXIT_OK


def run_dedupe(args: argparse.Namespace) -> int:
    from scout_api.services.sync.deduplicator import Deduplicator

    with session_scope() as db:
        _print(Deduplicator(db).run(dry_run=args.dry_run))
    return EXIT_OK


def run_mark_active(args: argparse.Namespace) -> int:
    from scout_api.services.player_service import PlayerService

    with session_scope() as db:
        _print(PlayerService(db).mark_active())
    return EXIT_OK


def run_scheduler(args: argparse.Namespace) -> int:
    asyncio.run(SchedulerRunner().start())
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scout_api.cli",
        description="Sync and maintenance commands for the scouting API",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    primary = sub.add_parser("sync-primary", help="SportsBlaze daily schedule")
    primary.add_argument("--days", type=int, default=0, help="Extra days after today")

    sub.add_parser("sync-teams", help="BallDontLie teams")
    sub.add_parser("sync-players", help="BallDontLie players")

    games = sub.add_parser("sync-games", help="BallDontLie games, yesterday to today+days")
    games.add_argument("--days", type=int, default=7)

    llm = sub.add_parser("sync-llm", help="Per-date LLM schedule lookups")
    llm.add_argument("--days", type=int, default=None, help="Dates starting today")
    llm.add_argument("--mode", choices=(MODE_SYNC, MODE_BACKGROUND), default=MODE_SYNC)

    bulk = sub.add_parser("sync-llm-bulk", help="Multi-day LLM schedule from the saved prompt")
    bulk.add_argument("--days", type=int, default=7)

    minutes = sub.add_parser("sync-minutes", help="SportsBlaze season minutes")
    minutes.add_argument("--season", default=None, help="Season label, e.g. 2025-26")

    dedupe = sub.add_parser("dedupe", help="Merge duplicate teams and remove duplicate players")
    dedupe.add_argument("--dry-run", action="store_true", help="Print the plan without changing anything")

    sub.add_parser("mark-active", help="Recompute is_active from nba_player_id")
    sub.add_parser("run-scheduler", help="Run the automation scheduler in the foreground")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
    init_db()

    if args.command in SYNC_COMMANDS:
        return run_sync_command(args)
    if args.command == "dedupe":
        return run_dedupe(args)
    if args.command == "mark-active":
        return run_mark_active(args)
    return run_scheduler(args)


if __name__ == "__main__":
    sys.exit(main())
