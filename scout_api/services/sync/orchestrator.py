"""Base sync orchestrator.

Every orchestrator follows the same run shape:

1. Mark its (source, data_type) sync metadata row as in progress
2. Fetch from the provider, map to payloads, resolve and upsert
3. Commit, record metadata counts and metrics
4. Invalidate the cache keys derived from what it touched

Transport and parse failures roll the transaction back, mark the metadata
row as failed and propagate to the caller (usually the JobRunner). Cache
invalidation happens only after a successful commit, so a reader that misses
the cache always sees the new rows.
"""
import time
import uuid
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from sqlalchemy.orm import Session, joinedload

from scout_api.core.logging import get_logger
from scout_api.models import Game, Player, SyncMetadata, Team, utcnow
from scout_api.services.sync import schedule_time
from scout_api.services.sync.cache_invalidation import CacheInvalidator
from scout_api.services.sync.identity_resolver import IdentityResolver
from scout_api.services.sync.upsert import SyncStats, UpsertEngine

logger = get_logger(__name__)


class SyncOrchestrator:
    """
    Shared plumbing for the per-provider sync orchestrators.

    Subclasses set ``source`` and ``data_type`` and implement ``run`` by
    handing their work to ``_tracked``.
    """

    source = "unknown"
    data_type = "unknown"

    def __init__(
        self,
        db: Session,
        client: Optional[Any] = None,
        invalidator: Optional[CacheInvalidator] = None,
    ):
        self.db = db
        self.engine = UpsertEngine(db)
        self._client = client
        self._owns_client = client is None
        self._invalidator = invalidator
        self.touched_dates: Set[str] = set()

    def _make_client(self) -> Any:
        raise NotImplementedError

    @property
    def client(self) -> Any:
        """Provider client; built from settings on first use unless injected."""
        if self._client is None:
            self._client = self._make_client()
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    @property
    def invalidator(self) -> CacheInvalidator:
        if self._invalidator is None:
            self._invalidator = CacheInvalidator()
        return self._invalidator

    # ========================================================================
    # Identity indexes
    # ========================================================================

    def build_resolver(self, with_players: bool = False, with_games: bool = False) -> IdentityResolver:
        """Load live rows once and index them for this run."""
        teams = self.db.query(Team).filter(Team.deleted_at.is_(None)).all()
        players = []
        if with_players:
            players = self.db.query(Player).filter(Player.deleted_at.is_(None)).all()
        games = []
        if with_games:
            games = self.db.query(Game).options(
                joinedload(Game.home_team), joinedload(Game.away_team)
            ).filter(Game.deleted_at.is_(None)).all()
        return IdentityResolver(teams=teams, players=players, games=games)

    # ========================================================================
    # Run bookkeeping
    # ========================================================================

    def _get_or_create_metadata(self) -> SyncMetadata:
        """Get or create the sync metadata row for this orchestrator."""
        metadata = self.db.query(SyncMetadata).filter(
            SyncMetadata.source == self.source,
            SyncMetadata.data_type == self.data_type,
        ).first()

        if not metadata:
            metadata = SyncMetadata(
                id=str(uuid.uuid4()),
                source=self.source,
                data_type=self.data_type,
            )
            self.db.add(metadata)
            self.db.flush()

        return metadata

    def touch(self, on_date) -> None:
        """Remember a league date whose cached listings this run must clear."""
        self.touched_dates.add(on_date.isoformat() if isinstance(on_date, date) else str(on_date)[:10])

    def touch_game(self, game_date, previous_scheduled_at: Optional[datetime] = None) -> None:
        """Touch a game's date and, for a rescheduled game, the date it left."""
        self.touch(game_date)
        if previous_scheduled_at is not None:
            self.touch(schedule_time.league_date(previous_scheduled_at))

    def invalidate(self) -> None:
        """Clear derived cache keys; called after commit. Override to add keys."""
        if self.touched_dates:
            self.invalidator.game_dates(self.touched_dates, schedule_time.league_today())

    async def _tracked(self, work: Callable[[], Awaitable[SyncStats]]) -> SyncStats:
        started = time.monotonic()
        self.touched_dates = set()
        label = f"{self.source}/{self.data_type}"

        # Missing credentials fail here, before the run is recorded
        self.client
        logger.info(f"Starting {label} sync")

        metadata = self._get_or_create_metadata()
        metadata.last_sync_started_at = utcnow()
        metadata.last_sync_status = "in_progress"
        self.db.commit()

        try:
            try:
                stats = await work()
            finally:
                await self.close()
            duration_ms = int((time.monotonic() - started) * 1000)

            metadata.last_sync_completed_at = utcnow()
            metadata.last_sync_status = "success"
            metadata.records_processed = stats.total
            metadata.records_created = stats.created
            metadata.records_updated = stats.updated
            metadata.records_skipped = stats.skipped
            metadata.error_message = None
            metadata.sync_duration_ms = duration_ms
            self.db.commit()
        except Exception as e:
            logger.error(f"{label} sync failed: {e}")
            self.db.rollback()
            metadata = self._get_or_create_metadata()
            metadata.last_sync_status = "failed"
            metadata.error_message = str(e)
            metadata.sync_duration_ms = int((time.monotonic() - started) * 1000)
            self.db.commit()
            raise

        stats.record_metrics(self.source, self.data_type)
        self.invalidate()
        logger.info(
            f"{label} sync complete: {stats.created} created, {stats.updated} updated, "
            f"{stats.skipped} skipped ({duration_ms}ms)",
            extra={"source": self.source, "data_type": self.data_type, "stats": stats.as_dict()},
        )
        return stats


def sync_status(db: Session) -> Dict[str, Dict]:
    """Latest metadata for every (source, data_type) pair."""
    rows = db.query(SyncMetadata).order_by(SyncMetadata.source, SyncMetadata.data_type).all()
    return {
        f"{row.source}/{row.data_type}": {
            "status": row.last_sync_status,
            "started_at": schedule_time.to_iso_utc(row.last_sync_started_at),
            "completed_at": schedule_time.to_iso_utc(row.last_sync_completed_at),
            "processed": row.records_processed,
            "created": row.records_created,
            "updated": row.records_updated,
            "skipped": row.records_skipped,
            "duration_ms": row.sync_duration_ms,
            "error": row.error_message,
        }
        for row in rows
    }
