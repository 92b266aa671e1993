"""Season minutes sync from SportsBlaze splits.

Only players with a ``sportsblaze_player_id`` are requested. Total and
average minutes feed the minutes sort of the player listing, so cached
listings are flushed afterwards.
"""
from typing import Optional

from scout_api.core.logging import get_logger
from scout_api.services.sync import schedule_time
from scout_api.services.sync.adapters.sportsblaze_client import SportsBlazeClient
from scout_api.services.sync.identity_resolver import IdentityResolver, is_found
from scout_api.services.sync.orchestrator import SyncOrchestrator
from scout_api.services.sync.payloads import SOURCE_SPORTSBLAZE, SportsBlazeSplitPayload
from scout_api.services.sync.upsert import SKIPPED, SyncStats

logger = get_logger(__name__)


class MinutesSync(SyncOrchestrator):
    source = SOURCE_SPORTSBLAZE
    data_type = "minutes"

    def _make_client(self) -> SportsBlazeClient:
        return SportsBlazeClient()

    async def run(self, season: Optional[str] = None) -> SyncStats:
        season = season or schedule_time.season_label(schedule_time.league_today())
        return await self._tracked(lambda: self._sync(season))

    async def _sync(self, season: str) -> SyncStats:
        stats = SyncStats()
        players = self.engine.players.find_with_sportsblaze_id()
        if not players:
            logger.info("No players with a SportsBlaze id, nothing to sync")
            return stats

        resolver = IdentityResolver(players=players)
        ids = sorted(resolver.players.by_sportsblaze_id)
        for raw in await self.client.get_player_splits(season, ids):
            try:
                split = SportsBlazeSplitPayload.from_api(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed split record: {e}")
                stats.add(SKIPPED)
                continue

            player = resolver.resolve("player", split)
            if not is_found(player):
                stats.add(SKIPPED)
                continue
            stats.add(self.engine.update_minutes(player, split))

        logger.info(f"Minutes for {season}: {stats.updated}/{len(ids)} players updated")
        return stats

    def invalidate(self) -> None:
        self.invalidator.flush_players()
