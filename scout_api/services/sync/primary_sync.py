"""SportsBlaze daily schedule sync.

For each day in the window: fetch ``schedule.json``, map each game to a
SportsBlazeGamePayload, resolve both teams by abbreviation and upsert the
game under the SportsBlaze id. Games whose teams cannot be resolved are
skipped.
"""
from datetime import date, timedelta
from typing import Optional

from scout_api.core.logging import get_logger
from scout_api.services.sync import schedule_time
from scout_api.services.sync.adapters.sportsblaze_client import SportsBlazeClient
from scout_api.services.sync.identity_resolver import IdentityResolver, is_found
from scout_api.services.sync.orchestrator import SyncOrchestrator
from scout_api.services.sync.payloads import SOURCE_SPORTSBLAZE, SportsBlazeGamePayload
from scout_api.services.sync.upsert import SKIPPED, SyncStats

logger = get_logger(__name__)


class PrimaryGamesSync(SyncOrchestrator):
    """Daily games from the primary provider."""

    source = SOURCE_SPORTSBLAZE
    data_type = "games"

    def _make_client(self) -> SportsBlazeClient:
        return SportsBlazeClient()

    async def run(self, start: Optional[date] = None, end: Optional[date] = None) -> SyncStats:
        """
        Sync one day, or every day from start to end inclusive.

        Args:
            start: First league date (defaults to today)
            end: Last league date (defaults to start)
        """
        start = start or schedule_time.league_today()
        end = end or start
        return await self._tracked(lambda: self._sync(start, end))

    async def _sync(self, start: date, end: date) -> SyncStats:
        stats = SyncStats()
        resolver = self.build_resolver(with_games=True)

        day = start
        while day <= end:
            day_str = day.isoformat()
            for raw in await self.client.get_schedule(day_str):
                stats.add(self._sync_game(raw, day_str, resolver))
            self.touch(day)
            day += timedelta(days=1)

        return stats

    def _sync_game(self, raw: dict, day_str: str, resolver: IdentityResolver) -> str:
        try:
            payload = SportsBlazeGamePayload.from_api(raw, day_str)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed SportsBlaze game on {day_str}: {e}")
            return SKIPPED

        home = resolver.resolve("team", payload.home_abbreviation)
        away = resolver.resolve("team", payload.away_abbreviation)
        if not is_found(home) or not is_found(away):
            logger.warning(
                f"Skipping SportsBlaze game {payload.external_id}: unknown team "
                f"{payload.away_abbreviation} @ {payload.home_abbreviation}"
            )
            return SKIPPED

        start_year, _ = schedule_time.season_for(schedule_time.parse_date(payload.game_date))
        attributes = {
            "home_team_id": home.id,
            "away_team_id": away.id,
            "scheduled_at": payload.scheduled_at,
            "status": payload.status,
            "home_team_score": payload.home_team_score,
            "away_team_score": payload.away_team_score,
            "season": start_year,
        }
        outcome, _, previous_scheduled_at = self.engine.upsert_game(
            payload.external_id,
            attributes,
            resolver=resolver,
            natural_key=(payload.game_date, payload.home_abbreviation, payload.away_abbreviation),
        )
        self.touch_game(payload.game_date, previous_scheduled_at)
        return outcome
