"""BallDontLie bulk syncs: teams, players and games.

The client walks every page of the list endpoints, sleeping between requests
to stay under the provider's rate limit, so these runs are slow and are
meant for the CLI or an admin trigger rather than the request path.
"""
from datetime import date, timedelta
from typing import Optional

from scout_api.core.logging import get_logger
from scout_api.services.sync import schedule_time
from scout_api.services.sync.adapters.balldontlie_client import BallDontLieClient
from scout_api.services.sync.orchestrator import SyncOrchestrator
from scout_api.services.sync.payloads import (
    SOURCE_BALLDONTLIE,
    BdlGamePayload,
    BdlPlayerPayload,
    BdlTeamPayload,
)
from scout_api.services.sync.upsert import SKIPPED, SyncStats

logger = get_logger(__name__)

# Malformed provider records are skipped, never fatal
_MAPPING_ERRORS = (KeyError, TypeError, ValueError)


class _BallDontLieSync(SyncOrchestrator):
    source = SOURCE_BALLDONTLIE

    def _make_client(self) -> BallDontLieClient:
        return BallDontLieClient()


class BdlTeamsSync(_BallDontLieSync):
    """All teams; matched by BallDontLie id, then abbreviation."""

    data_type = "teams"

    async def run(self) -> SyncStats:
        return await self._tracked(self._sync)

    async def _sync(self) -> SyncStats:
        stats = SyncStats()
        resolver = self.build_resolver()
        async for raw in self.client.teams():
            try:
                payload = BdlTeamPayload.from_api(raw)
            except _MAPPING_ERRORS as e:
                logger.warning(f"Skipping malformed BallDontLie team: {e}")
                stats.add(SKIPPED)
                continue
            outcome, _ = self.engine.upsert_team(payload, resolver)
            stats.add(outcome)
        return stats

    def invalidate(self) -> None:
        self.invalidator.flush_players()


class BdlPlayersSync(_BallDontLieSync):
    """All players; players of teams we do not know are skipped."""

    data_type = "players"

    async def run(self) -> SyncStats:
        return await self._tracked(self._sync)

    async def _sync(self) -> SyncStats:
        stats = SyncStats()
        resolver = self.build_resolver(with_players=True)
        async for raw in self.client.players():
            try:
                payload = BdlPlayerPayload.from_api(raw)
            except _MAPPING_ERRORS as e:
                logger.warning(f"Skipping malformed BallDontLie player: {e}")
                stats.add(SKIPPED)
                continue
            outcome, _ = self.engine.upsert_player(payload, resolver)
            stats.add(outcome)
        return stats

    def invalidate(self) -> None:
        self.invalidator.flush_players()


class BdlGamesSync(_BallDontLieSync):
    """Games from yesterday through ``days`` days ahead."""

    data_type = "games"

    async def run(self, days: int = 7, today: Optional[date] = None) -> SyncStats:
        today = today or schedule_time.league_today()
        start = today - timedelta(days=1)
        end = today + timedelta(days=days)
        return await self._tracked(lambda: self._sync(start, end))

    async def _sync(self, start: date, end: date) -> SyncStats:
        stats = SyncStats()
        resolver = self.build_resolver(with_games=True)
        teams = resolver.teams.by_balldontlie_id

        async for raw in self.client.games(start, end):
            try:
                payload = BdlGamePayload.from_api(raw)
            except _MAPPING_ERRORS as e:
                logger.warning(f"Skipping malformed BallDontLie game: {e}")
                stats.add(SKIPPED)
                continue

            home = teams.get(payload.home_team_balldontlie_id)
            away = teams.get(payload.away_team_balldontlie_id)
            if home is None or away is None:
                logger.warning(f"Skipping BallDontLie game {payload.balldontlie_id}: unknown team")
                stats.add(SKIPPED)
                continue

            attributes = {
                "balldontlie_id": payload.balldontlie_id,
                "home_team_id": home.id,
                "away_team_id": away.id,
                "scheduled_at": payload.scheduled_at,
                "status": payload.status,
                "home_team_score": payload.home_team_score,
                "away_team_score": payload.away_team_score,
                "period": payload.period,
                "time": payload.time,
                "season": payload.season,
                "postseason": payload.postseason,
                "extra_attributes": payload.extra_attributes,
            }
            outcome, _, previous_scheduled_at = self.engine.upsert_game(
                payload.external_id,
                attributes,
                resolver=resolver,
                natural_key=(payload.game_date, home.abbreviation, away.abbreviation),
            )
            stats.add(outcome)
            self.touch_game(payload.game_date, previous_scheduled_at)

        return stats
