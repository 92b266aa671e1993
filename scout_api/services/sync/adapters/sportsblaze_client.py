"""SportsBlaze client for daily schedules and season minutes splits.

Endpoints:
- /games/{date}/schedule.json            games scheduled on a date
- /splits/players/{season}/regularseason.json?id=a,b,c   per-player splits

Authentication is the ``key`` query parameter.
"""
from typing import Any, Dict, List, Optional, Sequence

import httpx

from scout_api.core.config import settings
from scout_api.core.logging import get_logger
from scout_api.services.sync.adapters.base_client import BaseProviderClient

logger = get_logger(__name__)

# Player ids per splits request; keeps the query string well under URL limits
SPLITS_BATCH_SIZE = 50


class SportsBlazeClient(BaseProviderClient):
    """Client for the SportsBlaze NBA API."""

    provider = "sportsblaze"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url or settings.SPORTSBLAZE_BASE_URL,
            timeout=timeout or settings.SPORTSBLAZE_TIMEOUT,
            transport=transport,
        )
        self.api_key = api_key or settings.require_api_key("SPORTSBLAZE_API_KEY")

    async def get_schedule(self, game_date: str) -> List[Dict[str, Any]]:
        """Raw games for a date (YYYY-MM-DD)."""
        data = await self.get_json(
            f"/games/{game_date}/schedule.json",
            params={"key": self.api_key},
        )
        games = (data or {}).get("games") or []
        logger.info(f"Fetched {len(games)} games from SportsBlaze for {game_date}")
        return games

    async def get_player_splits(self, season: str, player_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Regular-season splits for the given players.

        Args:
            season: Season label, e.g. "2025-26"
            player_ids: SportsBlaze player ids

        Returns:
            Raw player split records
        """
        players: List[Dict[str, Any]] = []
        ids = list(player_ids)
        for start in range(0, len(ids), SPLITS_BATCH_SIZE):
            batch = ids[start:start + SPLITS_BATCH_SIZE]
            data = await self.get_json(
                f"/splits/players/{season}/regularseason.json",
                params={"key": self.api_key, "id": ",".join(batch)},
            )
            players.extend((data or {}).get("players") or [])
        logger.info(f"Fetched splits for {len(players)}/{len(ids)} players ({season})")
        return players
