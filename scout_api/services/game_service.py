"""
Game schedule queries for the mobile client.

Both endpoints return ``{"games": [...], "date": "YYYY-MM-DD"}`` where a
day is a league-time calendar day. Responses are cached for
CACHE_TTL_GAMES and dropped by the syncs that touch the day.
"""
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from scout_api.core.cache import BaseCache, get_cache
from scout_api.core.config import settings
from scout_api.repositories import GameRepository
from scout_api.services.serializers import format_game
from scout_api.services.sync import schedule_time
from scout_api.services.sync.cache_invalidation import games_date_key, games_today_key


class GameService:

    def __init__(self, db: Session, cache: Optional[BaseCache] = None):
        self.db = db
        self.cache = cache or get_cache()
        self.games = GameRepository(db)

    def _load(self, on_date: date) -> Dict[str, Any]:
        start, end = schedule_time.day_bounds_utc(on_date)
        return {
            "games": [format_game(game) for game in self.games.find_between(start, end)],
            "date": on_date.isoformat(),
        }

    def today(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or schedule_time.league_today()
        return self.cache.remember(
            games_today_key(today), settings.CACHE_TTL_GAMES, lambda: self._load(today)
        )

    def by_date(self, on_date: date) -> Dict[str, Any]:
        return self.cache.remember(
            games_date_key(on_date), settings.CACHE_TTL_GAMES, lambda: self._load(on_date)
        )
