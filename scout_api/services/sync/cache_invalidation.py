"""
Cache keys and invalidation.

Every cache key the API reads is built here, and every write path clears the
keys derived from what it touched:
- game syncs clear ``games:date:{d}`` for each touched date, plus
  ``games:today:{d}`` when d is today
- LLM syncs also clear ``nba_schedule_llm:{d}``
- admin player writes flush the ``players:`` namespace

Invalidation is best effort: a missing key is not an error.
"""
import hashlib
from datetime import date
from typing import Iterable, List, Optional, Union

from scout_api.core.cache import BaseCache, get_cache
from scout_api.core.logging import get_logger

logger = get_logger(__name__)

DateLike = Union[date, str]

PLAYERS_NAMESPACE = "players:"


def _day(value: DateLike) -> str:
    return value.isoformat() if isinstance(value, date) else str(value)[:10]


def games_date_key(on_date: DateLike) -> str:
    return f"games:date:{_day(on_date)}"


def games_today_key(on_date: DateLike) -> str:
    return f"games:today:{_day(on_date)}"


def llm_schedule_key(on_date: DateLike) -> str:
    return f"nba_schedule_llm:{_day(on_date)}"


def players_team_key(team_id: int, sort: str, search: Optional[str]) -> str:
    digest = hashlib.md5((search or "").encode("utf-8")).hexdigest()
    return f"{PLAYERS_NAMESPACE}team:{team_id}:{sort}:{digest}"


def keys_for_game_dates(dates: Iterable[DateLike], today: DateLike) -> List[str]:
    today_str = _day(today)
    keys = []
    for day in sorted({_day(d) for d in dates}):
        keys.append(games_date_key(day))
        if day == today_str:
            keys.append(games_today_key(day))
    return keys


def keys_for_llm_dates(dates: Iterable[DateLike]) -> List[str]:
    return [llm_schedule_key(day) for day in sorted({_day(d) for d in dates})]


class CacheInvalidator:
    """Clears derived cache entries after a successful write."""

    def __init__(self, cache: Optional[BaseCache] = None):
        self.cache = cache or get_cache()

    def invalidate(self, keys: Iterable[str]) -> int:
        """Forget each key; returns how many were present."""
        keys = list(keys)
        removed = sum(1 for key in keys if self.cache.forget(key))
        if keys:
            logger.debug(f"Invalidated {removed}/{len(keys)} cache keys", extra={"keys": keys})
        return removed

    def game_dates(self, dates: Iterable[DateLike], today: DateLike) -> int:
        return self.invalidate(keys_for_game_dates(dates, today))

    def llm_dates(self, dates: Iterable[DateLike]) -> int:
        return self.invalidate(keys_for_llm_dates(dates))

    def flush_players(self) -> int:
        removed = self.cache.forget_prefix(PLAYERS_NAMESPACE)
        logger.info(f"Flushed {removed} cached player listings")
        return removed

    def flush_all(self) -> None:
        self.cache.flush()
        logger.info("Flushed response cache")
