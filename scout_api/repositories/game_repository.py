"""
Game Repository for game data access.

Usage:
    repo = GameRepository(db)
    game = repo.find_by_external_id("bdl-15908")
    games = repo.find_between(start_utc, end_utc)
"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy.orm import joinedload

from scout_api.models import Game
from scout_api.repositories.base import BaseRepository


class GameRepository(BaseRepository[Game]):
    """Repository for game data access."""

    def __init__(self, db):
        super().__init__(Game, db)

    def find_by_external_id(self, external_id: str, with_trashed: bool = False) -> Optional[Game]:
        return self.where_first(Game.external_id == external_id, with_trashed=with_trashed)

    def find_between(self, start: datetime, end: datetime) -> List[Game]:
        """
        Games with start <= scheduled_at < end (naive UTC bounds).

        Returns:
            Games ordered by scheduled_at, teams eagerly loaded
        """
        return self.query().options(
            joinedload(Game.home_team),
            joinedload(Game.away_team),
        ).filter(
            Game.scheduled_at >= start,
            Game.scheduled_at < end,
        ).order_by(Game.scheduled_at).all()
