"""
Player Repository for player data access.

Usage:
    repo = PlayerRepository(db)
    player = repo.find_by_balldontlie_id(237)
    roster = repo.active_query(team_id=team.id, search="tatum").all()
"""
from typing import Optional, List

from sqlalchemy import update

from scout_api.models import Player, utcnow
from scout_api.repositories.base import BaseRepository


class PlayerRepository(BaseRepository[Player]):
    """Repository for player data access."""

    def __init__(self, db):
        super().__init__(Player, db)

    # ========================================================================
    # External ID Lookups
    # ========================================================================

    def find_by_balldontlie_id(self, balldontlie_id: int, with_trashed: bool = False) -> Optional[Player]:
        return self.where_first(Player.balldontlie_id == balldontlie_id, with_trashed=with_trashed)

    def find_with_sportsblaze_id(self) -> List[Player]:
        """Players that can be matched against SportsBlaze splits."""
        return self.where(Player.sportsblaze_player_id.isnot(None))

    # ========================================================================
    # Listing
    # ========================================================================

    def active_query(self, team_id: Optional[int] = None, search: Optional[str] = None):
        query = self.query().filter(Player.is_active.is_(True))
        if team_id is not None:
            query = query.filter(Player.team_id == team_id)
        if search:
            query = query.filter(Player.name.ilike(f"%{search}%"))
        return query

    # ========================================================================
    # Bulk Updates
    # ========================================================================

    def mark_active_players(self) -> int:
        """
        Recompute is_active for every player: true iff nba_player_id is set.

        Returns:
            Number of players now active
        """
        now = utcnow()
        self.db.execute(update(Player).values(is_active=False, updated_at=now))
        result = self.db.execute(
            update(Player)
            .where(Player.nba_player_id.isnot(None))
            .values(is_active=True, updated_at=now)
        )
        return result.rowcount or 0

    def reassign_team(self, from_team_id: int, to_team_id: int) -> int:
        """Move every player (including soft-deleted) from one team to another."""
        result = self.db.execute(
            update(Player)
            .where(Player.team_id == from_team_id)
            .values(team_id=to_team_id, updated_at=utcnow())
        )
        return result.rowcount or 0
