"""
Team Repository for team data access.

Usage:
    repo = TeamRepository(db)
    team = repo.find_by_balldontlie_id(2)
    celtics = repo.find_by_abbreviation("bos")
"""
from typing import Optional, List

from sqlalchemy import func

from scout_api.models import Team
from scout_api.repositories.base import BaseRepository


class TeamRepository(BaseRepository[Team]):
    """Repository for team data access."""

    def __init__(self, db):
        super().__init__(Team, db)

    def find_by_balldontlie_id(self, balldontlie_id: int, with_trashed: bool = False) -> Optional[Team]:
        return self.where_first(Team.balldontlie_id == balldontlie_id, with_trashed=with_trashed)

    def find_by_abbreviation(self, abbreviation: str, with_trashed: bool = False) -> List[Team]:
        """All teams with the abbreviation (case-insensitive), lowest id first."""
        return self.query(with_trashed).filter(
            func.upper(Team.abbreviation) == abbreviation.upper()
        ).order_by(Team.id).all()

    def find_by_id_or_abbreviation(self, identifier: str) -> Optional[Team]:
        """Resolve a route/query parameter that may be a numeric id or an abbreviation."""
        if str(identifier).isdigit():
            team = self.find_by_id(int(identifier))
            if team:
                return team
        matches = self.find_by_abbreviation(str(identifier))
        return matches[0] if matches else None
