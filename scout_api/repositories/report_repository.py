"""
Report Repository for scouting report data access.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional, List

from sqlalchemy import update
from sqlalchemy.orm import Query, joinedload

from scout_api.models import Report, User, utcnow
from scout_api.repositories.base import BaseRepository


class ReportRepository(BaseRepository[Report]):
    """Repository for scouting report data access."""

    def __init__(self, db):
        super().__init__(Report, db)

    def find_current(self, user_id: int, player_id: int, game_id: Optional[int]) -> Optional[Report]:
        """The report for a (user, player, game) tuple; game None means 'no game'."""
        criteria = [Report.user_id == user_id, Report.player_id == player_id]
        if game_id is None:
            criteria.append(Report.game_id.is_(None))
        else:
            criteria.append(Report.game_id == game_id)
        return self.where_first(*criteria)

    def latest_for_player(self, player_id: int, limit: int = 10) -> List[Report]:
        return self.query().options(joinedload(Report.user)).filter(
            Report.player_id == player_id
        ).order_by(Report.created_at.desc(), Report.id.desc()).limit(limit).all()

    def visible_to(
        self,
        user: User,
        player_id: Optional[int] = None,
        game_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Query:
        """
        Reports the user may list.

        Scouts see their own, org admins see their organization's,
        super admins see everything.
        """
        query = self.query().options(
            joinedload(Report.player), joinedload(Report.user)
        )
        if user.is_super_admin():
            pass
        elif user.is_org_admin() and user.organization_id is not None:
            query = query.join(User, Report.user_id == User.id).filter(
                User.organization_id == user.organization_id
            )
        else:
            query = query.filter(Report.user_id == user.id)

        if player_id is not None:
            query = query.filter(Report.player_id == player_id)
        if game_id is not None:
            query = query.filter(Report.game_id == game_id)
        if start_date is not None:
            query = query.filter(Report.created_at >= datetime.combine(start_date, time.min))
        if end_date is not None:
            query = query.filter(
                Report.created_at < datetime.combine(end_date, time.min) + timedelta(days=1)
            )
        return query.order_by(Report.created_at.desc(), Report.id.desc())

    def move_to_player(self, from_player_id: int, to_player_id: int) -> int:
        """Reassign every report (including soft-deleted) to another player."""
        result = self.db.execute(
            update(Report)
            .where(Report.player_id == from_player_id)
            .values(player_id=to_player_id, updated_at=utcnow())
        )
        return result.rowcount or 0

    def purge_for_player(self, player_id: int) -> int:
        """Hard-delete a player's reports (used only when the player is purged)."""
        reports = self.where(Report.player_id == player_id, with_trashed=True)
        for report in reports:
            self.purge(report)
        return len(reports)
