"""
Duplicate team and player cleanup.

Teams are grouped by upper(abbreviation). The keeper is the team with the
most (non-deleted) players, lowest id on ties. Losers' players, games and
report team snapshots are moved to the keeper, then the losers are purged.

Players are grouped by (lower(name), team_id), with team ids already mapped
through the team plan. The keeper is the row that has minutes data, then the
one with more minutes_played, then the lowest id. Losers are purged along
with their reports; use the explicit player merge to keep reports.

Soft-deleted rows take part in both passes. A dry run builds the exact same
plan and stops before touching anything; a real run flushes the response
cache after committing.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from scout_api.core.logging import get_logger
from scout_api.models import Game, Player, Report, Team
from scout_api.repositories import PlayerRepository, ReportRepository, TeamRepository
from scout_api.services.sync.cache_invalidation import CacheInvalidator

logger = get_logger(__name__)


@dataclass
class MergeGroup:
    key: str
    keeper_id: int
    loser_ids: List[int]


@dataclass
class DedupPlan:
    teams: List[MergeGroup] = field(default_factory=list)
    players: List[MergeGroup] = field(default_factory=list)

    def as_dict(self) -> Dict:
        return {
            "teams": [g.__dict__ for g in self.teams],
            "players": [g.__dict__ for g in self.players],
            "teams_removed": sum(len(g.loser_ids) for g in self.teams),
            "players_removed": sum(len(g.loser_ids) for g in self.players),
        }


class Deduplicator:
    """
    Finds and removes duplicate teams and players.

    Usage:
        result = Deduplicator(db).run(dry_run=True)
    """

    def __init__(self, db: Session, invalidator: Optional[CacheInvalidator] = None):
        self.db = db
        self.invalidator = invalidator or CacheInvalidator()
        self.teams = TeamRepository(db)
        self.players = PlayerRepository(db)
        self.reports = ReportRepository(db)

    # ========================================================================
    # Planning
    # ========================================================================

    def _player_counts(self) -> Dict[int, int]:
        rows = self.db.query(Player.team_id, func.count(Player.id)).filter(
            Player.deleted_at.is_(None)
        ).group_by(Player.team_id).all()
        return {team_id: count for team_id, count in rows if team_id is not None}

    def plan_teams(self) -> List[MergeGroup]:
        counts = self._player_counts()
        groups: Dict[str, List[Team]] = defaultdict(list)
        for team in self.teams.query(with_trashed=True).all():
            groups[(team.abbreviation or "").upper()].append(team)

        plan = []
        for abbreviation, teams in sorted(groups.items()):
            if len(teams) < 2:
                continue
            ranked = sorted(teams, key=lambda t: (-counts.get(t.id, 0), t.id))
            plan.append(MergeGroup(
                key=abbreviation,
                keeper_id=ranked[0].id,
                loser_ids=[t.id for t in ranked[1:]],
            ))
        return plan

    def plan_players(self, team_plan: List[MergeGroup]) -> List[MergeGroup]:
        team_map = {loser: g.keeper_id for g in team_plan for loser in g.loser_ids}

        groups: Dict[Tuple[str, int], List[Player]] = defaultdict(list)
        for player in self.players.query(with_trashed=True).all():
            team_id = team_map.get(player.team_id, player.team_id)
            groups[(player.name.strip().lower(), team_id)].append(player)

        def rank(p: Player):
            has_minutes = p.minutes_played is not None
            return (0 if has_minutes else 1, -(p.minutes_played or 0), p.id)

        plan = []
        for (name, team_id), players in sorted(groups.items(), key=lambda kv: (kv[0][0], kv[0][1] or 0)):
            if len(players) < 2:
                continue
            ranked = sorted(players, key=rank)
            plan.append(MergeGroup(
                key=f"{name}|{team_id}",
                keeper_id=ranked[0].id,
                loser_ids=[p.id for p in ranked[1:]],
            ))
        return plan

    def plan(self) -> DedupPlan:
        team_plan = self.plan_teams()
        return DedupPlan(teams=team_plan, players=self.plan_players(team_plan))

    # ========================================================================
    # Execution
    # ========================================================================

    def _merge_team(self, group: MergeGroup) -> None:
        for loser_id in group.loser_ids:
            moved = self.players.reassign_team(loser_id, group.keeper_id)
            self.db.execute(update(Game).where(Game.home_team_id == loser_id).values(home_team_id=group.keeper_id))
            self.db.execute(update(Game).where(Game.away_team_id == loser_id).values(away_team_id=group.keeper_id))
            self.db.execute(
                update(Report).where(Report.team_id_at_time == loser_id).values(team_id_at_time=group.keeper_id)
            )
            self.db.flush()
            loser = self.teams.find_by_id(loser_id, with_trashed=True)
            self.teams.purge(loser)
            logger.info(
                f"Merged team {loser_id} into {group.keeper_id} ({group.key}), moved {moved} players"
            )

    def _remove_players(self, group: MergeGroup) -> None:
        for loser_id in group.loser_ids:
            self.reports.purge_for_player(loser_id)
            self.db.flush()
            loser = self.players.find_by_id(loser_id, with_trashed=True)
            self.players.purge(loser)
        logger.info(f"Removed {len(group.loser_ids)} duplicates of player {group.keeper_id} ({group.key})")

    def run(self, dry_run: bool = False) -> Dict:
        """
        Build the plan and, unless dry_run, apply it in one transaction.

        Returns:
            The plan as a dict, plus the dry_run flag
        """
        plan = self.plan()
        result = dict(plan.as_dict(), dry_run=dry_run)

        if dry_run:
            logger.info(
                f"Dedup dry run: {result['teams_removed']} teams and "
                f"{result['players_removed']} players would be removed"
            )
            return result

        try:
            for group in plan.teams:
                self._merge_team(group)
            self.db.flush()
            for group in plan.players:
                self._remove_players(group)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.invalidator.flush_all()
        logger.info(
            f"Dedup complete: removed {result['teams_removed']} teams and "
            f"{result['players_removed']} players"
        )
        return result
