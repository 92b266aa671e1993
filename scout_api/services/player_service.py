"""
Player listing, detail and admin maintenance.

Listing rules:
- Only active players are listed.
- ``team_id`` may be a numeric id or an abbreviation. Team-scoped listings
  are cached for CACHE_TTL_PLAYERS under ``players:team:{id}:{sort}:{md5(search)}``;
  unscoped listings are paginated and not cached.
- ``sort=jersey`` orders by numeric jersey. ``sort=minutes`` ranks players
  by total minutes and by average minutes separately, orders by the mean of
  the two ranks (jersey breaks ties) and appends players missing either
  stat in jersey order. With no stats at all it falls back to jersey order.

Every admin write (create, update, delete, merge, mark-active) flushes the
response cache.
"""
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from scout_api.core.cache import BaseCache, get_cache
from scout_api.core.config import settings
from scout_api.core.exceptions import NotFoundError, ValidationFailed
from scout_api.core.logging import get_logger
from scout_api.models import Player
from scout_api.repositories import PlayerRepository, ReportRepository, TeamRepository
from scout_api.services.serializers import serialize_player, serialize_report, serialize_user_brief
from scout_api.services.sync.cache_invalidation import CacheInvalidator, players_team_key

logger = get_logger(__name__)

SORT_JERSEY = "jersey"
SORT_MINUTES = "minutes"

LATEST_REPORTS_LIMIT = 10


def jersey_number(player: Player) -> int:
    """Numeric jersey for ordering; non-numeric or missing jerseys sort as 0."""
    try:
        return int(player.jersey)
    except (TypeError, ValueError):
        return 0


def sort_by_jersey(players: List[Player]) -> List[Player]:
    return sorted(players, key=lambda p: (jersey_number(p), p.id))


def rank_by_minutes(players: List[Player]) -> List[Player]:
    """Order players by the mean of their total-minutes and average-minutes ranks."""
    with_stats = [p for p in players if p.minutes_played is not None and p.average_minutes_played is not None]
    without_stats = [p for p in players if p.minutes_played is None or p.average_minutes_played is None]
    if not with_stats:
        return sort_by_jersey(players)

    by_total = sorted(with_stats, key=lambda p: (-p.minutes_played, p.id))
    by_average = sorted(with_stats, key=lambda p: (-p.average_minutes_played, p.id))
    total_rank = {p.id: idx + 1 for idx, p in enumerate(by_total)}
    average_rank = {p.id: idx + 1 for idx, p in enumerate(by_average)}

    ranked = sorted(
        with_stats,
        key=lambda p: ((total_rank[p.id] + average_rank[p.id]) / 2, jersey_number(p), p.id),
    )
    return ranked + sort_by_jersey(without_stats)


class PlayerService:
    """
    Player queries and admin writes.

    Usage:
        service = PlayerService(db)
        players = service.list_players(team_id="BOS", sort="minutes")
    """

    def __init__(self, db: Session, cache: Optional[BaseCache] = None):
        self.db = db
        self.cache = cache or get_cache()
        self.players = PlayerRepository(db)
        self.teams = TeamRepository(db)
        self.reports = ReportRepository(db)

    # ========================================================================
    # Queries
    # ========================================================================

    def _ordered(self, team_id: Optional[int], search: Optional[str], sort: str) -> List[Player]:
        players = self.players.active_query(team_id=team_id, search=search).options(
            joinedload(Player.team)
        ).all()
        if sort == SORT_MINUTES:
            return rank_by_minutes(players)
        return sort_by_jersey(players)

    def list_players(
        self,
        team_id: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = SORT_JERSEY,
        page: int = 1,
        per_page: int = 20,
    ) -> Any:
        """
        Returns:
            A plain list for team-scoped requests, otherwise a page dict
            {data, current_page, per_page, total, last_page}
        """
        if team_id:
            team = self.teams.find_by_id_or_abbreviation(team_id)
            if team is None:
                return []
            key = players_team_key(team.id, sort, search)
            return self.cache.remember(
                key,
                settings.CACHE_TTL_PLAYERS,
                lambda: [serialize_player(p) for p in self._ordered(team.id, search, sort)],
            )

        players = self._ordered(None, search, sort)
        total = len(players)
        offset = (page - 1) * per_page
        return {
            "data": [serialize_player(p) for p in players[offset:offset + per_page]],
            "current_page": page,
            "per_page": per_page,
            "total": total,
            "last_page": max(1, math.ceil(total / per_page)),
        }

    def get_player(self, player_id: int) -> Player:
        player = self.players.find_by_id(player_id)
        if player is None:
            raise NotFoundError(f"Player {player_id} not found")
        return player

    def show(self, player_id: int) -> Dict[str, Any]:
        """Player with team and the latest reports (author id and name only)."""
        player = self.get_player(player_id)
        data = serialize_player(player)
        reports = []
        for report in self.reports.latest_for_player(player.id, limit=LATEST_REPORTS_LIMIT):
            item = serialize_report(report, include_relations=False)
            item["user"] = serialize_user_brief(report.user)
            reports.append(item)
        data["reports"] = reports
        return data

    # ========================================================================
    # Admin writes
    # ========================================================================

    def _flush_cache(self) -> None:
        CacheInvalidator(self.cache).flush_all()

    def _check_team(self, team_id: Optional[int]) -> None:
        if team_id is not None and self.teams.find_by_id(team_id) is None:
            raise ValidationFailed({"team_id": ["The selected team id is invalid."]})

    def create_player(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self._check_team(data.get("team_id"))
        player = self.players.create(**data)
        self.db.commit()
        self.db.refresh(player)
        self._flush_cache()
        logger.info(f"Created player {player.id} ({player.name})")
        return serialize_player(player)

    def update_player(self, player_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        player = self.get_player(player_id)
        if "team_id" in data:
            self._check_team(data["team_id"])
        self.players.update(player, **data)
        self.db.commit()
        self.db.refresh(player)
        self._flush_cache()
        return serialize_player(player)

    def delete_player(self, player_id: int) -> None:
        player = self.get_player(player_id)
        self.players.soft_delete(player)
        self.db.commit()
        self._flush_cache()
        logger.info(f"Soft-deleted player {player_id}")

    def merge_players(self, target_id: int, source_ids: List[int]) -> Dict[str, Any]:
        """
        Move every report of the source players to the target and soft-delete the sources.

        Raises:
            ValidationFailed: Target among sources, or an id that does not exist
        """
        errors: Dict[str, List[str]] = {}
        if not source_ids:
            errors["source_ids"] = ["The source ids field must have at least 1 item."]
        for index, source_id in enumerate(source_ids):
            if source_id == target_id:
                errors[f"source_ids.{index}"] = [f"The source_ids.{index} field and target id must be different."]
        target = self.players.find_by_id(target_id)
        if target is None:
            errors["target_id"] = ["The selected target id is invalid."]
        sources = {p.id: p for p in self.players.find_by_ids(list(set(source_ids)))}
        for index, source_id in enumerate(source_ids):
            if source_id not in sources and f"source_ids.{index}" not in errors:
                errors[f"source_ids.{index}"] = [f"The selected source_ids.{index} is invalid."]
        if errors:
            raise ValidationFailed(errors)

        merged_reports = 0
        try:
            for source in sources.values():
                merged_reports += self.reports.move_to_player(source.id, target.id)
                self.players.soft_delete(source)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self._flush_cache()
        self.db.refresh(target)
        logger.info(
            f"Merged players {sorted(sources)} into {target.id}, moved {merged_reports} reports"
        )
        return {
            "message": "Players merged successfully",
            "target": serialize_player(target),
            "merged_reports_count": merged_reports,
            "deleted_players_count": len(sources),
        }

    def mark_active(self) -> Dict[str, Any]:
        """Recompute is_active for every player from nba_player_id."""
        active = self.players.mark_active_players()
        self.db.commit()
        self._flush_cache()
        total = self.players.count()
        logger.info(f"Marked {active} of {total} players active")
        return {"active": active, "inactive": total - active, "total": total}
