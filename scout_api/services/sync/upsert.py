"""
Upsert engine for synced entities.

Idempotency keys:
- Team: BallDontLie id, falling back to the (unique) abbreviation
- Player: BallDontLie id
- Game: provider-namespaced external_id

Find-or-create is atomic: the insert runs inside a SAVEPOINT and a unique
violation (another worker inserted the same key first) rolls back to the
savepoint, re-reads the winner and updates it instead.

Rows an admin soft-deleted are never resurrected by a sync; they come back
as "skipped".
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scout_api.core.logging import get_logger
from scout_api.core.metrics import record_sync_outcome
from scout_api.models import Game, Player, Team, utcnow
from scout_api.repositories import GameRepository, PlayerRepository, TeamRepository
from scout_api.services.sync import schedule_time
from scout_api.services.sync.identity_resolver import IdentityResolver, is_found
from scout_api.services.sync.payloads import (
    BdlPlayerPayload,
    BdlTeamPayload,
    SportsBlazeSplitPayload,
)

logger = get_logger(__name__)

CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"


@dataclass
class SyncStats:
    """Per-run outcome counts returned by every orchestrator."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    total: int = 0

    def add(self, outcome: str) -> None:
        self.total += 1
        setattr(self, outcome, getattr(self, outcome) + 1)

    def merge(self, other: "SyncStats") -> "SyncStats":
        self.created += other.created
        self.updated += other.updated
        self.skipped += other.skipped
        self.total += other.total
        return self

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)

    def record_metrics(self, source: str, entity: str) -> None:
        for outcome in (CREATED, UPDATED, SKIPPED):
            record_sync_outcome(source, entity, outcome, getattr(self, outcome))


def _apply(instance: Any, attributes: Dict[str, Any]) -> None:
    for key, value in attributes.items():
        if key == "extra_attributes":
            merged = dict(instance.extra_attributes or {})
            merged.update(value or {})
            value = merged
        setattr(instance, key, value)
    instance.updated_at = utcnow()


class UpsertEngine:
    """
    Creates or updates teams, players and games from provider payloads.

    Usage:
        engine = UpsertEngine(db)
        outcome, team = engine.upsert_team(payload, resolver)
        stats.add(outcome)
    """

    def __init__(self, db: Session):
        self.db = db
        self.teams = TeamRepository(db)
        self.players = PlayerRepository(db)
        self.games = GameRepository(db)

    def _find_or_create(
        self,
        model: type,
        lookup: Callable[[], Optional[Any]],
        attributes: Dict[str, Any],
    ) -> Tuple[str, Any]:
        """
        Update the row lookup() finds, or insert a new one.

        lookup must include soft-deleted rows so a unique-key collision
        always finds its winner.
        """
        existing = lookup()
        if existing is None:
            try:
                with self.db.begin_nested():
                    instance = model(**attributes)
                    self.db.add(instance)
                return CREATED, instance
            except IntegrityError:
                logger.info(f"Concurrent insert detected for {model.__name__}, updating existing row")
                existing = lookup()
                if existing is None:
                    raise

        if existing.deleted_at is not None:
            return SKIPPED, existing
        _apply(existing, attributes)
        return UPDATED, existing

    # ========================================================================
    # Teams
    # ========================================================================

    def upsert_team(self, payload: BdlTeamPayload, resolver: IdentityResolver) -> Tuple[str, Optional[Team]]:
        resolved = resolver.resolve("team", payload)
        if not is_found(resolved) and resolved.ambiguous:
            return SKIPPED, None

        attributes = {
            "balldontlie_id": payload.balldontlie_id,
            "abbreviation": payload.abbreviation,
            "name": payload.name,
            "nickname": payload.nickname,
            "location": payload.location,
            "league": "NBA",
            "extra_attributes": payload.extra_attributes,
        }

        def lookup() -> Optional[Team]:
            if is_found(resolved):
                return resolved
            return self.teams.find_by_balldontlie_id(payload.balldontlie_id, with_trashed=True)

        outcome, team = self._find_or_create(Team, lookup, attributes)
        if outcome == CREATED:
            resolver.teams.add(team)
        return outcome, team

    # ========================================================================
    # Players
    # ========================================================================

    def upsert_player(
        self,
        payload: BdlPlayerPayload,
        resolver: IdentityResolver,
    ) -> Tuple[str, Optional[Player]]:
        """Players of teams we do not know are skipped."""
        team = resolver.teams.by_balldontlie_id.get(payload.team_balldontlie_id)
        if team is None:
            return SKIPPED, None

        attributes = {
            "balldontlie_id": payload.balldontlie_id,
            "team_id": team.id,
            "name": payload.name,
            "jersey": payload.jersey,
            "position": payload.position,
            "height": payload.height,
            "weight": payload.weight,
            "extra_attributes": payload.extra_attributes,
        }
        resolved = resolver.resolve("player", payload)

        def lookup() -> Optional[Player]:
            if is_found(resolved):
                return resolved
            return self.players.find_by_balldontlie_id(payload.balldontlie_id, with_trashed=True)

        outcome, player = self._find_or_create(Player, lookup, attributes)
        if outcome == CREATED:
            resolver.players.add(player)
        return outcome, player

    def update_minutes(self, player: Player, split: SportsBlazeSplitPayload) -> str:
        """Apply a minutes split to an already-resolved player."""
        if split.minutes_played is None and split.average_minutes_played is None:
            return SKIPPED
        _apply(player, {
            "minutes_played": split.minutes_played,
            "average_minutes_played": split.average_minutes_played,
            "stats_synced_at": utcnow(),
        })
        return UPDATED

    # ========================================================================
    # Games
    # ========================================================================

    def upsert_game(
        self,
        external_id: str,
        attributes: Dict[str, Any],
        resolver: Optional[IdentityResolver] = None,
        natural_key: Optional[Tuple[str, str, str]] = None,
    ) -> Tuple[str, Game, Optional[datetime]]:
        """
        Create or update the game with this external_id.

        When a resolver and natural key are given, a row from another
        provider describing the same matchup is logged but not merged.

        Returns:
            (outcome, game, previous_scheduled_at). The last item is the
            stored tip-off an update replaced, so a caller can clear the
            listings of the date a rescheduled game moved away from. It is
            None for creates and skips.
        """
        attributes = dict(attributes, external_id=external_id)
        if "scheduled_at" in attributes:
            attributes["scheduled_at"] = schedule_time.to_storage(attributes["scheduled_at"])

        def lookup() -> Optional[Game]:
            return self.games.find_by_external_id(external_id, with_trashed=True)

        current = lookup()
        previous_scheduled_at = current.scheduled_at if current is not None else None
        outcome, game = self._find_or_create(Game, lookup, attributes)
        if outcome != UPDATED:
            previous_scheduled_at = None

        if outcome == CREATED and resolver is not None and natural_key is not None:
            twin = resolver.games.natural(*natural_key)
            if is_found(twin) and twin.external_id != external_id:
                logger.info(
                    "Game also present from another provider",
                    extra={"external_id": external_id, "other_external_id": twin.external_id},
                )
        return outcome, game, previous_scheduled_at
