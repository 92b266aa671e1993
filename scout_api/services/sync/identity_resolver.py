"""
Identity resolution for synced entities.

Maps an incoming provider payload to the existing local row it describes.
The resolver works over in-memory indexes built from rows loaded once per
sync run; it never queries or writes the database itself.

Matching Strategy (in order of priority):
1. Provider-specific id already stored for that provider
2. Teams and games only: a normalized natural key, used only when exactly
   one row matches
   - Team: upper(abbreviation)
   - Game: league date + home abbreviation + away abbreviation
3. Not found

Ambiguous natural-key matches resolve to NotFound with reason "ambiguous";
the caller counts them as skipped. Players are never matched by name here;
name-based player merging is the deduplicator's job.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from scout_api.core.logging import get_logger
from scout_api.services.sync import schedule_time
from scout_api.services.sync.payloads import (
    BdlGamePayload,
    BdlPlayerPayload,
    BdlTeamPayload,
    LlmGamePayload,
    SportsBlazeGamePayload,
    SportsBlazeSplitPayload,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotFound:
    """Resolution miss. reason is "not_found" or "ambiguous"."""

    key: str
    reason: str = "not_found"

    @property
    def ambiguous(self) -> bool:
        return self.reason == "ambiguous"


Resolved = Union[Any, NotFound]


def is_found(result: Resolved) -> bool:
    return not isinstance(result, NotFound)


def _unique(candidates: List[Any], key: str) -> Resolved:
    if not candidates:
        return NotFound(key)
    if len(candidates) > 1:
        logger.warning(f"Ambiguous identity match for {key}: {len(candidates)} candidates")
        return NotFound(key, reason="ambiguous")
    return candidates[0]


def _norm(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


class TeamIndex:
    """Teams keyed by provider id, abbreviation, nickname and full name."""

    def __init__(self, teams: Iterable[Any]):
        self.teams = [t for t in teams if getattr(t, "deleted_at", None) is None]
        self.by_abbreviation: Dict[str, List[Any]] = defaultdict(list)
        self.by_nickname: Dict[str, List[Any]] = defaultdict(list)
        self.by_full_name: Dict[str, List[Any]] = defaultdict(list)
        self.by_location: Dict[str, List[Any]] = defaultdict(list)
        self.by_balldontlie_id: Dict[int, Any] = {}
        self.by_id: Dict[int, Any] = {}
        for team in list(self.teams):
            self._index(team)

    def _index(self, team: Any) -> None:
        self.by_id[team.id] = team
        if team.balldontlie_id is not None:
            self.by_balldontlie_id[team.balldontlie_id] = team
        self.by_abbreviation[(team.abbreviation or "").upper()].append(team)
        if team.nickname:
            self.by_nickname[_norm(team.nickname)].append(team)
        if team.name:
            self.by_full_name[_norm(team.name)].append(team)
        if team.location:
            self.by_location[_norm(team.location)].append(team)

    def add(self, team: Any) -> None:
        """Index a row created during the current run."""
        self.teams.append(team)
        self._index(team)

    def abbreviation(self, abbreviation: Optional[str]) -> Resolved:
        key = _norm(abbreviation).upper()
        return _unique(self.by_abbreviation.get(key, []), f"team:{key}")

    def name(self, name: Optional[str]) -> Resolved:
        """Resolve a free-text team name: nickname, abbreviation, full name, then city."""
        text = _norm(name)
        if not text:
            return NotFound("team:")
        for candidates in (
            self.by_nickname.get(text),
            self.by_abbreviation.get(text.upper()),
            self.by_full_name.get(text),
        ):
            if candidates:
                return _unique(candidates, f"team:{text}")
        # "Boston Celtics" style names whose last word is the nickname
        last_word = text.split()[-1]
        if last_word != text and self.by_nickname.get(last_word):
            return _unique(self.by_nickname[last_word], f"team:{text}")
        if self.by_location.get(text):
            return _unique(self.by_location[text], f"team:{text}")
        return NotFound(f"team:{text}")


class PlayerIndex:
    """Players keyed by provider id."""

    def __init__(self, players: Iterable[Any]):
        self.players = [p for p in players if getattr(p, "deleted_at", None) is None]
        self.by_balldontlie_id = {
            p.balldontlie_id: p for p in self.players if p.balldontlie_id is not None
        }
        self.by_sportsblaze_id = {
            str(p.sportsblaze_player_id): p for p in self.players if p.sportsblaze_player_id
        }

    def add(self, player: Any) -> None:
        self.players.append(player)
        if player.balldontlie_id is not None:
            self.by_balldontlie_id[player.balldontlie_id] = player
        if player.sportsblaze_player_id:
            self.by_sportsblaze_id[str(player.sportsblaze_player_id)] = player


def game_natural_key(game_date: str, home_abbreviation: str, away_abbreviation: str) -> Tuple[str, str, str]:
    return game_date, home_abbreviation.upper(), away_abbreviation.upper()


class GameIndex:
    """Games keyed by external id, BallDontLie id and (date, home, away)."""

    def __init__(self, games: Iterable[Any]):
        self.games = [g for g in games if getattr(g, "deleted_at", None) is None]
        self.by_external_id = {g.external_id: g for g in self.games}
        self.by_balldontlie_id = {
            g.balldontlie_id: g for g in self.games if g.balldontlie_id is not None
        }
        self.by_natural_key: Dict[Tuple[str, str, str], List[Any]] = defaultdict(list)
        for game in self.games:
            if game.home_team is None or game.away_team is None or game.scheduled_at is None:
                continue
            key = game_natural_key(
                schedule_time.league_today(game.scheduled_at).isoformat(),
                game.home_team.abbreviation,
                game.away_team.abbreviation,
            )
            self.by_natural_key[key].append(game)

    def natural(self, game_date: str, home_abbreviation: str, away_abbreviation: str) -> Resolved:
        key = game_natural_key(game_date, home_abbreviation, away_abbreviation)
        return _unique(self.by_natural_key.get(key, []), "game:" + "-".join(key))


class IdentityResolver:
    """
    Resolves provider payloads to local rows.

    Usage:
        resolver = IdentityResolver(teams=team_rows, games=game_rows)
        team = resolver.resolve("team", BdlTeamPayload.from_api(raw))
        if not is_found(team):
            stats.skipped += 1
    """

    def __init__(
        self,
        teams: Iterable[Any] = (),
        players: Iterable[Any] = (),
        games: Iterable[Any] = (),
    ):
        self.teams = TeamIndex(teams)
        self.players = PlayerIndex(players)
        self.games = GameIndex(games)

    def resolve(self, entity_type: str, record: Any) -> Resolved:
        """
        Resolve a payload to an existing entity.

        Args:
            entity_type: "team", "player" or "game"
            record: A payload from scout_api.services.sync.payloads

        Returns:
            The matching row, or NotFound
        """
        if entity_type == "team":
            return self._resolve_team(record)
        if entity_type == "player":
            return self._resolve_player(record)
        if entity_type == "game":
            return self._resolve_game(record)
        raise ValueError(f"Unknown entity type: {entity_type}")

    def _resolve_team(self, record: Any) -> Resolved:
        if isinstance(record, BdlTeamPayload):
            team = self.teams.by_balldontlie_id.get(record.balldontlie_id)
            if team is not None:
                return team
            return self.teams.abbreviation(record.abbreviation)
        if isinstance(record, str):
            return self.teams.abbreviation(record)
        raise TypeError(f"Cannot resolve team from {type(record).__name__}")

    def _resolve_player(self, record: Any) -> Resolved:
        if isinstance(record, BdlPlayerPayload):
            player = self.players.by_balldontlie_id.get(record.balldontlie_id)
            return player if player is not None else NotFound(f"player:bdl-{record.balldontlie_id}")
        if isinstance(record, SportsBlazeSplitPayload):
            player = self.players.by_sportsblaze_id.get(record.sportsblaze_player_id)
            return player if player is not None else NotFound(f"player:sb-{record.sportsblaze_player_id}")
        raise TypeError(f"Cannot resolve player from {type(record).__name__}")

    def _resolve_game(self, record: Any) -> Resolved:
        if isinstance(record, BdlGamePayload):
            game = self.games.by_balldontlie_id.get(record.balldontlie_id) or \
                self.games.by_external_id.get(record.external_id)
            return game if game is not None else NotFound(f"game:{record.external_id}")
        if isinstance(record, SportsBlazeGamePayload):
            game = self.games.by_external_id.get(record.external_id)
            if game is not None:
                return game
            return self.games.natural(record.game_date, record.home_abbreviation, record.away_abbreviation)
        if isinstance(record, LlmGamePayload):
            for style in ("bulk", "daily"):
                game = self.games.by_external_id.get(record.external_id(style))
                if game is not None:
                    return game
            return self.games.natural(record.game_date, record.home_abbreviation, record.away_abbreviation)
        raise TypeError(f"Cannot resolve game from {type(record).__name__}")
