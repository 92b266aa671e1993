"""
JSON shapes returned by the API.

Datetimes are rendered as ISO-8601 UTC strings with a ``Z`` suffix. Game cards
use the camelCase shape the mobile client expects; everything else keeps
column names.
"""
from typing import Any, Dict, Optional

from scout_api.models import Game, Player, Report, Team, User
from scout_api.services import ratings as rating_schema
from scout_api.services.sync.schedule_time import to_iso_utc


def _timestamps(row: Any) -> Dict[str, Optional[str]]:
    return {
        "created_at": to_iso_utc(row.created_at),
        "updated_at": to_iso_utc(row.updated_at),
        "deleted_at": to_iso_utc(getattr(row, "deleted_at", None)),
    }


def serialize_team(team: Optional[Team]) -> Optional[Dict[str, Any]]:
    if team is None:
        return None
    return {
        "id": team.id,
        "balldontlie_id": team.balldontlie_id,
        "abbreviation": team.abbreviation,
        "name": team.name,
        "nickname": team.nickname,
        "location": team.location,
        "league": team.league,
        "logo_url": team.logo_url,
        "color": team.color,
        "arena_name": team.arena_name,
        "arena_city": team.arena_city,
        "arena_state": team.arena_state,
        "arena_latitude": team.arena_latitude,
        "arena_longitude": team.arena_longitude,
        "extra_attributes": team.extra_attributes,
        **_timestamps(team),
    }


def serialize_player(player: Player, include_team: bool = True) -> Dict[str, Any]:
    data = {
        "id": player.id,
        "team_id": player.team_id,
        "balldontlie_id": player.balldontlie_id,
        "sportsblaze_player_id": player.sportsblaze_player_id,
        "nba_player_id": player.nba_player_id,
        "name": player.name,
        "jersey": player.jersey,
        "position": player.position,
        "height": player.height,
        "weight": player.weight,
        "birthdate": player.birthdate.isoformat() if player.birthdate else None,
        "age": player.age,
        "headshot_url": player.headshot_url,
        "is_active": player.is_active,
        "minutes_played": player.minutes_played,
        "average_minutes_played": player.average_minutes_played,
        "stats_synced_at": to_iso_utc(player.stats_synced_at),
        "extra_attributes": player.extra_attributes,
        **_timestamps(player),
    }
    if include_team:
        data["team"] = serialize_team(player.team)
    return data


def serialize_user_brief(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name}


def _team_card(team: Team) -> Dict[str, Any]:
    return {
        "id": str(team.id),
        "name": team.nickname,
        "abbreviation": team.abbreviation,
        "logoUrl": team.logo_url,
        "color": team.color,
    }


def format_game(game: Game) -> Dict[str, Any]:
    """Game card; the arena comes from the game when known, else the home team."""
    home = game.home_team
    arena_name = (game.extra_attributes or {}).get("arena")
    return {
        "id": str(game.id),
        "homeTeam": _team_card(home),
        "awayTeam": _team_card(game.away_team),
        "arena": {
            "name": arena_name or home.arena_name or f"{home.nickname or home.name} Arena",
            "city": home.arena_city or home.location,
            "state": home.arena_state or "",
            "latitude": float(home.arena_latitude or 0),
            "longitude": float(home.arena_longitude or 0),
        },
        "scheduledAt": to_iso_utc(game.scheduled_at),
        "status": game.status,
    }


def serialize_game(game: Optional[Game]) -> Optional[Dict[str, Any]]:
    if game is None:
        return None
    return {
        "id": game.id,
        "external_id": game.external_id,
        "home_team_id": game.home_team_id,
        "away_team_id": game.away_team_id,
        "scheduled_at": to_iso_utc(game.scheduled_at),
        "status": game.status,
        "home_team_score": game.home_team_score,
        "away_team_score": game.away_team_score,
        "season": game.season,
        "postseason": game.postseason,
    }


def serialize_report(report: Report, include_relations: bool = True) -> Dict[str, Any]:
    """Report with normalized ratings and the computed rating summary."""
    normalized = rating_schema.normalize_ratings(report.ratings)
    data = {
        "id": report.id,
        "player_id": report.player_id,
        "user_id": report.user_id,
        "team_id_at_time": report.team_id_at_time,
        "game_id": report.game_id,
        "ratings": normalized,
        "notes": report.notes,
        "synced_at": to_iso_utc(report.synced_at),
        **_timestamps(report),
        **rating_schema.summary(normalized),
    }
    if include_relations:
        data["player"] = serialize_player(report.player) if report.player else None
        data["user"] = serialize_user_brief(report.user)
        data["game"] = serialize_game(report.game)
    return data
