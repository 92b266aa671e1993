"""
Typed provider payloads.

Each provider record is mapped once, at the edge, into a small dataclass
tagged with its source. Orchestrators, the identity resolver and the upsert
engine only ever see these types, never raw provider dicts.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from scout_api.services.sync import schedule_time

SOURCE_SPORTSBLAZE = "sportsblaze"
SOURCE_BALLDONTLIE = "balldontlie"
SOURCE_LLM = "llm"


# =============================================================================
# STATUS MAPPING
# =============================================================================

SPORTSBLAZE_STATUS_MAP = {
    "scheduled": "scheduled",
    "created": "scheduled",
    "inprogress": "live",
    "in_progress": "live",
    "live": "live",
    "halftime": "halftime",
    "complete": "final",
    "closed": "final",
    "final": "final",
    "postponed": "postponed",
    "cancelled": "cancelled",
    "canceled": "cancelled",
}


_OVERTIME = re.compile(r"(^|[\s\d])ot\d*($|\s)")


def map_sportsblaze_status(status: Optional[str]) -> str:
    return SPORTSBLAZE_STATUS_MAP.get((status or "").strip().lower(), "scheduled")


def map_balldontlie_status(status: Optional[str]) -> str:
    """
    BallDontLie reports free text: "Final", "3rd Qtr", "Halftime", or the
    tip-off timestamp for games that have not started.
    """
    text = (status or "").lower()
    if "final" in text:
        return "final"
    if "half" in text:
        return "halftime"
    if "qtr" in text or "progress" in text or _OVERTIME.search(text):
        return "live"
    return "scheduled"


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def _float_or_none(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


# =============================================================================
# BALLDONTLIE
# =============================================================================

@dataclass(frozen=True)
class BdlTeamPayload:
    source = SOURCE_BALLDONTLIE

    balldontlie_id: int
    abbreviation: str
    name: str
    nickname: Optional[str]
    location: Optional[str]
    extra_attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "BdlTeamPayload":
        return cls(
            balldontlie_id=int(data["id"]),
            abbreviation=str(data["abbreviation"]).upper(),
            name=data.get("full_name") or data.get("name") or data["abbreviation"],
            nickname=data.get("name"),
            location=data.get("city"),
            extra_attributes={
                "conference": data.get("conference"),
                "division": data.get("division"),
            },
        )


@dataclass(frozen=True)
class BdlPlayerPayload:
    source = SOURCE_BALLDONTLIE

    balldontlie_id: int
    name: str
    team_balldontlie_id: Optional[int]
    jersey: Optional[str]
    position: Optional[str]
    height: Optional[str]
    weight: Optional[str]
    extra_attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "BdlPlayerPayload":
        first = (data.get("first_name") or "").strip()
        last = (data.get("last_name") or "").strip()
        weight = data.get("weight")
        team = data.get("team") or {}
        return cls(
            balldontlie_id=int(data["id"]),
            name=f"{first} {last}".strip(),
            team_balldontlie_id=_int_or_none(team.get("id")),
            jersey=str(data["jersey_number"]) if data.get("jersey_number") not in (None, "") else None,
            position=data.get("position") or None,
            height=data.get("height") or None,
            weight=f"{weight} lbs" if weight not in (None, "") else None,
            extra_attributes={
                "first_name": first,
                "last_name": last,
                "college": data.get("college"),
                "country": data.get("country"),
                "draft_year": data.get("draft_year"),
                "draft_round": data.get("draft_round"),
                "draft_number": data.get("draft_number"),
            },
        )


QUARTER_FIELDS = ("q1", "q2", "q3", "q4", "ot", "ot1", "ot2", "ot3")


@dataclass(frozen=True)
class BdlGamePayload:
    source = SOURCE_BALLDONTLIE

    balldontlie_id: int
    game_date: str
    scheduled_at: datetime
    status: str
    home_team_balldontlie_id: int
    away_team_balldontlie_id: int
    home_team_score: Optional[int]
    away_team_score: Optional[int]
    period: Optional[int]
    time: Optional[str]
    season: Optional[int]
    postseason: bool
    extra_attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def external_id(self) -> str:
        return f"bdl-{self.balldontlie_id}"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "BdlGamePayload":
        game_date = str(data["date"])[:10]
        # Unstarted games carry their tip-off instant in "datetime" (newer API
        # versions) or in "status"; started games only have the date.
        tip_off = data.get("datetime") or data.get("status")
        scheduled_at = schedule_time.normalize(game_date, tip_off if _looks_like_instant(tip_off) else None)

        extras: Dict[str, Any] = {}
        for prefix in ("home_team", "visitor_team"):
            for quarter in QUARTER_FIELDS:
                value = data.get(f"{prefix}_{quarter}")
                if value is not None:
                    extras[f"{prefix}_{quarter}"] = value

        home_score = _int_or_none(data.get("home_team_score"))
        away_score = _int_or_none(data.get("visitor_team_score"))
        return cls(
            balldontlie_id=int(data["id"]),
            game_date=game_date,
            scheduled_at=scheduled_at,
            status=map_balldontlie_status(data.get("status")),
            home_team_balldontlie_id=int(data["home_team"]["id"]),
            away_team_balldontlie_id=int(data["visitor_team"]["id"]),
            home_team_score=home_score,
            away_team_score=away_score,
            period=_int_or_none(data.get("period")),
            time=data.get("time") or None,
            season=_int_or_none(data.get("season")),
            postseason=bool(data.get("postseason")),
            extra_attributes=extras,
        )


def _looks_like_instant(value: Any) -> bool:
    return isinstance(value, str) and "T" in value and value[:4].isdigit()


# =============================================================================
# SPORTSBLAZE
# =============================================================================

@dataclass(frozen=True)
class SportsBlazeGamePayload:
    source = SOURCE_SPORTSBLAZE

    external_id: str
    game_date: str
    scheduled_at: datetime
    status: str
    home_abbreviation: str
    away_abbreviation: str
    home_team_score: Optional[int] = None
    away_team_score: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any], game_date: str) -> "SportsBlazeGamePayload":
        home = data.get("home") or data.get("teams", {}).get("home") or {}
        away = data.get("away") or data.get("teams", {}).get("away") or {}
        if data.get("scheduled"):
            scheduled_at = schedule_time.normalize(game_date, data["scheduled"])
        else:
            scheduled_at = schedule_time.normalize(
                data.get("date") or game_date, data.get("time"), data.get("timezone")
            )
        return cls(
            external_id=str(data["id"]),
            game_date=game_date,
            scheduled_at=scheduled_at,
            status=map_sportsblaze_status(data.get("status")),
            home_abbreviation=str(home.get("alias") or home.get("abbreviation") or "").upper(),
            away_abbreviation=str(away.get("alias") or away.get("abbreviation") or "").upper(),
            home_team_score=_int_or_none(home.get("points") if "points" in home else data.get("home_points")),
            away_team_score=_int_or_none(away.get("points") if "points" in away else data.get("away_points")),
        )


@dataclass(frozen=True)
class SportsBlazeSplitPayload:
    source = SOURCE_SPORTSBLAZE

    sportsblaze_player_id: str
    minutes_played: Optional[float]
    average_minutes_played: Optional[float]

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SportsBlazeSplitPayload":
        stats = data.get("stats") or {}
        return cls(
            sportsblaze_player_id=str(data["id"]),
            minutes_played=_float_or_none((stats.get("total") or {}).get("minutes")),
            average_minutes_played=_float_or_none((stats.get("average") or {}).get("minutes")),
        )


# =============================================================================
# LLM
# =============================================================================

@dataclass(frozen=True)
class LlmGamePayload:
    """A game read out of an LLM web-search answer, teams already resolved."""
    source = SOURCE_LLM

    game_date: str
    scheduled_at: datetime
    home_team_id: int
    away_team_id: int
    home_abbreviation: str
    away_abbreviation: str
    status: str = "scheduled"
    arena: Optional[str] = None

    def external_id(self, style: str = "bulk") -> str:
        """
        Provider-namespaced id.

        "bulk" ids come from the multi-day schedule, "daily" ids from
        per-date lookups; the two styles never collide.
        """
        if style == "daily":
            return f"llm-{self.home_abbreviation}-{self.away_abbreviation}-{self.game_date}"
        return f"{self.game_date}-{self.home_abbreviation}-{self.away_abbreviation}"
