"""
Parser for LLM web-search schedule answers.

The model is asked for a JSON array but is not obliged to return one, so
parsing is two-tier:

1. Structured: strip Markdown fences, decode JSON (unwrapping ``{"games": [...]}``),
   resolve each element's teams. Elements with unknown teams are dropped and
   counted as skipped.
2. Prose: when JSON fails or yields nothing usable, scan lines of the form
   ``<Away> @ <Home> ... 7:30 PM ET``, resolving names by nickname first,
   then abbreviation.

Output order follows input order.
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from scout_api.core.logging import get_logger
from scout_api.services.sync import schedule_time
from scout_api.services.sync.identity_resolver import TeamIndex, is_found
from scout_api.services.sync.payloads import LlmGamePayload

logger = get_logger(__name__)

_FENCE = re.compile(r"```[a-zA-Z]*\s*")
_ISO_DATE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")
_PROSE_GAME = re.compile(
    r"(?P<away>[A-Za-z][A-Za-z0-9 .'&]*?)\s+(?:@|at)\s+"
    r"(?P<home>[A-Za-z][A-Za-z0-9 .'&]*?)"
    r"(?=\s*(?:[-–—,|(:]|at\s+\d|\d{1,2}:\d{2}|$))"
    r".*?(?P<time>\d{1,2}:\d{2}\s*[AaPp]\.?\s*[Mm]\.?)"
    r"(?:\s*(?P<tz>[ECMPecmp][SDsd]?[Tt])\b)?"
)


@dataclass
class ParseResult:
    """Games recovered from one LLM answer."""

    games: List[LlmGamePayload] = field(default_factory=list)
    skipped: int = 0
    used_prose_fallback: bool = False


def extract_output_text(response: Dict[str, Any]) -> str:
    """
    Pull the answer text out of an API response.

    Handles the Responses API (``output[].content[].output_text``) and falls
    back to the chat-completions shape (``choices[0].message.content``).
    """
    if not isinstance(response, dict):
        return ""

    chunks = []
    for item in response.get("output") or []:
        if item.get("type") != "message":
            continue
        for content in item.get("content") or []:
            if content.get("type") == "output_text" and content.get("text"):
                chunks.append(content["text"])
    if chunks:
        return "\n".join(chunks)

    if response.get("output_text"):
        return response["output_text"]

    try:
        return response["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError):
        return ""


def _strip_fences(raw_text: str) -> str:
    return _FENCE.sub("", raw_text or "").replace("```", "").strip()


def _decode(text: str) -> Optional[Any]:
    """JSON-decode the answer, falling back to its first [...] span."""
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    start, end = text.find("["), text.rfind("]")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None
    return None


def _build_game(
    teams: TeamIndex,
    home_name: Optional[str],
    away_name: Optional[str],
    game_date: str,
    time_text: Optional[str],
    explicit_timezone: Optional[str] = None,
    arena: Optional[str] = None,
    status: Optional[str] = None,
) -> Optional[LlmGamePayload]:
    home = teams.name(home_name)
    away = teams.name(away_name)
    if not is_found(home) or not is_found(away):
        logger.warning(
            "Dropping LLM game with unknown team",
            extra={"home": home_name, "away": away_name, "date": game_date},
        )
        return None
    try:
        scheduled_at = schedule_time.normalize(game_date, time_text, explicit_timezone)
    except ValueError:
        logger.warning(f"Dropping LLM game with invalid date '{game_date}'")
        return None

    return LlmGamePayload(
        game_date=scheduled_date(game_date),
        scheduled_at=scheduled_at,
        home_team_id=home.id,
        away_team_id=away.id,
        home_abbreviation=home.abbreviation.upper(),
        away_abbreviation=away.abbreviation.upper(),
        status=(status or "scheduled").lower(),
        arena=arena or home.arena_name or f"{home.nickname or home.name} Arena",
    )


def scheduled_date(game_date: str) -> str:
    return schedule_time.parse_date(game_date).isoformat()


# Entry field -> accepted keys, first present wins
_ENTRY_FIELDS = {
    "home": ("home_team", "home"),
    "away": ("away_team", "away"),
    "time": ("scheduled_time", "time"),
    "timezone": ("timezone",),
    "arena": ("arena",),
    "status": ("status",),
}


def _text_fields(entry: Dict[str, Any]) -> Optional[Dict[str, Optional[str]]]:
    """Text fields of one entry, or None when any of them is not a string."""
    fields: Dict[str, Optional[str]] = {}
    for name, keys in _ENTRY_FIELDS.items():
        value = next((entry[key] for key in keys if entry.get(key)), None)
        if value is not None and not isinstance(value, str):
            return None
        fields[name] = value
    return fields


def _parse_structured(data: Any, fallback_date: str, teams: TeamIndex) -> ParseResult:
    if isinstance(data, dict):
        data = data.get("games", [])
    result = ParseResult()
    if not isinstance(data, list):
        return result

    for entry in data:
        fields = _text_fields(entry) if isinstance(entry, dict) else None
        if fields is None:
            logger.warning("Dropping malformed LLM game entry", extra={"entry": repr(entry)[:200]})
            result.skipped += 1
            continue
        game = _build_game(
            teams,
            home_name=fields["home"],
            away_name=fields["away"],
            game_date=str(entry.get("date") or entry.get("game_date") or fallback_date),
            time_text=fields["time"],
            explicit_timezone=fields["timezone"],
            arena=fields["arena"],
            status=fields["status"],
        )
        if game is None:
            result.skipped += 1
        else:
            result.games.append(game)
    return result


def _parse_prose(text: str, fallback_date: str, teams: TeamIndex) -> ParseResult:
    result = ParseResult(used_prose_fallback=True)
    current_date = fallback_date

    for raw_line in text.splitlines():
        line = _LIST_MARKER.sub("", raw_line.replace("*", "").replace("_", " ")).strip()
        if not line:
            continue
        match = _PROSE_GAME.search(line)
        if match is None:
            # Date headings ("## 2025-12-26") switch the date for following lines
            heading = _ISO_DATE.search(line)
            if heading:
                current_date = heading.group(1)
            continue

        time_text = match.group("time")
        if match.group("tz"):
            time_text = f"{time_text} {match.group('tz').upper()}"
        game = _build_game(
            teams,
            home_name=match.group("home").strip(),
            away_name=match.group("away").strip(),
            game_date=current_date,
            time_text=time_text,
        )
        if game is None:
            result.skipped += 1
        else:
            result.games.append(game)
    return result


def parse(raw_text: str, fallback_date: str, teams: TeamIndex) -> ParseResult:
    """
    Parse an LLM schedule answer into resolved games.

    Args:
        raw_text: Answer text, possibly fenced, possibly prose
        fallback_date: Schedule date for entries that do not carry their own
        teams: Team index used to resolve names and abbreviations

    Returns:
        ParseResult with games in answer order and the skipped count
    """
    text = _strip_fences(raw_text)
    structured = _parse_structured(_decode(text), fallback_date, teams)
    if structured.games:
        return structured

    prose = _parse_prose(text, fallback_date, teams)
    if prose.games:
        logger.info(f"Recovered {len(prose.games)} games from prose LLM answer")
        return prose

    structured.skipped = max(structured.skipped, prose.skipped)
    return structured
