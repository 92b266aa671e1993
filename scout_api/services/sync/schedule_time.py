"""
Schedule time normalization.

Providers describe tip-off in different ways: ISO instants, a date plus a
wall-clock time with a US zone suffix ("7:30 PM ET"), or a time with no zone
at all. Everything is converted to an aware UTC datetime here.

Rules:
1. A trailing zone token (ET/EST/EDT, CT/..., MT/..., PT/...) wins.
2. Otherwise an explicit timezone (abbreviation or IANA name) is used.
3. Otherwise the league default, America/New_York.
4. Anything unparseable falls back to 19:00 league time on that date.

Season helpers take the evaluation date as an argument; nothing in this
module reads the clock except ``league_today`` when called without ``now``.
"""
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from scout_api.core.logging import get_logger

logger = get_logger(__name__)

LEAGUE_TIMEZONE = ZoneInfo("America/New_York")
FALLBACK_TIP_OFF = time(19, 0)

ZONE_ABBREVIATIONS = {
    "ET": "America/New_York",
    "EST": "America/New_York",
    "EDT": "America/New_York",
    "CT": "America/Chicago",
    "CST": "America/Chicago",
    "CDT": "America/Chicago",
    "MT": "America/Denver",
    "MST": "America/Denver",
    "MDT": "America/Denver",
    "PT": "America/Los_Angeles",
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",
}

_ZONE_SUFFIX = re.compile(
    r"\s*\b(" + "|".join(sorted(ZONE_ABBREVIATIONS, key=len, reverse=True)) + r")\.?\s*$",
    re.IGNORECASE,
)

_TIME_FORMATS = (
    "%I:%M %p",
    "%I:%M%p",
    "%I %p",
    "%I%p",
    "%H:%M",
    "%H:%M:%S",
)


def resolve_zone(name: Optional[str]) -> Optional[ZoneInfo]:
    """Map an abbreviation ("PT") or IANA name ("America/Denver") to a zone."""
    if not name:
        return None
    name = name.strip()
    iana = ZONE_ABBREVIATIONS.get(name.upper())
    if iana:
        return ZoneInfo(iana)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def _parse_wall_clock(text: str) -> Optional[time]:
    cleaned = re.sub(r"\b([ap])\.?\s*m\.?", lambda m: f"{m.group(1)}M", text.strip(), flags=re.IGNORECASE)
    cleaned = re.sub(r"\s+", " ", cleaned).upper()
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).time()
        except ValueError:
            continue
    return None


def _parse_instant(text: str, zone: ZoneInfo) -> Optional[datetime]:
    """Parse a full ISO-8601 timestamp; naive values are wall clock in zone."""
    candidate = text.strip()
    if "T" not in candidate and not re.match(r"^\d{4}-\d{2}-\d{2} \d", candidate):
        return None
    try:
        parsed = datetime.fromisoformat(candidate.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed.astimezone(timezone.utc)


def parse_date(date_str: str) -> date:
    """Parse a YYYY-MM-DD schedule date."""
    return datetime.strptime(date_str.strip()[:10], "%Y-%m-%d").date()


def fallback_tip_off(on_date: date) -> datetime:
    """19:00 league time on the date, in UTC."""
    return datetime.combine(on_date, FALLBACK_TIP_OFF, tzinfo=LEAGUE_TIMEZONE).astimezone(timezone.utc)


def normalize(
    date_str: str,
    time_str: Optional[str],
    explicit_timezone: Optional[str] = None,
) -> datetime:
    """
    Convert a provider's schedule date and time to an aware UTC datetime.

    Args:
        date_str: Schedule date, YYYY-MM-DD
        time_str: "7:30 PM ET", "19:30", an ISO instant, or None
        explicit_timezone: Zone to use when time_str carries no suffix

    Returns:
        Aware UTC datetime; 19:00 America/New_York when time_str is unusable

    Raises:
        ValueError: Only if date_str itself is not a date
    """
    on_date = parse_date(date_str)
    if not time_str or not str(time_str).strip():
        return fallback_tip_off(on_date)

    text = str(time_str).strip()
    zone = resolve_zone(explicit_timezone) or LEAGUE_TIMEZONE

    suffix = _ZONE_SUFFIX.search(text)
    if suffix:
        zone = ZoneInfo(ZONE_ABBREVIATIONS[suffix.group(1).upper()])
        text = text[:suffix.start()].strip()

    instant = _parse_instant(text, zone)
    if instant is not None:
        return instant

    wall_clock = _parse_wall_clock(text)
    if wall_clock is None:
        logger.debug(f"Unparseable tip-off time '{time_str}' on {date_str}, using fallback")
        return fallback_tip_off(on_date)

    return datetime.combine(on_date, wall_clock, tzinfo=zone).astimezone(timezone.utc)


def to_storage(moment: datetime) -> datetime:
    """Aware datetime -> naive UTC for the database."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def to_iso_utc(moment: Optional[datetime]) -> Optional[str]:
    """Naive-UTC (or aware) datetime -> ISO-8601 string with a Z suffix."""
    if moment is None:
        return None
    return to_storage(moment).isoformat(timespec="milliseconds") + "Z"


# =============================================================================
# LEAGUE CALENDAR
# =============================================================================

def league_date(moment: datetime) -> date:
    """Schedule date of an instant; naive values are stored UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(LEAGUE_TIMEZONE).date()


def league_today(now: Optional[datetime] = None) -> date:
    """The current schedule date in league time."""
    return league_date(now or datetime.now(timezone.utc))


def day_bounds_utc(on_date: date) -> Tuple[datetime, datetime]:
    """Naive-UTC [start, end) of a league-time calendar day."""
    start = datetime.combine(on_date, time.min, tzinfo=LEAGUE_TIMEZONE)
    end = datetime.combine(on_date + timedelta(days=1), time.min, tzinfo=LEAGUE_TIMEZONE)
    return to_storage(start), to_storage(end)


def season_for(on_date: date) -> Tuple[int, int]:
    """
    NBA season containing the date, as (start_year, end_year).

    Examples:
        >>> season_for(date(2025, 11, 3))
        (2025, 2026)
        >>> season_for(date(2026, 2, 10))
        (2025, 2026)
    """
    start_year = on_date.year if on_date.month >= 10 else on_date.year - 1
    return start_year, start_year + 1


def season_label(on_date: date) -> str:
    """Season in provider format, e.g. "2025-26"."""
    start_year, end_year = season_for(on_date)
    return f"{start_year}-{end_year % 100:02d}"


def is_nba_season(on_date: date) -> bool:
    """True from October through April, when an empty schedule is suspicious."""
    return on_date.month >= 10 or on_date.month <= 4
