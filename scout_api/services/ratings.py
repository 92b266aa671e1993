"""
Scouting rating schema and helpers.

Ratings are stored as JSON shaped ``section -> subsection -> {current, future, notes}``.
The set of sections and subsections is fixed by RATING_STRUCTURE; current and
future are integers from 1 to 5, or null while not yet rated.

Reports written before current/future ratings existed stored
``{rating, notes}``; ``normalize_ratings`` converts those on read.
"""
import copy
from typing import Any, Dict, List, Optional

RATING_STRUCTURE: Dict[str, Dict[str, str]] = {
    "offense": {
        "shooting": "Shooting",
        "driving": "Driving",
        "dribbling": "Dribbling",
        "creating": "Creating",
        "passing": "Passing",
        "finishing": "Finishing",
    },
    "defense": {
        "one_on_one": "1 on 1 Guarding",
        "blocking": "Blocking",
        "team_defense": "Rotating / Positioning",
        "rebounding": "Rebounding",
    },
    "intangibles": {
        "effort": "Effort",
        "role_acceptance": "Role Acceptance",
        "iq": "I/Q",
        "awareness": "Awareness",
    },
    "athleticism": {
        "hands": "Hands",
        "length": "Length",
        "quickness": "Quickness",
        "jumping": "Jumping",
        "strength": "Strength",
        "coordination": "Coordination",
    },
}

SECTIONS = tuple(RATING_STRUCTURE)
TOTAL_RATINGS = sum(len(subsections) for subsections in RATING_STRUCTURE.values())

MIN_RATING = 1
MAX_RATING = 5
MAX_SUBSECTION_NOTES = 1000

RATING_FIELDS = ("current", "future")


def empty_entry() -> Dict[str, Any]:
    return {"current": None, "future": None, "notes": None}


def skeleton() -> Dict[str, Dict[str, Dict[str, Any]]]:
    """All 20 subsections with null current, future and notes."""
    return {
        section: {key: empty_entry() for key in subsections}
        for section, subsections in RATING_STRUCTURE.items()
    }


def is_valid_subsection(section: str, subsection: str) -> bool:
    return subsection in RATING_STRUCTURE.get(section, {})


# =============================================================================
# VALIDATION
# =============================================================================

def _is_rating(value: Any) -> bool:
    return value is None or (
        isinstance(value, int) and not isinstance(value, bool) and MIN_RATING <= value <= MAX_RATING
    )


def validate_ratings(ratings: Any, field: str = "ratings") -> Dict[str, List[str]]:
    """
    Check a ratings document against the schema.

    Returns:
        Field path -> messages; empty when valid
    """
    errors: Dict[str, List[str]] = {}
    if ratings is None:
        return errors
    if not isinstance(ratings, dict):
        return {field: [f"The {field} field must be an object."]}

    for section, subsections in ratings.items():
        path = f"{field}.{section}"
        if section not in RATING_STRUCTURE:
            errors[path] = [f"Unknown rating section '{section}'."]
            continue
        if not isinstance(subsections, dict):
            errors[path] = [f"The {path} field must be an object."]
            continue

        for subsection, entry in subsections.items():
            sub_path = f"{path}.{subsection}"
            if subsection not in RATING_STRUCTURE[section]:
                errors[sub_path] = [f"Unknown subsection '{subsection}' in {section}."]
                continue
            if not isinstance(entry, dict):
                errors[sub_path] = [f"The {sub_path} field must be an object."]
                continue
            for key in RATING_FIELDS + ("rating",):
                if key in entry and not _is_rating(entry[key]):
                    errors[f"{sub_path}.{key}"] = [
                        f"The {sub_path}.{key} field must be an integer between {MIN_RATING} and {MAX_RATING}."
                    ]
            notes = entry.get("notes")
            if notes is not None and (not isinstance(notes, str) or len(notes) > MAX_SUBSECTION_NOTES):
                errors[f"{sub_path}.notes"] = [
                    f"The {sub_path}.notes field must be a string of at most {MAX_SUBSECTION_NOTES} characters."
                ]
    return errors


# =============================================================================
# NORMALIZATION
# =============================================================================

def convert_legacy_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    """{rating, notes} -> {current, future, notes}; current-style entries pass through."""
    if "rating" in entry and "current" not in entry:
        return {"current": entry.get("rating"), "future": None, "notes": entry.get("notes")}
    return {
        "current": entry.get("current"),
        "future": entry.get("future"),
        "notes": entry.get("notes"),
    }


def normalize_ratings(ratings: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Full schema-shaped copy of stored ratings: legacy entries converted, gaps filled with nulls."""
    normalized = skeleton()
    for section, subsections in (ratings or {}).items():
        if section not in normalized or not isinstance(subsections, dict):
            continue
        for subsection, entry in subsections.items():
            if subsection in normalized[section] and isinstance(entry, dict):
                normalized[section][subsection] = convert_legacy_entry(entry)
    return normalized


def set_value(
    ratings: Optional[Dict[str, Any]],
    section: str,
    subsection: str,
    field: str,
    value: Any,
) -> Dict[str, Any]:
    """
    Return a copy of ratings with one field of one subsection set.

    A copy is returned so the JSON column sees a new value and is flushed.
    """
    updated = copy.deepcopy(ratings) if ratings else {}
    entry = updated.setdefault(section, {}).setdefault(subsection, empty_entry())
    entry[field] = value
    return updated


def get_value(ratings: Optional[Dict[str, Any]], section: str, subsection: str, field: str) -> Any:
    entry = ((ratings or {}).get(section) or {}).get(subsection) or {}
    if field == "current" and "current" not in entry:
        return entry.get("rating")
    return entry.get(field)


# =============================================================================
# COMPUTED VALUES
# =============================================================================

def _values(ratings: Optional[Dict[str, Any]], field: str, section: Optional[str] = None) -> List[int]:
    values = []
    for name, subsections in (ratings or {}).items():
        if section is not None and name != section:
            continue
        if not isinstance(subsections, dict):
            continue
        for subsection in subsections:
            value = get_value(ratings, name, subsection, field)
            if value is not None:
                values.append(value)
    return values


def _average(values: List[int]) -> Optional[float]:
    return round(sum(values) / len(values), 2) if values else None


def section_average(ratings: Optional[Dict[str, Any]], section: str, field: str = "current") -> Optional[float]:
    return _average(_values(ratings, field, section))


def overall_average(ratings: Optional[Dict[str, Any]], field: str = "current") -> Optional[float]:
    return _average(_values(ratings, field))


def ratings_count(ratings: Optional[Dict[str, Any]], field: str = "current") -> int:
    return len(_values(ratings, field))


def completion_percentage(ratings: Optional[Dict[str, Any]], field: str = "current") -> int:
    return int(round(100 * ratings_count(ratings, field) / TOTAL_RATINGS))


def is_complete(ratings: Optional[Dict[str, Any]]) -> bool:
    return ratings_count(ratings, "current") == TOTAL_RATINGS


def summary(ratings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Computed fields appended to every serialized report."""
    return {
        "average_rating": overall_average(ratings, "current"),
        "average_current_rating": overall_average(ratings, "current"),
        "average_future_rating": overall_average(ratings, "future"),
        "ratings_count": ratings_count(ratings, "current"),
        "future_ratings_count": ratings_count(ratings, "future"),
        "total_ratings": TOTAL_RATINGS,
        "is_complete": is_complete(ratings),
        "completion_percentage": completion_percentage(ratings, "current"),
        "future_completion_percentage": completion_percentage(ratings, "future"),
        "section_averages": {
            section: {
                "current": section_average(ratings, section, "current"),
                "future": section_average(ratings, section, "future"),
            }
            for section in SECTIONS
        },
    }


def structure_payload() -> Dict[str, Any]:
    """Body of GET /reports/structure."""
    return {"structure": copy.deepcopy(RATING_STRUCTURE), "total_ratings": TOTAL_RATINGS}
