"""Database models."""
from scout_api.models.models import (
    Base,
    Organization,
    User,
    Team,
    Player,
    Game,
    Report,
    SyncMetadata,
    utcnow,
)

__all__ = [
    "Base",
    "Organization",
    "User",
    "Team",
    "Player",
    "Game",
    "Report",
    "SyncMetadata",
    "utcnow",
]
