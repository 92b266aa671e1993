"""
Repository layer for data access.

Services and routes go through these classes instead of building queries
inline.
"""
from scout_api.repositories.base import BaseRepository
from scout_api.repositories.team_repository import TeamRepository
from scout_api.repositories.player_repository import PlayerRepository
from scout_api.repositories.game_repository import GameRepository
from scout_api.repositories.report_repository import ReportRepository

__all__ = [
    "BaseRepository",
    "TeamRepository",
    "PlayerRepository",
    "GameRepository",
    "ReportRepository",
]
