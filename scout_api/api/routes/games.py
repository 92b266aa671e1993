"""
Game card routes.

Example: /api/games/today
Example: /api/games/2025-12-25
"""
from datetime import date
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from scout_api.core.database import get_db
from scout_api.services.game_service import GameService

router = APIRouter(prefix="/games", tags=["games"])


@router.get("/today")
async def games_today(db: Session = Depends(get_db)) -> Dict:
    """Games scheduled on today's league-time date."""
    return GameService(db).today()


@router.get("/{game_date}")
async def games_by_date(game_date: date, db: Session = Depends(get_db)) -> Dict:
    """Games scheduled on a given date (YYYY-MM-DD)."""
    return GameService(db).by_date(game_date)
