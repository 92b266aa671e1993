"""
Player listing and detail routes.

Example: /api/players?team_id=BOS&sort=minutes
Example: /api/players?search=james&per_page=50&page=2
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from scout_api.core.database import get_db
from scout_api.services.player_service import PlayerService

router = APIRouter(prefix="/players", tags=["players"])


@router.get("")
async def list_players(
    team_id: Optional[str] = Query(None, max_length=50, description="Team id or abbreviation"),
    search: Optional[str] = Query(None, max_length=100, description="Case-insensitive name filter"),
    sort: Literal["jersey", "minutes"] = Query("jersey"),
    per_page: int = Query(20, ge=1, le=100),
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
):
    """
    List active players.

    With team_id the full roster is returned as a list; without it the
    listing is paginated.
    """
    return PlayerService(db).list_players(
        team_id=team_id, search=search, sort=sort, page=page, per_page=per_page
    )


@router.get("/{player_id}")
async def show_player(player_id: int, db: Session = Depends(get_db)):
    """Player with team and the latest reports."""
    return PlayerService(db).show(player_id)
