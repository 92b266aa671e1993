"""
Admin player maintenance.

Requires a super admin user or the deployment X-Admin-Token. Every write
flushes the cached player listings.
"""
from typing import Dict, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from scout_api.api.schemas import PlayerCreate, PlayerMerge, PlayerUpdate
from scout_api.core.auth import require_admin
from scout_api.core.database import get_db
from scout_api.models import User
from scout_api.services.player_service import PlayerService

router = APIRouter(prefix="/admin/players", tags=["admin-players"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_player(
    body: PlayerCreate,
    db: Session = Depends(get_db),
    admin: Optional[User] = Depends(require_admin),
) -> Dict:
    return PlayerService(db).create_player(body.model_dump())


@router.post("/merge")
async def merge_players(
    body: PlayerMerge,
    db: Session = Depends(get_db),
    admin: Optional[User] = Depends(require_admin),
) -> Dict:
    """Move the source players' reports to the target and soft-delete the sources."""
    return PlayerService(db).merge_players(body.target_id, body.source_ids)


@router.post("/mark-active")
async def mark_active_players(
    db: Session = Depends(get_db),
    admin: Optional[User] = Depends(require_admin),
) -> Dict:
    """Recompute is_active for every player."""
    return PlayerService(db).mark_active()


@router.put("/{player_id}")
async def update_player(
    player_id: int,
    body: PlayerUpdate,
    db: Session = Depends(get_db),
    admin: Optional[User] = Depends(require_admin),
) -> Dict:
    return PlayerService(db).update_player(player_id, body.model_dump(exclude_unset=True))


@router.delete("/{player_id}")
async def delete_player(
    player_id: int,
    db: Session = Depends(get_db),
    admin: Optional[User] = Depends(require_admin),
) -> Dict:
    PlayerService(db).delete_player(player_id)
    return {"message": "Player deleted successfully"}
