"""
Scouting report routes.

All routes act on behalf of the authenticated user. Authorization failures
surface as 403 {"message": "Unauthorized"} via the AuthorizationError
handler in scout_api.api.errors.
"""
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from scout_api.api.schemas import ReportCreate, ReportPatch, ReportSyncRequest, ReportUpdate
from scout_api.core.auth import get_current_user
from scout_api.core.database import get_db
from scout_api.models import User
from scout_api.services import ratings as rating_schema
from scout_api.services.report_service import DEFAULT_PER_PAGE, ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


def get_report_service(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ReportService:
    """Dependency to get a report service bound to the caller."""
    return ReportService(db, user)


@router.get("")
async def list_reports(
    player_id: Optional[int] = Query(None),
    game_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=100),
    page: int = Query(1, ge=1),
    service: ReportService = Depends(get_report_service),
) -> Dict:
    """Reports visible to the caller, newest first."""
    return service.list_reports(
        player_id=player_id,
        game_id=game_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        per_page=per_page,
    )


@router.get("/structure")
async def rating_structure(user: User = Depends(get_current_user)) -> Dict:
    """Sections, subsection labels and the number of ratable subsections."""
    return rating_schema.structure_payload()


@router.get("/current")
async def current_report(
    player_id: Optional[int] = Query(None),
    game_id: Optional[int] = Query(None),
    service: ReportService = Depends(get_report_service),
) -> Dict:
    """
    Get or create the caller's report for a player (and optionally a game).

    The mobile app calls this when a scout selects a player.
    """
    return service.current(player_id, game_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_report(
    body: ReportCreate,
    service: ReportService = Depends(get_report_service),
) -> Dict:
    return service.create(body.player_id, body.game_id, body.ratings, body.notes)


@router.post("/sync")
async def sync_reports(
    body: ReportSyncRequest,
    service: ReportService = Depends(get_report_service),
) -> Dict:
    """Batch push from the offline client; stale writes come back as conflicts."""
    return service.sync([item.model_dump() for item in body.reports])


@router.get("/{report_id}")
async def show_report(
    report_id: int,
    service: ReportService = Depends(get_report_service),
) -> Dict:
    return service.show(report_id)


@router.put("/{report_id}")
async def update_report(
    report_id: int,
    body: ReportUpdate,
    service: ReportService = Depends(get_report_service),
) -> Dict:
    return service.update(report_id, body.model_dump(exclude_unset=True))


@router.patch("/{report_id}")
async def patch_report(
    report_id: int,
    body: ReportPatch,
    service: ReportService = Depends(get_report_service),
) -> Dict:
    """Auto-save of a single rating, subsection note, ratings document or notes."""
    return service.patch(report_id, body.model_dump(exclude_unset=True))


@router.delete("/{report_id}")
async def delete_report(
    report_id: int,
    service: ReportService = Depends(get_report_service),
) -> Dict:
    service.delete(report_id)
    return {"message": "Report deleted successfully"}
