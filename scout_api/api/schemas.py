"""
Request bodies accepted by the API.

Field limits mirror what the mobile client and admin tools send. Rating
documents are validated structurally by ``scout_api.services.ratings``
after parsing, so ``ratings`` is typed loosely here.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

RatingValue = Optional[int]


class PlayerCreate(BaseModel):
    """Admin player creation."""
    name: str = Field(..., min_length=1, max_length=255)
    team_id: Optional[int] = None
    jersey: Optional[str] = Field(None, max_length=4)
    position: Optional[str] = Field(None, max_length=16)
    height: Optional[str] = Field(None, max_length=16)
    weight: Optional[str] = Field(None, max_length=16)
    birthdate: Optional[date] = None
    headshot_url: Optional[str] = Field(None, max_length=500)
    balldontlie_id: Optional[int] = None
    sportsblaze_player_id: Optional[str] = Field(None, max_length=64)
    nba_player_id: Optional[int] = None
    is_active: bool = True
    extra_attributes: Optional[Dict[str, Any]] = None


class PlayerUpdate(BaseModel):
    """Admin player update; only fields present in the body are written."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    team_id: Optional[int] = None
    jersey: Optional[str] = Field(None, max_length=4)
    position: Optional[str] = Field(None, max_length=16)
    height: Optional[str] = Field(None, max_length=16)
    weight: Optional[str] = Field(None, max_length=16)
    birthdate: Optional[date] = None
    headshot_url: Optional[str] = Field(None, max_length=500)
    sportsblaze_player_id: Optional[str] = Field(None, max_length=64)
    nba_player_id: Optional[int] = None
    is_active: Optional[bool] = None
    extra_attributes: Optional[Dict[str, Any]] = None


class PlayerMerge(BaseModel):
    target_id: int
    source_ids: List[int] = Field(..., min_length=1)


class ReportCreate(BaseModel):
    player_id: int
    game_id: Optional[int] = None
    ratings: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class ReportUpdate(BaseModel):
    ratings: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class ReportPatch(BaseModel):
    """Auto-save payload: one subsection, the whole ratings document, or notes."""
    section: Optional[str] = None
    subsection: Optional[str] = None
    rating: RatingValue = Field(None, ge=1, le=5)
    future: RatingValue = Field(None, ge=1, le=5)
    subsection_notes: Optional[str] = Field(None, max_length=1000)
    ratings: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class SyncReportItem(BaseModel):
    id: Optional[int] = None
    player_id: int
    game_id: Optional[int] = None
    ratings: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    local_updated_at: datetime


class ReportSyncRequest(BaseModel):
    reports: List[SyncReportItem]
