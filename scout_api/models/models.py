"""
Database models for the scouting API.

Teams, players and games are synced from external providers and carry one
column per provider identifier. Reports are user-authored and reference the
synced entities. Every domain table is soft-deletable via ``deleted_at``.

All datetimes are stored as naive UTC.
"""
from datetime import datetime, timezone, date
from typing import Optional

from sqlalchemy import (
    Column, String, Float, Integer, DateTime, Date, ForeignKey, Boolean, Text,
    JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Current time as naive UTC, the storage convention for every column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SoftDeleteMixin:
    """Timestamps plus the deleted_at marker used by soft deletes."""

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Organization(Base):
    """Scouting organization; org admins see every report of their members."""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    users = relationship("User", back_populates="organization")


class User(Base):
    """API user. Role is one of scout, org_admin, super_admin."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(32), nullable=False, default="scout", index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    api_token = Column(String(80), nullable=True, unique=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    organization = relationship("Organization", back_populates="users")
    reports = relationship("Report", back_populates="user")

    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    def is_org_admin(self) -> bool:
        return self.role == "org_admin"


class Team(SoftDeleteMixin, Base):
    """NBA team with arena details used for game cards."""
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    balldontlie_id = Column(Integer, nullable=True, unique=True)
    abbreviation = Column(String(3), nullable=False, index=True)  # Uppercase, e.g. "BOS"
    name = Column(String(255), nullable=False)  # Full name, e.g. "Boston Celtics"
    nickname = Column(String(100), nullable=True)  # e.g. "Celtics"
    location = Column(String(100), nullable=True)  # e.g. "Boston"
    league = Column(String(16), nullable=False, default="NBA")
    logo_url = Column(String(500), nullable=True)
    color = Column(String(16), nullable=True)
    arena_name = Column(String(255), nullable=True)
    arena_city = Column(String(100), nullable=True)
    arena_state = Column(String(50), nullable=True)
    arena_latitude = Column(Float, nullable=True)
    arena_longitude = Column(Float, nullable=True)
    extra_attributes = Column(JSON, nullable=True)

    players = relationship("Player", back_populates="team")


class Player(SoftDeleteMixin, Base):
    """NBA player with one identifier column per provider."""
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    balldontlie_id = Column(Integer, nullable=True, unique=True)
    sportsblaze_player_id = Column(String(64), nullable=True, unique=True)
    nba_player_id = Column(Integer, nullable=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    jersey = Column(String(4), nullable=True)
    position = Column(String(16), nullable=True)
    height = Column(String(16), nullable=True)
    weight = Column(String(16), nullable=True)
    birthdate = Column(Date, nullable=True)
    headshot_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    minutes_played = Column(Float, nullable=True)
    average_minutes_played = Column(Float, nullable=True)
    stats_synced_at = Column(DateTime, nullable=True)
    extra_attributes = Column(JSON, nullable=True)

    team = relationship("Team", back_populates="players")
    reports = relationship("Report", back_populates="player")

    @property
    def age(self) -> Optional[int]:
        if self.birthdate is None:
            return None
        today = date.today()
        before_birthday = (today.month, today.day) < (self.birthdate.month, self.birthdate.day)
        return today.year - self.birthdate.year - int(before_birthday)


class Game(SoftDeleteMixin, Base):
    """Scheduled or played game; external_id is namespaced by provider."""
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(100), nullable=False, unique=True)
    balldontlie_id = Column(Integer, nullable=True, unique=True)
    home_team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    away_team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)
    status = Column(String(32), nullable=False, default="scheduled")
    home_team_score = Column(Integer, nullable=True)
    away_team_score = Column(Integer, nullable=True)
    period = Column(Integer, nullable=True)
    time = Column(String(32), nullable=True)
    season = Column(Integer, nullable=True, index=True)
    postseason = Column(Boolean, nullable=False, default=False)
    extra_attributes = Column(JSON, nullable=True)

    home_team = relationship("Team", foreign_keys=[home_team_id])
    away_team = relationship("Team", foreign_keys=[away_team_id])


class Report(SoftDeleteMixin, Base):
    """Scouting report with structured ratings per section/subsection."""
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    team_id_at_time = Column(Integer, ForeignKey("teams.id"), nullable=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=True, index=True)
    ratings = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    synced_at = Column(DateTime, nullable=True)

    player = relationship("Player", back_populates="reports")
    user = relationship("User", back_populates="reports")
    game = relationship("Game")
    team_at_time = relationship("Team", foreign_keys=[team_id_at_time])

    __table_args__ = (
        Index("ix_reports_user_player_game", "user_id", "player_id", "game_id"),
    )


class SyncMetadata(Base):
    """Tracks sync job status and health metrics for all data sources.

    One row per (source, data_type), overwritten by every run:
    - Last sync time (started and completed)
    - Status of the last run
    - Records processed, created, updated and skipped
    - Sync duration
    """
    __tablename__ = "sync_metadata"

    id = Column(String(36), primary_key=True)
    source = Column(String(32), nullable=False)  # sportsblaze, balldontlie, llm
    data_type = Column(String(32), nullable=False)  # games, teams, players, minutes
    last_sync_started_at = Column(DateTime, nullable=True)
    last_sync_completed_at = Column(DateTime, nullable=True, index=True)
    last_sync_status = Column(String(16), nullable=True, index=True)  # success, failed, in_progress
    records_processed = Column(Integer, nullable=False, default=0)
    records_created = Column(Integer, nullable=False, default=0)
    records_updated = Column(Integer, nullable=False, default=0)
    records_skipped = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    sync_duration_ms = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("source", "data_type", name="uq_sync_metadata_source_type"),
    )
