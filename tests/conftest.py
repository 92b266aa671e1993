"""Shared pytest fixtures for basketball-scout-api tests."""
import os

# Settings are read at import time; point everything at in-process backends first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["ENVIRONMENT"] = "test"
os.environ["CACHE_STORAGE"] = "memory"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_JSON"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import date
from typing import AsyncGenerator, Dict, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    from scout_api.models import Base

    # StaticPool keeps the single in-memory connection alive so the API
    # (running in a threadpool) sees the same data as the test
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; take it over
    # See: https://docs.sqlalchemy.org/en/20/dialects/sqlite.html#serializable-isolation-savepoints-transactional-ddl
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture(autouse=True)
def memory_cache():
    """Fresh in-process cache for every test."""
    from scout_api.core.cache import MemoryCache, set_cache

    cache = MemoryCache()
    set_cache(cache)
    yield cache
    set_cache(None)


@pytest.fixture(scope="function")
async def async_client(db_session: Session) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for testing FastAPI endpoints."""
    from scout_api.main import app
    from scout_api.core.database import get_db

    # Override database dependency to use test session
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# =============================================================================
# SAMPLE DATA
# =============================================================================

@pytest.fixture
def teams(db_session: Session) -> Dict[str, "Team"]:
    """Celtics and Lakers with BallDontLie ids and arena details."""
    from scout_api.models import Team

    rows = {
        "BOS": Team(
            balldontlie_id=2,
            abbreviation="BOS",
            name="Boston Celtics",
            nickname="Celtics",
            location="Boston",
            arena_name="TD Garden",
            arena_city="Boston",
            arena_state="MA",
            arena_latitude=42.3662,
            arena_longitude=-71.0621,
        ),
        "LAL": Team(
            balldontlie_id=14,
            abbreviation="LAL",
            name="Los Angeles Lakers",
            nickname="Lakers",
            location="Los Angeles",
            arena_name="Crypto.com Arena",
            arena_city="Los Angeles",
            arena_state="CA",
        ),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture
def players(db_session: Session, teams):
    """Three Celtics and one Laker, with and without minutes data."""
    from scout_api.models import Player

    rows = [
        Player(name="Jayson Tatum", team_id=teams["BOS"].id, jersey="0", position="F",
               balldontlie_id=434, sportsblaze_player_id="sb-tatum", nba_player_id=1628369,
               is_active=True, minutes_played=2400.0, average_minutes_played=36.2,
               birthdate=date(1998, 3, 3)),
        Player(name="Jaylen Brown", team_id=teams["BOS"].id, jersey="7", position="G-F",
               balldontlie_id=70, sportsblaze_player_id="sb-brown", nba_player_id=1627759,
               is_active=True, minutes_played=2300.0, average_minutes_played=34.1),
        Player(name="Neemias Queta", team_id=teams["BOS"].id, jersey="88", position="C",
               balldontlie_id=3547, is_active=False),
        Player(name="LeBron James", team_id=teams["LAL"].id, jersey="23", position="F",
               balldontlie_id=237, sportsblaze_player_id="sb-james", nba_player_id=2544,
               is_active=True, minutes_played=2100.0, average_minutes_played=35.0),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


@pytest.fixture
def users(db_session: Session) -> Dict[str, "User"]:
    """One user per role, plus a scout from another organization."""
    from scout_api.models import Organization, User

    celtics_org = Organization(name="Green Scouting")
    other_org = Organization(name="Purple Scouting")
    db_session.add_all([celtics_org, other_org])
    db_session.flush()

    rows = {
        "scout": User(name="Sam Scout", email="scout@example.com", role="scout",
                      organization_id=celtics_org.id, api_token="scout-token"),
        "other_scout": User(name="Olive Scout", email="olive@example.com", role="scout",
                            organization_id=celtics_org.id, api_token="other-scout-token"),
        "org_admin": User(name="Ada Admin", email="admin@example.com", role="org_admin",
                          organization_id=celtics_org.id, api_token="org-admin-token"),
        "outsider": User(name="Out Sider", email="outsider@example.com", role="scout",
                         organization_id=other_org.id, api_token="outsider-token"),
        "super_admin": User(name="Root", email="root@example.com", role="super_admin",
                            api_token="super-admin-token"),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


def auth(user) -> Dict[str, str]:
    """Bearer header for a fixture user."""
    return {"Authorization": f"Bearer {user.api_token}"}
