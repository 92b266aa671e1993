"""
Database engine and sessions.

HTTP handlers get a session per request through ``get_db``. Sync jobs and
CLI commands open their own with ``session_scope`` so a job never shares a
session with a request.
"""
import os
from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from scout_api.core.config import settings

DATABASE_URL = settings.DATABASE_URL


def _engine_options(url: str) -> Dict[str, Any]:
    if not url.startswith("sqlite"):
        return {"poolclass": QueuePool, "pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}

    # FastAPI runs sync dependencies in a threadpool
    options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # An in-memory database lives and dies with its one connection
        options["poolclass"] = StaticPool
    return options


engine = create_engine(
    DATABASE_URL,
    echo=os.getenv("SQL_ECHO", "false").lower() == "true",
    **_engine_options(DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Session for a job or command.

    Commits are left to the caller (orchestrators commit per run); anything
    still pending when an exception escapes is rolled back.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create any missing tables."""
    from scout_api.models import Base
    Base.metadata.create_all(bind=engine, checkfirst=True)
