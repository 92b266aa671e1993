"""
Shared query and write helpers for the repositories.

Repositories only stage changes on the session. Services and sync
orchestrators decide when to commit, so one roster merge or provider run
lands as a single transaction.

Soft deletes: models with a ``deleted_at`` column are filtered out of every
query unless ``with_trashed=True`` is passed. ``soft_delete`` only stamps
``deleted_at``; ``purge`` removes the row for good. They are separate
operations and nothing calls one on behalf of the other.

Example:
    class TeamRepository(BaseRepository[Team]):
        def find_by_abbreviation(self, abbreviation: str) -> List[Team]:
            return self.where(func.upper(Team.abbreviation) == abbreviation.upper())
"""
from abc import ABC
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from scout_api.models import utcnow

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """Repository over one mapped model (teams, players, games or reports)."""

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    @property
    def soft_deletes(self) -> bool:
        return hasattr(self.model_type, "deleted_at")

    # ========================================================================
    # Query Builders
    # ========================================================================

    def query(self, with_trashed: bool = False) -> Query:
        """Get a new query object, excluding soft-deleted rows by default."""
        query = self.db.query(self.model_type)
        if self.soft_deletes and not with_trashed:
            query = query.filter(self.model_type.deleted_at.is_(None))
        return query

    def where(self, *criterion, with_trashed: bool = False) -> List[T]:
        return self.query(with_trashed).filter(*criterion).all()

    def where_first(self, *criterion, with_trashed: bool = False) -> Optional[T]:
        return self.query(with_trashed).filter(*criterion).first()

    # ========================================================================
    # CRUD Operations
    # ========================================================================

    def find_by_id(self, id: int, with_trashed: bool = False) -> Optional[T]:
        return self.query(with_trashed).filter(self.model_type.id == id).first()

    def find_by_ids(self, ids: List[int], with_trashed: bool = False) -> List[T]:
        if not ids:
            return []
        return self.query(with_trashed).filter(self.model_type.id.in_(ids)).all()

    def create(self, **kwargs) -> T:
        """Create a new record (added to the session, not committed)."""
        instance = self.model_type(**kwargs)
        self.db.add(instance)
        return instance

    def update(self, instance: T, **kwargs) -> T:
        """Set known columns and bump updated_at; unknown keys are ignored."""
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        if hasattr(instance, "updated_at"):
            instance.updated_at = utcnow()
        return instance

    def soft_delete(self, instance: T) -> T:
        """Mark a record deleted without removing it."""
        instance.deleted_at = utcnow()
        return instance

    def purge(self, instance: T) -> None:
        """Permanently delete a record, whether or not it is soft-deleted."""
        self.db.delete(instance)

    # ========================================================================
    # Counting
    # ========================================================================

    def count(self, *criterion, with_trashed: bool = False) -> int:
        query = self.query(with_trashed).with_entities(func.count(self.model_type.id))
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    # ========================================================================
    # Pagination
    # ========================================================================

    @staticmethod
    def paginate(query: Query, page: int = 1, per_page: int = 20) -> Dict[str, Any]:
        """
        Paginate a query.

        Returns:
            Dict with items, current_page, per_page, total and last_page
        """
        page = max(page, 1)
        total = query.order_by(None).count()
        items = query.offset((page - 1) * per_page).limit(per_page).all()
        last_page = max((total + per_page - 1) // per_page, 1)
        return {
            "items": items,
            "current_page": page,
            "per_page": per_page,
            "total": total,
            "last_page": last_page,
        }

