# backend/petstay/repositories/base_repository.py
"""
Base Repository Pattern for the PetStay settlement core

Provides the foundation for the SQLAlchemy repositories with:
- Lookup, insert and save helpers
- Row locking for read-modify-write paths
- Optimistic version failures surfaced as StaleRecordException
- Paginated query helper

Repositories never commit; the unit of work belongs to the service layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any, Generic, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.exceptions import RepositoryException, StaleRecordException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[T]):
    """
    Minimal data access contract shared by the SQL and in-memory backends.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key, or None."""

    @abstractmethod
    def add(self, entity: T) -> T:
        """
        Insert a new entity.

        Raises:
            RepositoryException: If a uniqueness or integrity rule is violated
        """

    @abstractmethod
    def save(self, entity: T) -> T:
        """
        Persist changes made to an entity previously returned by this repository.

        Raises:
            StaleRecordException: If a concurrent writer bumped the version first
        """


class BaseRepository(IRepository[T]):
    """
    Concrete SQLAlchemy repository with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def get_for_update(self, id: str) -> Optional[T]:
        """Fetch by id holding a row lock until the unit of work ends."""
        return self._first(select(self.model).where(self.model.id == id).with_for_update())  # type: ignore[attr-defined]

    def add(self, entity: T) -> T:
        """
        Insert a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.error(
                "Integrity error creating %s: %s", self.model.__name__, exc, exc_info=True
            )
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def save(self, entity: T) -> T:
        try:
            self.db.flush()
            return entity
        except StaleDataError as exc:
            self.logger.warning("Stale %s on save: %s", self.model.__name__, exc)
            raise StaleRecordException(
                f"{self.model.__name__} was modified by another transaction"
            ) from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to update {self.model.__name__}: {str(e)}")

    # Protected helper methods for use by subclasses

    def _first(self, stmt: Select[Any]) -> Optional[T]:
        try:
            return self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Query execution error: {str(e)}")
            raise RepositoryException(f"Query failed: {str(e)}")

    def _all(self, stmt: Select[Any]) -> List[T]:
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Query execution error: {str(e)}")
            raise RepositoryException(f"Query failed: {str(e)}")

    def _scalar(self, stmt: Select[Any]) -> Any:
        try:
            return self.db.execute(stmt).scalar()
        except SQLAlchemyError as e:
            self.logger.error(f"Scalar query error: {str(e)}")
            raise RepositoryException(f"Scalar query failed: {str(e)}")

    def _paginate(self, stmt: Select[Any], skip: int, limit: int) -> Tuple[List[T], int]:
        """Return one page of ``stmt`` plus the unpaged row count."""
        total = self._scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
        items = self._all(stmt.offset(skip).limit(limit))
        return items, int(total or 0)
