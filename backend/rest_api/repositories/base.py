"""
Base Repository implementation.
Provides common data access patterns shared by the chat repositories.
"""

from abc import ABC, abstractmethod
from typing import TypeVar, Generic

from sqlalchemy import select
from sqlalchemy.orm import Session


ModelT = TypeVar("ModelT")


class BaseRepository(ABC, Generic[ModelT]):
    """
    Abstract base repository with common operations.

    Repositories never commit; the owning service or unit of work does.

    Subclasses must implement:
    - model: Return the SQLAlchemy model class
    """

    def __init__(self, db: Session):
        self._db = db

    @property
    @abstractmethod
    def model(self) -> type[ModelT]:
        """Return the SQLAlchemy model class."""
        ...

    def find_by_id(self, entity_id: int) -> ModelT | None:
        """Find a single entity by primary key."""
        return self._db.scalar(
            select(self.model).where(self.model.id == entity_id)  # type: ignore[attr-defined]
        )

    def add(self, entity: ModelT) -> ModelT:
        """Stage a new entity and flush so its id is assigned."""
        self._db.add(entity)
        self._db.flush()
        return entity
