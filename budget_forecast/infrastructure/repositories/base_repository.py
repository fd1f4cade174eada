"""
Base Repository - Session handling and column lookups shared by the
forecast storage repositories.
"""
from abc import ABC
from typing import Generic, TypeVar, List, Optional, Type
from sqlalchemy.orm import Session

from budget_forecast.models import Base

T = TypeVar('T', bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Queries and unit-of-work helpers for one SQLAlchemy model `T`.
    """

    def __init__(self, session: Session, model_class: Type[T]):
        self.session = session
        self.model_class = model_class

    def find_by(self, **criteria) -> List[T]:
        """
        Retrieve entities whose columns equal the given values.

        Args:
            **criteria: Column-value pairs to match

        Returns:
            Matching entities ordered by primary key
        """
        query = self.session.query(self.model_class)
        for column, value in criteria.items():
            query = query.filter(getattr(self.model_class, column) == value)
        return query.order_by(self.model_class.id).all()

    def first_by(self, **criteria) -> Optional[T]:
        matches = self.find_by(**criteria)
        return matches[0] if matches else None

    def add(self, entity: T) -> T:
        self.session.add(entity)
        return entity

    def commit(self) -> None:
        """Commit the current transaction."""
        self.session.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.session.rollback()

    def flush(self) -> None:
        """Flush pending changes to the database."""
        self.session.flush()

    def exists(self, **criteria) -> bool:
        """Whether a row matching every column-value pair is stored."""
        return self.first_by(**criteria) is not None
