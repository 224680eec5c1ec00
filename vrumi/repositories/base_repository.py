# vrumi/repositories/base_repository.py
"""
Base Repository Pattern for the booking core.

Provides the foundation for all repository classes with:
- Common CRUD operations
- Conditional (compare-and-set) updates evaluated by the database
- Transaction support (managed by services)

The repository layer is the persistent-store boundary: services never
write SQL, they call get/find/create/update here.
"""

from contextlib import contextmanager
import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Context manager that commits/rolls back the underlying session."""
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as exc:
            self.logger.error("Repository transaction failed: %s", exc)
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            raise

    def get_by_id(self, id: str, *, fresh: bool = False) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        With ``fresh=True`` the row is re-read even if the session already
        holds a copy, which is needed after a conditional update.
        """
        try:
            if fresh:
                return self.db.get(self.model, id, populate_existing=True)
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except IntegrityError as exc:
            self.logger.warning("Integrity error creating %s: %s", self.model.__name__, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}") from e

    def update(self, id: str, **kwargs: Any) -> Optional[T]:
        """
        Update an existing entity.

        Only updates provided fields, preserves others. This is a plain
        read-modify-write; use conditional_update for shared counters.
        """
        try:
            entity = self.get_by_id(id)
            if not entity:
                return None

            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)

            self.db.flush()
            return entity
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating {self.model.__name__} {id}: {str(e)}")
            raise RepositoryException(f"Failed to update {self.model.__name__}: {str(e)}") from e

    def conditional_update(self, id: str, values: Dict[Any, Any], *criteria: Any) -> int:
        """
        Compare-and-set update evaluated entirely by the database.

        Issues ``UPDATE ... SET values WHERE id = :id AND criteria`` and
        returns the number of rows changed (0 or 1). ``values`` may contain
        SQL expressions such as ``Model.counter + 1``.
        """
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            for criterion in criteria:
                query = query.filter(criterion)
            rowcount = query.update(values, synchronize_session=False)
            self.db.flush()
            return int(rowcount or 0)
        except IntegrityError:
            # Callers translate constraint violations into domain errors.
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Conditional update of {self.model.__name__} {id} failed: {e}")
            raise RepositoryException(f"Failed to update {self.model.__name__}: {str(e)}") from e

    def find_by(self, **kwargs: Any) -> List[T]:
        """
        Find entities by given criteria.

        Args:
            **kwargs: Filter criteria (exact match)

        Returns:
            List of matching entities
        """
        try:
            return self.db.query(self.model).filter_by(**kwargs).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding by criteria: {str(e)}")
            raise RepositoryException(f"Failed to find records: {str(e)}")

    def delete(self, id: str) -> bool:
        """Delete an entity by its primary key. Returns False if not found."""
        try:
            entity = self.get_by_id(id)
            if not entity:
                return False
            self.db.delete(entity)
            self.db.flush()
            return True
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting {self.model.__name__} {id}: {str(e)}")
            raise RepositoryException(f"Failed to delete {self.model.__name__}: {str(e)}") from e

    def _execute_query(self, query: Query) -> List[T]:
        """Execute query with error handling."""
        try:
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Query execution error: {str(e)}")
            raise RepositoryException(f"Query failed: {str(e)}")
