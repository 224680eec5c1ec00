# vrumi/repositories/availability_repository.py
"""
Availability Repository for the booking core.

Data access for recurring weekly instructor windows.
"""

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import InstructorAvailability
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[InstructorAvailability]):
    """Repository for instructor availability windows."""

    def __init__(self, db: Session):
        super().__init__(db, InstructorAvailability)

    def get_windows_for_instructor(self, instructor_id: str) -> List[InstructorAvailability]:
        """All windows for an instructor, ordered by day then start time."""
        try:
            return (
                self.db.query(InstructorAvailability)
                .filter(InstructorAvailability.instructor_id == instructor_id)
                .order_by(
                    InstructorAvailability.day_of_week.asc(),
                    InstructorAvailability.start_time.asc(),
                )
                .all()
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load availability for %s: %s", instructor_id, exc)
            raise RepositoryException("Failed to load availability windows") from exc

    def delete_windows_for_day(self, instructor_id: str, day_of_week: int) -> int:
        """Remove every window on one weekday; returns the number removed."""
        try:
            deleted = (
                self.db.query(InstructorAvailability)
                .filter(
                    InstructorAvailability.instructor_id == instructor_id,
                    InstructorAvailability.day_of_week == day_of_week,
                )
                .delete(synchronize_session=False)
            )
            self.db.flush()
            return int(deleted or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to clear availability for %s: %s", instructor_id, exc)
            raise RepositoryException("Failed to clear availability windows") from exc
