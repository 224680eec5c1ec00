# vrumi/repositories/package_repository.py
"""
Package Repository for the booking core.

Holds the ledger's compare-and-set updates. Every change to lessons_used,
lessons_total or status of a StudentPackage is a single UPDATE whose WHERE
clause re-checks the precondition, so two racing requests can never both
pass a check that only one of them should.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.lesson_package import LessonPackage, StudentPackage, StudentPackageStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class LessonPackageRepository(BaseRepository[LessonPackage]):
    """Repository for purchasable package templates."""

    def __init__(self, db: Session):
        super().__init__(db, LessonPackage)

    def get_templates_for_instructor(
        self, instructor_id: str, *, active_only: bool = True
    ) -> List[LessonPackage]:
        query = self.db.query(LessonPackage).filter(LessonPackage.instructor_id == instructor_id)
        if active_only:
            query = query.filter(LessonPackage.is_active.is_(True))
        query = query.order_by(LessonPackage.total_lessons.asc(), LessonPackage.created_at.asc())
        return self._execute_query(query)


class StudentPackageRepository(BaseRepository[StudentPackage]):
    """Repository for student package ledger entries."""

    def __init__(self, db: Session):
        super().__init__(db, StudentPackage)

    def get_active_for_pair(self, student_id: str, instructor_id: str) -> Optional[StudentPackage]:
        try:
            return (
                self.db.query(StudentPackage)
                .filter(
                    StudentPackage.student_id == student_id,
                    StudentPackage.instructor_id == instructor_id,
                    StudentPackage.status == StudentPackageStatus.ACTIVE.value,
                )
                .first()
            )
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to load active package for %s/%s: %s", student_id, instructor_id, exc
            )
            raise RepositoryException("Failed to load active package") from exc

    def get_packages_for_student(
        self, student_id: str, *, status: Optional[StudentPackageStatus] = None
    ) -> List[StudentPackage]:
        query = self.db.query(StudentPackage).filter(StudentPackage.student_id == student_id)
        if status is not None:
            query = query.filter(StudentPackage.status == status.value)
        query = query.order_by(StudentPackage.created_at.desc(), StudentPackage.id.desc())
        return self._execute_query(query)

    # Compare-and-set operations. Each returns True when the row changed.

    def try_consume_lesson(self, package_id: str) -> bool:
        """lessons_used += 1 iff the package is active and has a lesson left."""
        changed = self.conditional_update(
            package_id,
            {StudentPackage.lessons_used: StudentPackage.lessons_used + 1},
            StudentPackage.status == StudentPackageStatus.ACTIVE.value,
            StudentPackage.lessons_used < StudentPackage.lessons_total,
        )
        return changed == 1

    def try_transition(
        self,
        package_id: str,
        *,
        from_statuses: List[StudentPackageStatus],
        to_status: StudentPackageStatus,
        at: datetime,
    ) -> bool:
        """Move status only if the current status is one of ``from_statuses``."""
        values = {StudentPackage.status: to_status.value}
        if to_status is StudentPackageStatus.ACTIVE:
            values[StudentPackage.activated_at] = at
        elif to_status is StudentPackageStatus.COMPLETED:
            values[StudentPackage.completed_at] = at
        changed = self.conditional_update(
            package_id,
            values,
            StudentPackage.status.in_([status.value for status in from_statuses]),
        )
        return changed == 1

    def try_merge_lessons(self, package_id: str, extra_lessons: int, *, at: datetime) -> bool:
        """
        lessons_total += extra_lessons and (re)activate the package.

        The addition happens in SQL so a concurrent consume is never lost.
        """
        changed = self.conditional_update(
            package_id,
            {
                StudentPackage.lessons_total: StudentPackage.lessons_total + extra_lessons,
                StudentPackage.status: StudentPackageStatus.ACTIVE.value,
                StudentPackage.activated_at: at,
                StudentPackage.completed_at: None,
            },
        )
        return changed == 1

    def try_set_balance(
        self,
        package_id: str,
        *,
        lessons_total: int,
        lessons_used: int,
        expected_total: int,
        expected_used: int,
    ) -> bool:
        """Overwrite the balance only if nobody changed it since it was read."""
        changed = self.conditional_update(
            package_id,
            {
                StudentPackage.lessons_total: lessons_total,
                StudentPackage.lessons_used: lessons_used,
            },
            StudentPackage.lessons_total == expected_total,
            StudentPackage.lessons_used == expected_used,
            StudentPackage.status != StudentPackageStatus.COMPLETED.value,
        )
        return changed == 1
