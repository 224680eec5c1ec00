# vrumi/repositories/factory.py
"""
Repository Factory for the booking core.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .audit_repository import AuditRepository
from .availability_repository import AvailabilityRepository
from .booking_repository import BookingRepository
from .package_repository import LessonPackageRepository, StudentPackageRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services can be handed fakes in tests.
    """

    @staticmethod
    def create_availability_repository(db: Session) -> AvailabilityRepository:
        return AvailabilityRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_lesson_package_repository(db: Session) -> LessonPackageRepository:
        return LessonPackageRepository(db)

    @staticmethod
    def create_student_package_repository(db: Session) -> StudentPackageRepository:
        return StudentPackageRepository(db)

    @staticmethod
    def create_audit_repository(db: Session) -> AuditRepository:
        return AuditRepository(db)
