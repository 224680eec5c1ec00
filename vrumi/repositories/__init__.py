"""
Repository Pattern Implementation for the booking core.

This package is the persistent-store boundary: repositories wrap an
SQLAlchemy session and expose get/find/create/update plus the
compare-and-set updates the package ledger relies on.

Usage:
    from vrumi.repositories import RepositoryFactory

    repository = RepositoryFactory.create_student_package_repository(db)
    package = repository.get_active_for_pair(student_id, instructor_id)
"""

from .audit_repository import AuditRepository
from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .package_repository import LessonPackageRepository, StudentPackageRepository

__all__ = [
    "AuditRepository",
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "LessonPackageRepository",
    "RepositoryFactory",
    "StudentPackageRepository",
]
