"""
Database models for the booking core.

The models are organized by functionality:
- Instructor availability windows
- Bookings
- Lesson package templates and student package ledger entries
- Audit log
"""

from .audit_log import AuditLog
from .availability import InstructorAvailability
from .booking import Booking, BookingStatus, PaymentStatus, VehicleType
from .lesson_package import LessonPackage, PurchaseMode, StudentPackage, StudentPackageStatus

__all__ = [
    "AuditLog",
    "Booking",
    "BookingStatus",
    "InstructorAvailability",
    "LessonPackage",
    "PaymentStatus",
    "PurchaseMode",
    "StudentPackage",
    "StudentPackageStatus",
    "VehicleType",
]
