"""
Pydantic request/response schemas for the HTTP API.
"""

from .availability import (
    AvailabilityWindowCreate,
    AvailabilityWindowResponse,
    BookableDatesResponse,
    DaySlotsResponse,
    TimeSlot,
    WindowsForDayReplace,
)
from .booking import (
    BookingCancel,
    BookingCreate,
    BookingResponse,
    BookingTransition,
    PaymentResult,
)
from .package import (
    BalanceAdjustment,
    LessonPackageCreate,
    LessonPackageDeactivate,
    LessonPackageResponse,
    PackageCompletion,
    PurchaseReconcile,
    PurchaseStart,
    ReconciliationResponse,
    StudentPackageResponse,
)

__all__ = [
    "AvailabilityWindowCreate",
    "AvailabilityWindowResponse",
    "BalanceAdjustment",
    "BookableDatesResponse",
    "BookingCancel",
    "BookingCreate",
    "BookingResponse",
    "BookingTransition",
    "DaySlotsResponse",
    "LessonPackageCreate",
    "LessonPackageDeactivate",
    "LessonPackageResponse",
    "PackageCompletion",
    "PaymentResult",
    "PurchaseReconcile",
    "PurchaseStart",
    "ReconciliationResponse",
    "StudentPackageResponse",
    "TimeSlot",
    "WindowsForDayReplace",
]
