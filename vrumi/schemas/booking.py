# vrumi/schemas/booking.py
"""
Booking schemas.

Clean Architecture: request DTOs carry only what the caller decides;
price split, payment status and vehicle type for package-funded lessons
are set by BookingService.
"""

import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from ..models.booking import BookingStatus, PaymentStatus, VehicleType
from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel

DateType = datetime.date
TimeType = datetime.time
DateTimeType = datetime.datetime


class BookingCreate(StrictRequestModel):
    """Request to book one slot."""

    student_id: str
    instructor_id: str
    scheduled_date: DateType
    scheduled_time: TimeType
    lesson_price: Decimal = Field(..., ge=0, decimal_places=2)
    duration_minutes: Optional[int] = Field(default=None, gt=0, le=240)
    vehicle_type: VehicleType = VehicleType.INSTRUCTOR
    use_package_id: Optional[str] = None

    @field_validator("scheduled_time")
    @classmethod
    def validate_on_the_hour(cls, v: TimeType) -> TimeType:
        if v.minute or v.second or v.microsecond:
            raise ValueError("Lessons start on the hour")
        return v


class BookingCancel(StrictRequestModel):
    cancelled_by_id: str
    reason: Optional[str] = Field(default=None, max_length=500)
    refund: bool = False


class BookingTransition(StrictRequestModel):
    actor_id: Optional[str] = None


class PaymentResult(StrictRequestModel):
    """Outcome reported by the payment checkout."""

    succeeded: bool


class BookingResponse(StandardizedModel):
    id: str
    student_id: str
    instructor_id: str
    scheduled_date: DateType
    scheduled_time: TimeType
    duration_minutes: int
    vehicle_type: VehicleType
    price: Money
    platform_fee: Money
    instructor_amount: Money
    status: BookingStatus
    payment_status: PaymentStatus
    use_package_id: Optional[str] = None
    created_at: Optional[DateTimeType] = None
    confirmed_at: Optional[DateTimeType] = None
    completed_at: Optional[DateTimeType] = None
    cancelled_at: Optional[DateTimeType] = None
    cancelled_by_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
