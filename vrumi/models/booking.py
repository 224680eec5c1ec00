# vrumi/models/booking.py
"""
Booking model for the booking core.

A booking is one hour-granularity lesson between a student and an
instructor. It is funded either by a direct payment or by a lesson from an
active Student Package (use_package_id).

Slot exclusivity lives in the database: a partial unique index allows at
most one non-cancelled booking per (instructor, date, time). Bookings are
never deleted; cancellation is a status transition.
"""

from enum import Enum
import logging
from typing import Any, FrozenSet, Mapping

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Created, waiting for the instructor
    CONFIRMED = "confirmed"  # Instructor accepted
    CANCELLED = "cancelled"  # Cancelled by student, instructor or admin
    COMPLETED = "completed"  # Lesson happened


class PaymentStatus(str, Enum):
    """Payment state of a booking."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class VehicleType(str, Enum):
    """Whose car the lesson uses."""

    INSTRUCTOR = "instructor"
    STUDENT = "student"


BOOKING_TRANSITIONS: Mapping[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

PAYMENT_TRANSITIONS: Mapping[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def can_transition_booking(current: BookingStatus, requested: BookingStatus) -> bool:
    return requested in BOOKING_TRANSITIONS[current]


def can_transition_payment(current: PaymentStatus, requested: PaymentStatus) -> bool:
    return requested in PAYMENT_TRANSITIONS[current]


class Booking(Base):
    """
    Self-contained booking record between student and instructor.

    Price, fee split and vehicle type are snapshotted at booking time.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    student_id = Column(String(26), nullable=False, index=True)
    instructor_id = Column(String(26), nullable=False)

    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    vehicle_type = Column(String(20), nullable=False, default=VehicleType.INSTRUCTOR.value)

    # Price snapshot
    price = Column(Numeric(10, 2), nullable=False)
    platform_fee = Column(Numeric(10, 2), nullable=False)
    instructor_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    use_package_id = Column(
        String(26), ForeignKey("student_packages.id"), nullable=True, index=True
    )

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation tracking
    cancelled_by_id = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    package = relationship("StudentPackage", back_populates="bookings")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'failed')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint(
            "vehicle_type IN ('instructor', 'student')",
            name="ck_bookings_vehicle_type",
        ),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        Index(
            "uq_bookings_instructor_active_slot",
            "instructor_id",
            "scheduled_date",
            "scheduled_time",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value
        if not self.payment_status:
            self.payment_status = PaymentStatus.PENDING.value

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: student={self.student_id}, "
            f"instructor={self.instructor_id}, date={self.scheduled_date}, "
            f"time={self.scheduled_time}, status={self.status}>"
        )

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def payment_state(self) -> PaymentStatus:
        return PaymentStatus(self.payment_status)

