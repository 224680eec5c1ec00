# vrumi/services/booking_service.py
"""
Booking Service for the booking core.

Creates bookings against instructor availability and moves them through
their lifecycle. Slot exclusivity is not pre-checked here: the insert is
attempted and the partial unique index on bookings decides, which is the
only check that holds under concurrent requests.
"""

from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import (
    BookingNotFoundException,
    InvalidBookingTransitionException,
    SlotConflictException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import Clock, get_local_timezone
from ..models.audit_log import AuditLog
from ..models.booking import (
    Booking,
    BookingStatus,
    PaymentStatus,
    VehicleType,
    can_transition_booking,
    can_transition_payment,
)
from ..repositories.audit_repository import AuditRepository
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from .availability_service import AvailabilityService
from .base import BaseService
from .package_ledger_service import PackageLedgerService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def split_price(price: Decimal, fee_rate: Optional[Decimal] = None) -> Tuple[Decimal, Decimal]:
    """
    Split a lesson price into (platform_fee, instructor_amount), rounded to cents.

    The instructor amount is derived by subtraction so the two parts always
    add back up to the price.
    """
    rate = settings.platform_fee_rate if fee_rate is None else Decimal(fee_rate)
    price = Decimal(price).quantize(CENTS, rounding=ROUND_HALF_UP)
    platform_fee = (price * rate).quantize(CENTS, rounding=ROUND_HALF_UP)
    return platform_fee, price - platform_fee


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Package-funded bookings consume a lesson in the same transaction that
    inserts the booking, so a refused consumption leaves no booking behind.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        booking_repository: Optional[BookingRepository] = None,
        availability_service: Optional[AvailabilityService] = None,
        ledger_service: Optional[PackageLedgerService] = None,
        audit_repository: Optional[AuditRepository] = None,
    ):
        super().__init__(db, clock)
        self.repository = booking_repository or RepositoryFactory.create_booking_repository(db)
        self.availability_service = availability_service or AvailabilityService(
            db, clock=self.clock, booking_repository=self.repository
        )
        self.ledger_service = ledger_service or PackageLedgerService(db, clock=self.clock)
        self.audit_repository = audit_repository or RepositoryFactory.create_audit_repository(db)

    # Queries

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id, fresh=True)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        return booking

    def list_bookings_for_student(
        self, student_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        return self.repository.get_bookings_for_student(student_id, status=status)

    def list_bookings_for_package(self, student_package_id: str) -> List[Booking]:
        return self.repository.get_bookings_for_package(student_package_id)

    # Creation

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        student_id: str,
        instructor_id: str,
        scheduled_date: date,
        scheduled_time: time,
        lesson_price: Decimal,
        *,
        duration_minutes: Optional[int] = None,
        vehicle_type: VehicleType | str = VehicleType.INSTRUCTOR,
        use_package_id: Optional[str] = None,
    ) -> Booking:
        """
        Book one lesson slot.

        Raises:
            ValidationException: malformed time, price or duration
            SlotUnavailableException: slot outside availability or already past
            SlotConflictException: slot taken by another non-cancelled booking
            PackageNotFoundException / PackageNotActiveException /
            InsufficientBalanceException: package funding refused
        """
        duration = duration_minutes or settings.default_lesson_duration_minutes
        self._validate_booking_input(scheduled_time, lesson_price, duration)

        if not self.availability_service.is_slot_offered(
            instructor_id, scheduled_date, scheduled_time
        ):
            raise SlotUnavailableException(instructor_id, scheduled_date, scheduled_time)

        if use_package_id:
            package = self.ledger_service.get_package(use_package_id)
            PackageLedgerService.ensure_same_pair(package, student_id, instructor_id)
            price, platform_fee, instructor_amount = ZERO, ZERO, ZERO
            payment_status = PaymentStatus.PAID
            vehicle = VehicleType(package.vehicle_type)
        else:
            price = Decimal(lesson_price).quantize(CENTS, rounding=ROUND_HALF_UP)
            platform_fee, instructor_amount = split_price(price)
            payment_status = PaymentStatus.PENDING
            vehicle = VehicleType(vehicle_type)

        self.log_operation(
            "create_booking",
            student_id=student_id,
            instructor_id=instructor_id,
            scheduled_date=str(scheduled_date),
            scheduled_time=str(scheduled_time),
            use_package_id=use_package_id,
        )

        try:
            with self.repository.transaction():
                booking = self.repository.create(
                    student_id=student_id,
                    instructor_id=instructor_id,
                    scheduled_date=scheduled_date,
                    scheduled_time=scheduled_time,
                    duration_minutes=duration,
                    vehicle_type=vehicle.value,
                    price=price,
                    platform_fee=platform_fee,
                    instructor_amount=instructor_amount,
                    status=BookingStatus.PENDING.value,
                    payment_status=payment_status.value,
                    use_package_id=use_package_id,
                )
                if use_package_id:
                    self.ledger_service.consume_one_lesson(use_package_id, use_transaction=False)
                self._write_booking_audit(
                    booking,
                    "create",
                    actor_id=student_id,
                    actor_role=RoleName.STUDENT.value,
                    before=None,
                )
        except IntegrityError as exc:
            raise SlotConflictException(
                details=self._build_conflict_details(
                    instructor_id, scheduled_date, scheduled_time, student_id
                )
            ) from exc
        except OperationalError as exc:
            if self._is_lock_error(exc):
                raise SlotConflictException(
                    message="This slot is being booked by someone else; please retry",
                    details=self._build_conflict_details(
                        instructor_id, scheduled_date, scheduled_time, student_id
                    ),
                ) from exc
            raise

        self.logger.info(
            "Created booking %s for instructor %s at %s %s",
            booking.id,
            instructor_id,
            scheduled_date,
            scheduled_time,
        )
        return booking

    # Lifecycle

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(self, booking_id: str, *, actor_id: Optional[str] = None) -> Booking:
        return self._transition(
            booking_id,
            BookingStatus.CONFIRMED,
            {Booking.confirmed_at: self.now_utc()},
            actor_id=actor_id,
            actor_role=RoleName.INSTRUCTOR.value,
        )

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, booking_id: str, *, actor_id: Optional[str] = None) -> Booking:
        return self._transition(
            booking_id,
            BookingStatus.COMPLETED,
            {Booking.completed_at: self.now_utc()},
            actor_id=actor_id,
            actor_role=RoleName.INSTRUCTOR.value,
        )

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        booking_id: str,
        cancelled_by_id: str,
        reason: Optional[str] = None,
        *,
        refund: bool = False,
    ) -> Booking:
        """
        Cancel a pending or confirmed booking and free its slot.

        With ``refund=True`` a paid booking moves to refunded in the same
        transaction, provided the lesson starts at least
        ``cancellation_window_hours`` from now. Later cancellations go through
        without a refund. A lesson taken from a package is not returned to it.
        """
        booking = self.get_booking(booking_id)
        if refund and not self.is_refund_eligible(booking):
            self.logger.info(
                "Booking %s cancelled inside the %sh window; payment kept",
                booking.id,
                settings.cancellation_window_hours,
            )
            refund = False
        if reason is None:
            reason = self._default_cancellation_reason(booking, cancelled_by_id)

        return self._transition(
            booking_id,
            BookingStatus.CANCELLED,
            {
                Booking.cancelled_at: self.now_utc(),
                Booking.cancelled_by_id: cancelled_by_id,
                Booking.cancellation_reason: reason,
            },
            actor_id=cancelled_by_id,
            actor_role=None,
            refund=refund,
        )

    def is_refund_eligible(self, booking: Booking) -> bool:
        """True when the lesson is at least cancellation_window_hours away."""
        lesson_start = get_local_timezone().localize(
            datetime.combine(booking.scheduled_date, booking.scheduled_time)
        )
        window = timedelta(hours=settings.cancellation_window_hours)
        return lesson_start - self.now() >= window

    @BaseService.measure_operation("record_payment")
    def record_payment(self, booking_id: str, succeeded: bool) -> Booking:
        """Record the outcome of a direct-payment checkout."""
        booking = self.get_booking(booking_id)
        current = booking.payment_state
        requested = PaymentStatus.PAID if succeeded else PaymentStatus.FAILED

        if booking.booking_status is BookingStatus.CANCELLED or not can_transition_payment(
            current, requested
        ):
            raise InvalidBookingTransitionException(booking.id, current.value, requested.value)

        before = self._snapshot_booking(booking)
        with self.transaction():
            if not self.repository.try_set_payment_status(
                booking.id, expected=current, requested=requested
            ):
                latest = self.get_booking(booking_id)
                raise InvalidBookingTransitionException(
                    booking.id, latest.payment_status, requested.value
                )
            booking = self.get_booking(booking_id)
            self._write_booking_audit(
                booking,
                f"payment_{requested.value}",
                actor_id=None,
                actor_role=RoleName.SYSTEM.value,
                before=before,
            )
        return booking

    def _transition(
        self,
        booking_id: str,
        requested: BookingStatus,
        values: Dict[Any, Any],
        *,
        actor_id: Optional[str],
        actor_role: Optional[str],
        refund: bool = False,
    ) -> Booking:
        booking = self.get_booking(booking_id)
        current = booking.booking_status
        if not can_transition_booking(current, requested):
            raise InvalidBookingTransitionException(booking.id, current.value, requested.value)

        before = self._snapshot_booking(booking)
        update = {Booking.status: requested.value, **values}
        with self.transaction():
            if not self.repository.try_set_status(booking.id, expected=current, values=update):
                latest = self.get_booking(booking_id)
                raise InvalidBookingTransitionException(
                    booking.id, latest.status, requested.value
                )
            if refund:
                self.repository.try_set_payment_status(
                    booking.id, expected=PaymentStatus.PAID, requested=PaymentStatus.REFUNDED
                )
            booking = self.get_booking(booking_id)
            self._write_booking_audit(
                booking,
                requested.value,
                actor_id=actor_id,
                actor_role=actor_role,
                before=before,
            )
        self.logger.info("Booking %s moved %s -> %s", booking.id, current.value, requested.value)
        return booking

    # Helpers

    @staticmethod
    def _validate_booking_input(scheduled_time: time, lesson_price: Any, duration: int) -> None:
        if scheduled_time.minute or scheduled_time.second or scheduled_time.microsecond:
            raise ValidationException(
                "Lessons start on the hour",
                code="TIME_NOT_ON_HOUR",
                details={"scheduled_time": str(scheduled_time)},
            )
        if lesson_price is None or Decimal(lesson_price) < 0:
            raise ValidationException(
                "Lesson price must be zero or positive",
                code="INVALID_PRICE",
                details={"lesson_price": str(lesson_price)},
            )
        if duration <= 0:
            raise ValidationException(
                "Duration must be positive",
                code="INVALID_DURATION",
                details={"duration_minutes": duration},
            )

    @staticmethod
    def _default_cancellation_reason(booking: Booking, cancelled_by_id: str) -> Optional[str]:
        if cancelled_by_id == booking.student_id:
            return "Cancelled by student"
        if cancelled_by_id == booking.instructor_id:
            return "Cancelled by instructor"
        return None

    @staticmethod
    def _build_conflict_details(
        instructor_id: str, scheduled_date: date, scheduled_time: time, student_id: str
    ) -> Dict[str, Any]:
        return {
            "instructor_id": instructor_id,
            "student_id": student_id,
            "scheduled_date": scheduled_date.isoformat(),
            "scheduled_time": scheduled_time.isoformat(),
        }

    @staticmethod
    def _is_lock_error(exc: OperationalError) -> bool:
        message = str(getattr(exc, "orig", exc)).lower()
        return "deadlock detected" in message or "database is locked" in message

    @staticmethod
    def _snapshot_booking(booking: Booking) -> Dict[str, Any]:
        return {
            "status": booking.status,
            "payment_status": booking.payment_status,
            "scheduled_date": booking.scheduled_date,
            "scheduled_time": booking.scheduled_time,
            "price": booking.price,
            "use_package_id": booking.use_package_id,
        }

    def _write_booking_audit(
        self,
        booking: Booking,
        action: str,
        *,
        actor_id: Optional[str],
        actor_role: Optional[str],
        before: Optional[Dict[str, Any]],
    ) -> None:
        self.audit_repository.write(
            AuditLog.from_change(
                "booking",
                booking.id,
                action,
                actor_id=actor_id,
                actor_role=actor_role,
                before=before,
                after=self._snapshot_booking(booking),
            )
        )
