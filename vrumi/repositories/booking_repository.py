# vrumi/repositories/booking_repository.py
"""
Booking Repository for the booking core.

Slot exclusivity is enforced by the partial unique index on bookings; this
repository lets the resulting IntegrityError (or a lock timeout) reach the
service, which turns it into a SlotConflictException.
"""

from datetime import date
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus, PaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def create(self, **kwargs: Any) -> Booking:
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, (IntegrityError, OperationalError)):
                raise exc.__cause__
            raise

    def get_active_bookings_for_date(self, instructor_id: str, on_date: date) -> List[Booking]:
        """Non-cancelled bookings for an instructor on one date, ordered by time."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.instructor_id == instructor_id,
                    Booking.scheduled_date == on_date,
                    Booking.status != BookingStatus.CANCELLED.value,
                )
                .order_by(Booking.scheduled_time.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to load bookings for %s on %s: %s", instructor_id, on_date, exc
            )
            raise RepositoryException("Failed to load bookings for date") from exc

    def get_bookings_for_student(
        self, student_id: str, *, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        query = self.db.query(Booking).filter(Booking.student_id == student_id)
        if status is not None:
            query = query.filter(Booking.status == status.value)
        query = query.order_by(Booking.scheduled_date.desc(), Booking.scheduled_time.desc())
        return self._execute_query(query)

    def get_bookings_for_package(self, student_package_id: str) -> List[Booking]:
        query = (
            self.db.query(Booking)
            .filter(Booking.use_package_id == student_package_id)
            .order_by(Booking.scheduled_date.asc(), Booking.scheduled_time.asc())
        )
        return self._execute_query(query)

    def try_set_status(
        self,
        booking_id: str,
        *,
        expected: BookingStatus,
        values: Dict[Any, Any],
    ) -> bool:
        """Apply ``values`` only if the booking is still in ``expected`` status."""
        changed = self.conditional_update(
            booking_id, values, Booking.status == expected.value
        )
        return changed == 1

    def try_set_payment_status(
        self,
        booking_id: str,
        *,
        expected: PaymentStatus,
        requested: PaymentStatus,
    ) -> bool:
        changed = self.conditional_update(
            booking_id,
            {Booking.payment_status: requested.value},
            Booking.payment_status == expected.value,
        )
        return changed == 1
