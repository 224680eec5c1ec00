# vrumi/services/availability_service.py
"""
Availability Service for the booking core.

Loads an instructor's windows and the day's bookings through repositories
and hands them to the pure resolver. Also owns window management for the
instructor settings screen.
"""

from datetime import date, time, timedelta
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import InvalidWindowException, NotFoundException, ValidationException
from ..core.timezone_utils import Clock
from ..models.availability import InstructorAvailability, is_valid_window
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from . import availability_resolver
from .availability_resolver import DaySlots
from .base import BaseService

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    """Offerable slots and weekly window management for instructors."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        availability_repository: Optional[AvailabilityRepository] = None,
        booking_repository: Optional[BookingRepository] = None,
    ):
        super().__init__(db, clock)
        self.repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )

    # Slot queries

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(self, instructor_id: str, target_date: date) -> DaySlots:
        """Offerable slots for one instructor on one date."""
        windows = self.repository.get_windows_for_instructor(instructor_id)
        bookings = self.booking_repository.get_active_bookings_for_date(instructor_id, target_date)
        day_slots = availability_resolver.get_available_slots(
            target_date, windows, bookings, now=self.now()
        )
        self.logger.debug(
            "Resolved %d slots for instructor %s on %s",
            len(day_slots.slots),
            instructor_id,
            target_date,
        )
        return day_slots

    @BaseService.measure_operation("is_date_bookable")
    def is_date_bookable(self, instructor_id: str, target_date: date) -> bool:
        windows = self.repository.get_windows_for_instructor(instructor_id)
        return availability_resolver.is_date_bookable(target_date, windows)

    @BaseService.measure_operation("get_bookable_dates")
    def get_bookable_dates(self, instructor_id: str, days: Optional[int] = None) -> List[date]:
        """
        Dates from tomorrow through the booking window whose weekday has availability.

        Args:
            instructor_id: Instructor to check
            days: Window length; defaults to settings.booking_window_days
        """
        horizon = days if days is not None else settings.booking_window_days
        if horizon < 1:
            raise ValidationException("days must be at least 1", code="INVALID_BOOKING_WINDOW")

        windows = self.repository.get_windows_for_instructor(instructor_id)
        today = self.now().date()
        candidates = (today + timedelta(days=offset) for offset in range(1, horizon + 1))
        return [
            candidate
            for candidate in candidates
            if availability_resolver.is_date_bookable(candidate, windows)
        ]

    def is_slot_offered(self, instructor_id: str, target_date: date, slot: time) -> bool:
        """
        Whether ``slot`` lies inside the instructor's availability and is not in the past.

        Existing bookings are deliberately ignored: whether the slot is still
        free is decided by the database at insert time.
        """
        windows = self.repository.get_windows_for_instructor(instructor_id)
        day_slots = availability_resolver.get_available_slots(
            target_date, windows, (), now=self.now()
        )
        return slot in day_slots

    # Window management

    @BaseService.measure_operation("list_windows")
    def list_windows(self, instructor_id: str) -> List[InstructorAvailability]:
        return self.repository.get_windows_for_instructor(instructor_id)

    @BaseService.measure_operation("add_window")
    def add_window(
        self, instructor_id: str, day_of_week: int, start_time: time, end_time: time
    ) -> InstructorAvailability:
        """Add one recurring window after validating it."""
        self._validate_window(day_of_week, start_time, end_time)
        self.log_operation(
            "add_window",
            instructor_id=instructor_id,
            day_of_week=day_of_week,
            start_time=str(start_time),
            end_time=str(end_time),
        )
        with self.transaction():
            window = self.repository.create(
                instructor_id=instructor_id,
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
            )
        return window

    @BaseService.measure_operation("replace_windows_for_day")
    def replace_windows_for_day(
        self,
        instructor_id: str,
        day_of_week: int,
        windows: Sequence[Tuple[time, time]],
    ) -> List[InstructorAvailability]:
        """Atomically replace every window on one weekday."""
        for start_time, end_time in windows:
            self._validate_window(day_of_week, start_time, end_time)

        with self.transaction():
            removed = self.repository.delete_windows_for_day(instructor_id, day_of_week)
            created = [
                self.repository.create(
                    instructor_id=instructor_id,
                    day_of_week=day_of_week,
                    start_time=start_time,
                    end_time=end_time,
                )
                for start_time, end_time in windows
            ]
        self.logger.info(
            "Replaced %d windows with %d for instructor %s day %s",
            removed,
            len(created),
            instructor_id,
            day_of_week,
        )
        return created

    @BaseService.measure_operation("remove_window")
    def remove_window(self, instructor_id: str, window_id: str) -> None:
        window = self.repository.get_by_id(window_id)
        if window is None or window.instructor_id != instructor_id:
            raise NotFoundException(
                f"Availability window {window_id} not found",
                code="WINDOW_NOT_FOUND",
                details={"window_id": window_id},
            )
        with self.transaction():
            self.repository.delete(window_id)

    @staticmethod
    def _validate_window(day_of_week: int, start_time: time, end_time: time) -> None:
        if not 0 <= day_of_week <= 6:
            raise ValidationException(
                "day_of_week must be between 0 (Sunday) and 6 (Saturday)",
                code="INVALID_DAY_OF_WEEK",
                details={"day_of_week": day_of_week},
            )
        for value in (start_time, end_time):
            if value.minute or value.second or value.microsecond:
                raise ValidationException(
                    "Availability windows must start and end on the hour",
                    code="WINDOW_NOT_ON_HOUR",
                    details={"time": str(value)},
                )
        if not is_valid_window(start_time, end_time):
            raise InvalidWindowException(day_of_week, start_time, end_time)
