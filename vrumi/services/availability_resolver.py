# vrumi/services/availability_resolver.py
"""
Availability resolver: weekly windows + booked slots -> offerable slots.

Pure functions over already-fetched data. Nothing here touches the
database, so the same code serves the API, the booking service's slot
check and the tests.

Rules for one date:
1. Only windows whose day_of_week matches the date (0=Sunday) count.
2. A window yields every whole hour in [start_hour, end_hour).
3. Hours already taken by a non-cancelled booking on that date are dropped.
4. On the current local date, hours <= the current hour are dropped;
   dates before today offer nothing.
5. The result is de-duplicated, sorted, and split into morning [0,12),
   afternoon [12,18) and night [18,24).

A window that does not start before it ends yields nothing instead of
raising, so the resolver is total over stored data.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Tuple

from ..core.timezone_utils import get_local_now
from ..models.availability import is_valid_window, window_end_hour
from ..models.booking import BookingStatus

logger = logging.getLogger(__name__)

AFTERNOON_START_HOUR = 12
NIGHT_START_HOUR = 18


class WindowLike(Protocol):
    day_of_week: int
    start_time: time
    end_time: time


class BookingLike(Protocol):
    scheduled_date: date
    scheduled_time: time
    status: Any


class DayPeriod(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    NIGHT = "night"


def period_for_hour(hour: int) -> DayPeriod:
    if hour < AFTERNOON_START_HOUR:
        return DayPeriod.MORNING
    if hour < NIGHT_START_HOUR:
        return DayPeriod.AFTERNOON
    return DayPeriod.NIGHT


def day_of_week_for(target_date: date) -> int:
    """Weekday number with 0=Sunday .. 6=Saturday."""
    return (target_date.weekday() + 1) % 7


@dataclass(frozen=True)
class DaySlots:
    """Offerable slots for one instructor on one date."""

    date: date
    slots: Tuple[time, ...]

    def _in_period(self, period: DayPeriod) -> List[time]:
        return [slot for slot in self.slots if period_for_hour(slot.hour) is period]

    @property
    def morning(self) -> List[time]:
        return self._in_period(DayPeriod.MORNING)

    @property
    def afternoon(self) -> List[time]:
        return self._in_period(DayPeriod.AFTERNOON)

    @property
    def night(self) -> List[time]:
        return self._in_period(DayPeriod.NIGHT)

    @property
    def is_empty(self) -> bool:
        return not self.slots

    def buckets(self) -> Dict[str, List[time]]:
        """Non-empty periods only, in morning/afternoon/night order."""
        result: Dict[str, List[time]] = {}
        for period in DayPeriod:
            slots = self._in_period(period)
            if slots:
                result[period.value] = slots
        return result

    def __contains__(self, slot: object) -> bool:
        return slot in self.slots


def _window_hours(window: WindowLike) -> range:
    if not is_valid_window(window.start_time, window.end_time):
        logger.debug(
            "Ignoring malformed availability window %s-%s (day %s)",
            window.start_time,
            window.end_time,
            window.day_of_week,
        )
        return range(0)
    return range(window.start_time.hour, window_end_hour(window.start_time, window.end_time))


def _booked_times(target_date: date, existing_bookings: Iterable[BookingLike]) -> Set[time]:
    booked: Set[time] = set()
    for booking in existing_bookings:
        if booking.scheduled_date != target_date:
            continue
        if _status_value(booking.status) == BookingStatus.CANCELLED.value:
            continue
        booked.add(booking.scheduled_time.replace(second=0, microsecond=0))
    return booked


def _status_value(status: Any) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def get_available_slots(
    target_date: date,
    availability_windows: Iterable[WindowLike],
    existing_bookings: Iterable[BookingLike] = (),
    *,
    now: Optional[datetime] = None,
) -> DaySlots:
    """
    Compute the offerable slots for ``target_date``.

    ``availability_windows`` may contain windows for any weekday.
    ``existing_bookings`` may be pre-filtered by the caller; bookings on
    other dates or in cancelled status are ignored here anyway.
    ``now`` is the caller's local datetime and defaults to the marketplace clock.
    """
    current = now or get_local_now()
    if target_date < current.date():
        return DaySlots(date=target_date, slots=())

    weekday = day_of_week_for(target_date)
    booked = _booked_times(target_date, existing_bookings)

    hours: Set[int] = set()
    for window in availability_windows:
        if window.day_of_week == weekday:
            hours.update(_window_hours(window))

    if target_date == current.date():
        hours = {hour for hour in hours if hour > current.hour}

    slots = tuple(
        slot for slot in (time(hour, 0) for hour in sorted(hours)) if slot not in booked
    )
    return DaySlots(date=target_date, slots=slots)


def is_date_bookable(target_date: date, availability_windows: Iterable[WindowLike]) -> bool:
    """True iff any window falls on the date's weekday."""
    weekday = day_of_week_for(target_date)
    return any(window.day_of_week == weekday for window in availability_windows)
