"""
Slot resolution over plain in-memory windows and bookings.
"""

from datetime import date, time
from types import SimpleNamespace

import pytest

from tests.factories import FIXED_NOW, MONDAY, TODAY, TOMORROW, TUESDAY, WEDNESDAY
from vrumi.models.booking import BookingStatus
from vrumi.services.availability_resolver import (
    DayPeriod,
    DaySlots,
    day_of_week_for,
    get_available_slots,
    is_date_bookable,
    period_for_hour,
)


def window(day_of_week: int, start_hour: int, end_hour: int) -> SimpleNamespace:
    return SimpleNamespace(
        day_of_week=day_of_week,
        start_time=time(start_hour, 0),
        end_time=time(end_hour % 24, 0),
    )


def booking(
    on: date, hour: int, status: BookingStatus = BookingStatus.CONFIRMED
) -> SimpleNamespace:
    return SimpleNamespace(scheduled_date=on, scheduled_time=time(hour, 0), status=status.value)


def hours(day_slots: DaySlots) -> list[int]:
    return [slot.hour for slot in day_slots.slots]


class TestDayOfWeek:
    def test_sunday_is_zero(self) -> None:
        assert day_of_week_for(date(2024, 3, 17)) == 0
        assert day_of_week_for(date(2024, 3, 18)) == MONDAY
        assert day_of_week_for(date(2024, 3, 23)) == 6

    @pytest.mark.parametrize(
        "hour,period",
        [
            (0, DayPeriod.MORNING),
            (11, DayPeriod.MORNING),
            (12, DayPeriod.AFTERNOON),
            (17, DayPeriod.AFTERNOON),
            (18, DayPeriod.NIGHT),
            (23, DayPeriod.NIGHT),
        ],
    )
    def test_period_boundaries(self, hour: int, period: DayPeriod) -> None:
        assert period_for_hour(hour) is period


class TestGetAvailableSlots:
    def test_window_end_hour_is_exclusive(self) -> None:
        result = get_available_slots(TOMORROW, [window(TUESDAY, 9, 12)], now=FIXED_NOW)

        assert result.slots == (time(9), time(10), time(11))
        assert time(12) not in result

    def test_overlapping_windows_do_not_duplicate_hours(self) -> None:
        windows = [window(TUESDAY, 8, 11), window(TUESDAY, 10, 13)]

        result = get_available_slots(TOMORROW, windows, now=FIXED_NOW)

        assert hours(result) == [8, 9, 10, 11, 12]
        assert hours(result).count(10) == 1

    def test_only_windows_for_the_dates_weekday_count(self) -> None:
        windows = [window(WEDNESDAY, 14, 16), window(TUESDAY, 7, 8)]

        assert hours(get_available_slots(TOMORROW, windows, now=FIXED_NOW)) == [7]

    def test_booked_slots_are_removed(self) -> None:
        bookings = [booking(TOMORROW, 10), booking(TOMORROW, 14, BookingStatus.PENDING)]

        result = get_available_slots(
            TOMORROW, [window(TUESDAY, 9, 16)], bookings, now=FIXED_NOW
        )

        assert hours(result) == [9, 11, 12, 13, 15]

    def test_cancelled_bookings_and_other_dates_do_not_block(self) -> None:
        bookings = [
            booking(TOMORROW, 10, BookingStatus.CANCELLED),
            booking(date(2024, 3, 26), 11),
        ]

        result = get_available_slots(
            TOMORROW, [window(TUESDAY, 9, 12)], bookings, now=FIXED_NOW
        )

        assert hours(result) == [9, 10, 11]

    def test_today_drops_current_and_earlier_hours(self) -> None:
        # FIXED_NOW is 10:30, so 10:00 is already under way
        result = get_available_slots(TODAY, [window(MONDAY, 8, 14)], now=FIXED_NOW)

        assert hours(result) == [11, 12, 13]
        assert all(slot.hour > FIXED_NOW.hour for slot in result.slots)

    def test_past_dates_offer_nothing(self) -> None:
        yesterday = date(2024, 3, 17)

        result = get_available_slots(yesterday, [window(0, 8, 20)], now=FIXED_NOW)

        assert result.is_empty

    def test_midnight_end_means_end_of_day(self) -> None:
        result = get_available_slots(TOMORROW, [window(TUESDAY, 21, 0)], now=FIXED_NOW)

        assert hours(result) == [21, 22, 23]

    def test_malformed_window_yields_nothing(self) -> None:
        windows = [window(TUESDAY, 15, 12), window(TUESDAY, 9, 10)]

        assert hours(get_available_slots(TOMORROW, windows, now=FIXED_NOW)) == [9]

    def test_no_slot_outside_windows_or_in_bookings(self) -> None:
        windows = [window(TUESDAY, 6, 9), window(TUESDAY, 13, 15), window(TUESDAY, 19, 22)]
        bookings = [booking(TOMORROW, 7), booking(TOMORROW, 20)]
        allowed = {6, 7, 8, 13, 14, 19, 20, 21}

        result = get_available_slots(TOMORROW, windows, bookings, now=FIXED_NOW)

        assert set(hours(result)) <= allowed
        assert 7 not in hours(result) and 20 not in hours(result)

    def test_slots_are_bucketed_by_period(self) -> None:
        result = get_available_slots(TOMORROW, [window(TUESDAY, 10, 20)], now=FIXED_NOW)

        assert [s.hour for s in result.morning] == [10, 11]
        assert [s.hour for s in result.afternoon] == [12, 13, 14, 15, 16, 17]
        assert [s.hour for s in result.night] == [18, 19]

    def test_buckets_omit_empty_periods(self) -> None:
        result = get_available_slots(TOMORROW, [window(TUESDAY, 13, 15)], now=FIXED_NOW)

        assert list(result.buckets()) == ["afternoon"]


class TestIsDateBookable:
    def test_true_when_weekday_has_a_window(self) -> None:
        assert is_date_bookable(TOMORROW, [window(TUESDAY, 9, 10)]) is True

    def test_false_without_matching_window(self) -> None:
        assert is_date_bookable(TOMORROW, [window(WEDNESDAY, 9, 10)]) is False
        assert is_date_bookable(TOMORROW, []) is False
