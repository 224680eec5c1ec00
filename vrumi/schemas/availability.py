# vrumi/schemas/availability.py
"""
Availability schemas: recurring weekly windows and resolved day slots.

Times are whole hours. An end_time of 00:00 means midnight at the end of
the day.
"""

import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from ._strict_base import StrictRequestModel
from .base import StandardizedModel

DateType = datetime.date
TimeType = datetime.time


class TimeSlot(BaseModel):
    """Start/end pair for one window."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    start_time: TimeType
    end_time: TimeType


class AvailabilityWindowCreate(StrictRequestModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    start_time: TimeType
    end_time: TimeType


class WindowsForDayReplace(StrictRequestModel):
    """Replace every window on one weekday. An empty list clears the day."""

    windows: List[TimeSlot] = Field(default_factory=list)


class AvailabilityWindowResponse(StandardizedModel):
    id: str
    instructor_id: str
    day_of_week: int
    start_time: TimeType
    end_time: TimeType


class DaySlotsResponse(BaseModel):
    """Offerable slots for one date, bucketed by period of day."""

    instructor_id: str
    date: DateType
    slots: List[TimeType]
    periods: Dict[str, List[TimeType]]

    @classmethod
    def from_day_slots(cls, instructor_id: str, day_slots: Any) -> "DaySlotsResponse":
        return cls(
            instructor_id=instructor_id,
            date=day_slots.date,
            slots=list(day_slots.slots),
            periods=day_slots.buckets(),
        )


class BookableDatesResponse(BaseModel):
    instructor_id: str
    dates: List[DateType]
