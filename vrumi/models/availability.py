# vrumi/models/availability.py
"""
Availability models for the booking core.

An instructor publishes recurring weekly windows ("Tuesdays 09:00-12:00").
Windows are stored exactly as entered; overlapping windows on the same day
are allowed and are treated as independent intervals by the resolver.

Classes:
    InstructorAvailability: One recurring weekly window
"""

from datetime import time
import logging
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Time
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)

# 0=Sunday .. 6=Saturday
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

MIDNIGHT = time(0, 0)


class InstructorAvailability(Base):
    """Recurring weekly availability window for an instructor."""

    __tablename__ = "instructor_availability"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    instructor_id = Column(String(26), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day_of_week"),
        Index("idx_availability_instructor_day", "instructor_id", "day_of_week"),
    )

    @property
    def start_hour(self) -> int:
        return self.start_time.hour

    @property
    def end_hour(self) -> int:
        return window_end_hour(self.start_time, self.end_time)

    def __repr__(self) -> str:
        return (
            f"<InstructorAvailability {self.instructor_id} "
            f"{DAY_NAMES[self.day_of_week]} {self.start_time}-{self.end_time}>"
        )


def window_end_hour(start_time: time, end_time: time) -> int:
    """
    Exclusive end hour of a window.

    An end of 00:00 after a non-midnight start means the window runs to the
    end of the day, so it maps to 24.
    """
    if end_time == MIDNIGHT and start_time != MIDNIGHT:
        return 24
    return end_time.hour


def is_valid_window(start_time: Optional[time], end_time: Optional[time]) -> bool:
    """A window is valid when it contributes at least one whole hour."""
    if start_time is None or end_time is None:
        return False
    return start_time.hour < window_end_hour(start_time, end_time)
