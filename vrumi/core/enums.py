# vrumi/core/enums.py
"""
Core enums shared across the booking core.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles that can act on bookings and packages; recorded on audit rows."""

    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"
    SYSTEM = "system"
