"""
Timezone utilities for the booking core.

Slot filtering compares against the local wall clock of the marketplace,
never the server's UTC clock.
"""

from datetime import datetime
from typing import Callable, Optional

import pytz

from .config import settings

Clock = Callable[[], datetime]


def get_local_timezone(tz_name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Return the configured marketplace timezone (or an explicit override)."""
    return pytz.timezone(tz_name or settings.default_timezone)


def get_local_now(tz_name: Optional[str] = None) -> datetime:
    """Current datetime in the marketplace timezone."""
    return datetime.now(get_local_timezone(tz_name))
