"""
Centralized dependency injection for API routes.

Usage:
    from vrumi.api.dependencies import get_booking_service
"""

from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_clock,
    get_package_catalog_service,
    get_package_ledger_service,
)

__all__ = [
    "get_availability_service",
    "get_booking_service",
    "get_clock",
    "get_db",
    "get_package_catalog_service",
    "get_package_ledger_service",
]
