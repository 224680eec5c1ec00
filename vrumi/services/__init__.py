"""
Service layer for the booking core.

Services hold the business logic and own transaction boundaries; they
talk to the database only through repositories.
"""

from .availability_service import AvailabilityService
from .base import BaseService
from .booking_service import BookingService
from .package_catalog_service import PackageCatalogService
from .package_ledger_service import PackageLedgerService, ReconciliationResult

__all__ = [
    "AvailabilityService",
    "BaseService",
    "BookingService",
    "PackageCatalogService",
    "PackageLedgerService",
    "ReconciliationResult",
]
