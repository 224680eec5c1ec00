# vrumi/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets services bound to its own session; tests override
get_db (and get_clock) on the app to swap in an in-memory database and
a fixed clock.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.timezone_utils import Clock, get_local_now
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.package_catalog_service import PackageCatalogService
from ...services.package_ledger_service import PackageLedgerService
from .database import get_db

logger = logging.getLogger(__name__)


def get_clock() -> Clock:
    """Clock used by services to decide what 'now' is."""
    return get_local_now


def get_availability_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> AvailabilityService:
    return AvailabilityService(db, clock=clock)


def get_package_ledger_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> PackageLedgerService:
    return PackageLedgerService(db, clock=clock)


def get_package_catalog_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> PackageCatalogService:
    return PackageCatalogService(db, clock=clock)


def get_booking_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    ledger_service: PackageLedgerService = Depends(get_package_ledger_service),
) -> BookingService:
    """
    Get BookingService with the ledger bound to the same session.

    Args:
        db: Database session
        clock: Service clock
        ledger_service: Ledger sharing the request's session

    Returns:
        BookingService instance
    """
    return BookingService(db, clock=clock, ledger_service=ledger_service)
