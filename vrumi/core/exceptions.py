# vrumi/core/exceptions.py
"""
Domain-specific exceptions for the Vrumi Connect booking core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Availability


class InvalidWindowException(ValidationException):
    """Raised when an availability window does not start before it ends."""

    def __init__(self, day_of_week: int, start_time: Any, end_time: Any):
        super().__init__(
            message=f"Availability window must start before it ends ({start_time}-{end_time})",
            code="INVALID_WINDOW",
            details={
                "day_of_week": day_of_week,
                "start_time": str(start_time),
                "end_time": str(end_time),
            },
        )


# Bookings


class SlotConflictException(ConflictException):
    """Raised when the store rejects a second booking for an occupied slot."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot is already booked",
            code="SLOT_CONFLICT",
            details=details or {},
        )


class SlotUnavailableException(BusinessRuleException):
    """Raised when a requested slot is outside the instructor's availability or in the past."""

    def __init__(self, instructor_id: str, scheduled_date: Any, scheduled_time: Any):
        super().__init__(
            message=f"{scheduled_date} {scheduled_time} is not an offered slot for this instructor",
            code="SLOT_UNAVAILABLE",
            details={
                "instructor_id": instructor_id,
                "scheduled_date": str(scheduled_date),
                "scheduled_time": str(scheduled_time),
            },
        )


class BookingNotFoundException(NotFoundException):
    """Raised when a booking id does not resolve."""

    def __init__(self, booking_id: str):
        super().__init__(
            message=f"Booking {booking_id} not found",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class InvalidBookingTransitionException(ConflictException):
    """Raised when a booking status or payment change is not allowed from its current state."""

    def __init__(self, booking_id: str, current: str, requested: str):
        super().__init__(
            message=f"Booking {booking_id} cannot move from {current} to {requested}",
            code="INVALID_BOOKING_TRANSITION",
            details={"booking_id": booking_id, "current": current, "requested": requested},
        )


# Packages


class PackageNotFoundException(NotFoundException):
    """Raised when a student package or package template id does not resolve."""

    def __init__(self, package_id: str, *, kind: str = "student_package"):
        super().__init__(
            message=f"Package {package_id} not found",
            code="PACKAGE_NOT_FOUND",
            details={"package_id": package_id, "kind": kind},
        )


class PackageNotActiveException(BusinessRuleException):
    """Raised when a lesson is consumed from a package that is not active."""

    def __init__(self, package_id: str, current_status: str):
        super().__init__(
            message=f"Package {package_id} is {current_status}, not active",
            code="PACKAGE_NOT_ACTIVE",
            details={"package_id": package_id, "status": current_status},
        )


class InsufficientBalanceException(BusinessRuleException):
    """Raised when a package has no lessons left to consume."""

    def __init__(self, package_id: str, lessons_total: int, lessons_used: int):
        super().__init__(
            message=f"Package {package_id} has no lessons remaining",
            code="INSUFFICIENT_BALANCE",
            details={
                "package_id": package_id,
                "lessons_total": lessons_total,
                "lessons_used": lessons_used,
            },
        )


class ActivePackageExistsException(ConflictException):
    """Raised when a standard purchase is opened while the pair already has an active package."""

    def __init__(self, existing_package_id: str):
        super().__init__(
            message="An active package already exists with this instructor; choose sum or switch",
            code="ACTIVE_PACKAGE_EXISTS",
            details={"existing_package_id": existing_package_id},
        )


class InvalidPackageTransitionException(ConflictException):
    """Raised when a package status change is not allowed from its current state."""

    def __init__(self, package_id: str, current: str, requested: str):
        super().__init__(
            message=f"Package {package_id} cannot move from {current} to {requested}",
            code="INVALID_PACKAGE_TRANSITION",
            details={"package_id": package_id, "current": current, "requested": requested},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
