# vrumi/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST / - Book a slot (direct payment or package-funded)
    GET / - List a student's bookings
    GET /{booking_id} - Booking details
    POST /{booking_id}/confirm - Instructor accepts
    POST /{booking_id}/complete - Mark lesson as completed
    POST /{booking_id}/cancel - Cancel and free the slot
    POST /{booking_id}/payment - Record direct-payment outcome
"""

import asyncio
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ...api.dependencies import get_booking_service
from ...core.exceptions import DomainException
from ...models.booking import BookingStatus
from ...schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingResponse,
    BookingTransition,
    PaymentResult,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Book one lesson slot.

    Returns 409 when the slot was taken by a concurrent request and 422
    when it is outside availability or already past.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.create_booking,
            booking_data.student_id,
            booking_data.instructor_id,
            booking_data.scheduled_date,
            booking_data.scheduled_time,
            booking_data.lesson_price,
            duration_minutes=booking_data.duration_minutes,
            vehicle_type=booking_data.vehicle_type,
            use_package_id=booking_data.use_package_id,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=List[BookingResponse])
async def list_bookings(
    student_id: str = Query(...),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    try:
        bookings = await asyncio.to_thread(
            booking_service.list_bookings_for_student, student_id, status_filter
        )
        return [BookingResponse.model_validate(booking) for booking in bookings]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str = Path(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: str = Path(...),
    payload: Optional[BookingTransition] = Body(None),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.confirm_booking,
            booking_id,
            actor_id=payload.actor_id if payload else None,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str = Path(...),
    payload: Optional[BookingTransition] = Body(None),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.complete_booking,
            booking_id,
            actor_id=payload.actor_id if payload else None,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str = Path(...),
    cancel_data: BookingCancel = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking,
            booking_id,
            cancel_data.cancelled_by_id,
            cancel_data.reason,
            refund=cancel_data.refund,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/payment", response_model=BookingResponse)
async def record_payment(
    booking_id: str = Path(...),
    payment: PaymentResult = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.record_payment, booking_id, payment.succeeded
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)
