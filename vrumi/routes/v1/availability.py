# vrumi/routes/v1/availability.py
"""
Instructor availability routes - API v1

Versioned endpoints under /api/v1/instructors.
All business logic delegated to AvailabilityService.

Endpoints:
    GET /{instructor_id}/availability/windows - List weekly windows
    POST /{instructor_id}/availability/windows - Add a weekly window
    PUT /{instructor_id}/availability/days/{day_of_week} - Replace one weekday's windows
    DELETE /{instructor_id}/availability/windows/{window_id} - Remove a window
    GET /{instructor_id}/availability/slots - Offerable slots for a date
    GET /{instructor_id}/availability/dates - Bookable dates in the booking window
"""

import asyncio
from datetime import date
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, Response, status

from ...api.dependencies import get_availability_service
from ...core.exceptions import DomainException
from ...schemas.availability import (
    AvailabilityWindowCreate,
    AvailabilityWindowResponse,
    BookableDatesResponse,
    DaySlotsResponse,
    WindowsForDayReplace,
)
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get(
    "/{instructor_id}/availability/windows",
    response_model=List[AvailabilityWindowResponse],
)
async def list_windows(
    instructor_id: str = Path(...),
    service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityWindowResponse]:
    try:
        windows = await asyncio.to_thread(service.list_windows, instructor_id)
        return [AvailabilityWindowResponse.model_validate(window) for window in windows]
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{instructor_id}/availability/windows",
    response_model=AvailabilityWindowResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_window(
    instructor_id: str = Path(...),
    payload: AvailabilityWindowCreate = Body(...),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityWindowResponse:
    try:
        window = await asyncio.to_thread(
            service.add_window,
            instructor_id,
            payload.day_of_week,
            payload.start_time,
            payload.end_time,
        )
        return AvailabilityWindowResponse.model_validate(window)
    except DomainException as e:
        handle_domain_exception(e)


@router.put(
    "/{instructor_id}/availability/days/{day_of_week}",
    response_model=List[AvailabilityWindowResponse],
)
async def replace_windows_for_day(
    instructor_id: str = Path(...),
    day_of_week: int = Path(..., ge=0, le=6),
    payload: WindowsForDayReplace = Body(...),
    service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityWindowResponse]:
    """Replace every window on one weekday; an empty list clears it."""
    try:
        windows = await asyncio.to_thread(
            service.replace_windows_for_day,
            instructor_id,
            day_of_week,
            [(slot.start_time, slot.end_time) for slot in payload.windows],
        )
        return [AvailabilityWindowResponse.model_validate(window) for window in windows]
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{instructor_id}/availability/windows/{window_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_window(
    instructor_id: str = Path(...),
    window_id: str = Path(...),
    service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    try:
        await asyncio.to_thread(service.remove_window, instructor_id, window_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{instructor_id}/availability/slots", response_model=DaySlotsResponse)
async def get_available_slots(
    instructor_id: str = Path(...),
    on_date: date = Query(..., alias="date"),
    service: AvailabilityService = Depends(get_availability_service),
) -> DaySlotsResponse:
    """Offerable slots for one date, split into morning, afternoon and night."""
    try:
        day_slots = await asyncio.to_thread(service.get_available_slots, instructor_id, on_date)
        return DaySlotsResponse.from_day_slots(instructor_id, day_slots)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{instructor_id}/availability/dates", response_model=BookableDatesResponse)
async def get_bookable_dates(
    instructor_id: str = Path(...),
    days: Optional[int] = Query(None, ge=1, le=365),
    service: AvailabilityService = Depends(get_availability_service),
) -> BookableDatesResponse:
    try:
        dates = await asyncio.to_thread(service.get_bookable_dates, instructor_id, days)
        return BookableDatesResponse(instructor_id=instructor_id, dates=dates)
    except DomainException as e:
        handle_domain_exception(e)
