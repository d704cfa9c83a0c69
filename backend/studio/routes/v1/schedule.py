# backend/studio/routes/v1/schedule.py
"""
Schedule routes - API v1

Versioned scheduling endpoints under /api/v1/schedule.
All business logic delegated to ScheduleService.

Endpoints:
    GET /availability/{target_date}      → Bookable slots for a date with occupancy
    GET /products/{product_id}/sessions  → Generated sessions of a self-scheduling product
    GET /grid?start=&end=                → Aggregated slot grid per instructor and date
    GET /capacity?start=&days=           → Capacity vs booked participants over a horizon
    POST /bookings/check                 → Pre-booking checks on the slots a customer picked
    POST /reschedule                     → Move one booking slot under the lead-time policy
    DELETE /bookings/{booking_id}/slots  → Remove one reserved slot from a booking
"""

import asyncio
from datetime import date, datetime
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...api.dependencies.services import get_schedule_service
from ...core.config import settings
from ...core.enums import Technique
from ...core.exceptions import DomainException
from ...schemas.booking import TimeSlot
from ...schemas.booking_check import BookingCheck, BookingCheckRequest
from ...schemas.reschedule import RescheduleOutcome, RescheduleRequest
from ...schemas.schedule import (
    CapacityMetrics,
    EnrichedAvailableSlot,
    GeneratedSession,
    ScheduleAggregation,
)
from ...services.schedule_service import ScheduleService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["schedule-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def studio_now() -> datetime:
    """Current time in the studio timezone. The only place the API reads the clock."""
    return datetime.now(settings.tz)


@router.get("/availability/{target_date}", response_model=List[EnrichedAvailableSlot])
async def get_availability(
    target_date: date,
    technique: Optional[Technique] = Query(None, description="Only slots of this technique"),
    service: ScheduleService = Depends(get_schedule_service),
) -> List[EnrichedAvailableSlot]:
    """Bookable slots for one date after applying any schedule override."""
    try:
        return await asyncio.to_thread(service.available_times_for_date, target_date, technique)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/products/{product_id}/sessions", response_model=List[GeneratedSession])
async def get_product_sessions(
    product_id: str,
    horizon_days: Optional[int] = Query(
        None, ge=1, le=366, alias="horizonDays", description="Days to generate"
    ),
    include_full: bool = Query(True, alias="includeFull"),
    service: ScheduleService = Depends(get_schedule_service),
) -> List[GeneratedSession]:
    """Sessions generated from a product's scheduling rules, starting today."""
    try:
        return await asyncio.to_thread(
            service.generate_recurring_sessions,
            product_id,
            studio_now(),
            horizon_days,
            include_full,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/grid", response_model=ScheduleAggregation)
async def get_schedule_grid(
    start: date = Query(..., description="First date (inclusive)"),
    end: date = Query(..., description="Last date (inclusive)"),
    service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleAggregation:
    """Slot grid keyed by instructor id then date, with data quality repairs."""
    try:
        return await asyncio.to_thread(service.aggregate_schedule, start, end)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/capacity", response_model=CapacityMetrics)
async def get_capacity_metrics(
    start: Optional[date] = Query(None, description="First date, defaults to today"),
    days: int = Query(30, ge=0, le=366),
    service: ScheduleService = Depends(get_schedule_service),
) -> CapacityMetrics:
    try:
        return await asyncio.to_thread(
            service.capacity_metrics, start or studio_now().date(), days
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bookings/check", response_model=BookingCheck)
async def check_booking(
    payload: BookingCheckRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> BookingCheck:
    """Technique, no-refund and monthly availability checks; ``valid`` is false on any error."""
    try:
        return await asyncio.to_thread(service.check_booking, payload, studio_now())
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/reschedule", response_model=RescheduleOutcome)
async def request_reschedule(
    payload: RescheduleRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> RescheduleOutcome:
    """
    Move one booking slot.

    A request inside the lead-time window without admin approval returns
    ``LeadTimeViolation`` with ``requiredApproval``; nothing is changed.
    Persistence failures return ``Rejected`` with the reason in ``error``.
    """
    try:
        return await asyncio.to_thread(service.request_reschedule, payload, studio_now())
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/bookings/{booking_id}/slots", status_code=status.HTTP_204_NO_CONTENT)
async def remove_booking_slot(
    booking_id: str,
    slot_date: str = Query(..., alias="date"),
    slot_time: str = Query(..., alias="time"),
    service: ScheduleService = Depends(get_schedule_service),
) -> Response:
    try:
        await asyncio.to_thread(
            service.remove_booking_slot, booking_id, TimeSlot(date=slot_date, time=slot_time)
        )
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
