"""
Scheduling API Routes

HTTP endpoints around the booking service: slot listing, booking
pre-validation and booking creation.
"""

import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.config import settings
from agenda.db.repository import AppointmentRepository, ScheduleRepository
from agenda.db.session import get_db_session
from agenda.models.schemas import (
    AvailabilityResponse,
    BookingDecision,
    BookingRequest,
    RejectionReason,
)
from agenda.services.booking import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedules", tags=["scheduling"])


def get_booking_service(db: AsyncSession = Depends(get_db_session)) -> BookingService:
    """FastAPI dependency building a BookingService over the request session."""
    return BookingService(
        ScheduleRepository(db, settings.business_timezone),
        AppointmentRepository(db, settings.business_timezone),
    )


def _rejection_status(reason: Optional[RejectionReason]) -> int:
    return 409 if reason == RejectionReason.DOUBLE_BOOKED else 422


def _decision_content(decision: BookingDecision) -> dict:
    return {
        "available": decision.accepted,
        "reason": decision.reason.value if decision.reason else None,
        "message": decision.message,
    }


@router.get("/{schedule_id}/available-slots", response_model=AvailabilityResponse)
async def available_slots(
    schedule_id: str,
    date: datetime.date = Query(..., description="Date to list, YYYY-MM-DD"),
    professional_id: Optional[str] = Query(default=None),
    duration: Optional[int] = Query(default=None, gt=0, description="Service duration in minutes"),
    service: BookingService = Depends(get_booking_service),
) -> AvailabilityResponse:
    """List the bookable slots of a schedule for one date."""
    return await service.list_available_slots(schedule_id, date, professional_id, duration)


@router.post("/{schedule_id}/validate")
async def validate_appointment(
    schedule_id: str,
    request: BookingRequest,
    service: BookingService = Depends(get_booking_service),
) -> JSONResponse:
    """
    Check whether a time can be booked, without writing.

    Returns 200 when available, 409 for a double booking and 422 for any
    other rejection.
    """
    decision = await service.check_booking(schedule_id, request)
    status_code = 200 if decision.accepted else _rejection_status(decision.reason)

    return JSONResponse(status_code=status_code, content=_decision_content(decision))


@router.post("/{schedule_id}/appointments")
async def create_appointment(
    schedule_id: str,
    request: BookingRequest,
    service: BookingService = Depends(get_booking_service),
) -> JSONResponse:
    """Book an appointment; 201 on success."""
    result = await service.book(schedule_id, request)

    if result.success:
        logger.info(f"Appointment {result.appointment_id} created on schedule {schedule_id}")
        return JSONResponse(status_code=201, content=result.model_dump(mode="json"))

    return JSONResponse(
        status_code=_rejection_status(result.reason),
        content=result.model_dump(mode="json"),
    )
