"""
Booking Service

Business logic for listing availability and booking appointments.
Loads data through repositories, runs the scheduling core and hands the
write back to the repository, which re-validates inside its transaction.
"""

import datetime
import logging
from typing import Callable, Optional, Tuple

import pytz

from agenda.db.repository import (
    AppointmentRepository,
    ScheduleNotFoundError,
    ScheduleRepository,
)
from agenda.models.schemas import (
    AppointmentStatus,
    AvailabilityResponse,
    BookingCandidate,
    BookingDecision,
    BookingRequest,
    BookingResponse,
    RejectionReason,
    Schedule,
    SlotResponse,
)
from agenda.scheduling.availability import filter_available
from agenda.scheduling.slots import generate_slots
from agenda.scheduling.validator import validate_booking

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime.datetime]


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(pytz.UTC)


class BookingService:
    """
    Service for availability listing and booking.

    The clock is injected so callers and tests control "now".
    """

    def __init__(
        self,
        schedule_repo: ScheduleRepository,
        appointment_repo: AppointmentRepository,
        clock: Clock = utc_now,
    ):
        self.schedule_repo = schedule_repo
        self.appointment_repo = appointment_repo
        self.clock = clock

    async def get_schedule(self, schedule_id: str) -> Schedule:
        """
        Raises:
            ScheduleNotFoundError: if the schedule does not exist
            ScheduleConfigurationError: if its stored configuration is invalid
        """
        schedule = await self.schedule_repo.load_schedule(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)
        return schedule

    async def list_available_slots(
        self,
        schedule_id: str,
        target_date: datetime.date,
        professional_id: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> AvailabilityResponse:
        """
        Get the bookable slots of a schedule for one date.

        Args:
            schedule_id: schedule identifier
            target_date: date to list
            professional_id: check conflicts for this professional only
            duration_minutes: selected service length, defaults to slot_duration

        Returns:
            AvailabilityResponse with the free slots in ascending order
        """
        schedule = await self.get_schedule(schedule_id)
        duration = schedule.slot_duration if duration_minutes is None else duration_minutes

        response = {
            "schedule_id": schedule_id,
            "date": target_date,
            "slot_duration": duration,
            "buffer_time": schedule.buffer_time,
        }

        candidates = generate_slots(schedule, target_date, duration)
        if not candidates:
            logger.info(f"Schedule {schedule_id} is closed on {target_date}")
            return AvailabilityResponse(
                **response,
                slots=[],
                message=BookingDecision.reject(RejectionReason.OUTSIDE_SCHEDULE).message,
            )

        appointments = await self.appointment_repo.load_active_appointments(
            schedule_id, target_date, target_date, professional_id
        )
        available = filter_available(
            candidates, schedule, appointments, self.clock(), professional_id
        )

        logger.info(
            f"Schedule {schedule_id} on {target_date}: "
            f"{len(available)} of {len(candidates)} slots available"
        )

        return AvailabilityResponse(
            **response,
            slots=[SlotResponse.from_slot(slot) for slot in available],
            message=None if available else "No available slots on this date.",
        )

    async def _precheck(
        self,
        schedule_id: str,
        request: BookingRequest,
    ) -> Tuple[BookingCandidate, BookingDecision]:
        schedule = await self.get_schedule(schedule_id)
        candidate = request.to_candidate(schedule.slot_duration)

        appointments = await self.appointment_repo.load_active_appointments(
            schedule_id,
            candidate.date,
            candidate.date,
            candidate.professional_id or schedule.professional_id,
        )
        return candidate, validate_booking(schedule, appointments, self.clock(), candidate)

    async def check_booking(self, schedule_id: str, request: BookingRequest) -> BookingDecision:
        """Pre-check a booking request without writing anything."""
        _, decision = await self._precheck(schedule_id, request)
        return decision

    async def book(
        self,
        schedule_id: str,
        request: BookingRequest,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
    ) -> BookingResponse:
        """
        Book an appointment.

        The pre-check gives an early answer; the repository runs the
        validator again under a lock before inserting.

        Returns:
            BookingResponse with the new appointment id, or the rejection
        """
        candidate, decision = await self._precheck(schedule_id, request)
        if decision.accepted:
            decision, appointment_id = await self.appointment_repo.commit_appointment(
                schedule_id,
                candidate,
                self.clock(),
                status=status,
                service_id=request.service_id,
                client_name=request.client_name,
                client_phone=request.client_phone,
                notes=request.notes,
            )
            if decision.accepted:
                return BookingResponse(
                    success=True,
                    message="Appointment booked",
                    appointment_id=appointment_id,
                )

        logger.warning(
            f"Booking on schedule {schedule_id} for {request.date} {request.time} "
            f"rejected: {decision.reason.value}"
        )
        return BookingResponse(success=False, message=decision.message, reason=decision.reason)
