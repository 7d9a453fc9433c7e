"""
Database Repository Layer

Loads schedules and ledger slices for the scheduling core and commits
appointments. Raw parametrised SQL over an async SQLAlchemy session.
"""

import datetime
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.models.schemas import (
    Appointment,
    AppointmentStatus,
    BookingCandidate,
    BookingDecision,
    RejectionReason,
    Schedule,
)
from agenda.scheduling.validator import validate_booking

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Custom exception for database operations."""
    pass


class ConflictError(DatabaseError):
    """A write was refused by a uniqueness or exclusion constraint."""
    pass


class ScheduleNotFoundError(Exception):
    """Raised when a schedule id does not exist."""

    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__(f"Schedule {schedule_id} not found")


class BaseRepository:
    """Base repository with common database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def execute_query(
        self,
        query: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Execute a parametrized SQL query safely.

        Raises:
            ConflictError: if a constraint rejects the statement
            DatabaseError: if query execution fails
        """
        try:
            return await self.session.execute(text(query), params or {})
        except IntegrityError as e:
            logger.warning(f"Constraint violation: {e}")
            raise ConflictError(f"Conflicting write: {str(e)}") from e
        except SQLAlchemyError as e:
            logger.error(f"Query execution failed: {e}")
            raise DatabaseError(f"Database operation failed: {str(e)}") from e

    async def commit(self) -> None:
        """
        Commit the current transaction.

        Deferred constraints are checked here, so violations map the same
        way as in execute_query.

        Raises:
            ConflictError: if a constraint rejects the transaction
            DatabaseError: if the commit fails
        """
        try:
            await self.session.commit()
        except IntegrityError as e:
            logger.warning(f"Constraint violation on commit: {e}")
            raise ConflictError(f"Conflicting write: {str(e)}") from e
        except SQLAlchemyError as e:
            logger.error(f"Commit failed: {e}")
            raise DatabaseError(f"Database commit failed: {str(e)}") from e


def _time_range(raw: Mapping[str, Any]) -> Dict[str, Any]:
    # Stored as {"startTime": "08:00", "endTime": "12:00"}
    return {
        "start": raw.get("startTime", raw.get("start")),
        "end": raw.get("endTime", raw.get("end")),
    }


class ScheduleRepository(BaseRepository):
    """Loads schedules with their day configuration and blocks."""

    def __init__(self, session: AsyncSession, timezone: str):
        super().__init__(session)
        self.timezone = timezone

    async def load_schedule(
        self,
        schedule_id: str,
        for_update: bool = False
    ) -> Optional[Schedule]:
        """
        Load a schedule as an immutable value.

        Args:
            schedule_id: schedule identifier
            for_update: lock the schedule row until the transaction ends

        Returns:
            Schedule or None if it does not exist

        Raises:
            ScheduleConfigurationError: if the stored configuration is invalid
            DatabaseError: if a query fails
        """
        query = """
            SELECT
                id,
                name,
                professional_id,
                working_days,
                start_time,
                end_time,
                slot_duration,
                buffer_time,
                lunch_start,
                lunch_end,
                advance_booking_days,
                min_notice_hours,
                is_active,
                use_custom_day_config
            FROM schedules
            WHERE id = :schedule_id
        """
        if for_update:
            query += " FOR UPDATE"

        result = await self.execute_query(query, {"schedule_id": schedule_id})
        row = result.mappings().fetchone()

        if not row:
            logger.debug(f"No schedule found with id: {schedule_id}")
            return None

        day_configs = await self._load_day_configs(schedule_id)
        blocks = await self._load_blocks(schedule_id)

        data = dict(row)
        data["id"] = str(data["id"])
        data["working_days"] = list(data["working_days"] or [])
        data["timezone"] = self.timezone
        data["day_configs"] = day_configs
        data["blocks"] = blocks

        return Schedule.from_config(data)

    async def _load_day_configs(self, schedule_id: str) -> List[Dict[str, Any]]:
        query = """
            SELECT day_of_week, is_active, time_slots
            FROM schedule_day_configs
            WHERE schedule_id = :schedule_id
            ORDER BY day_of_week;
        """
        result = await self.execute_query(query, {"schedule_id": schedule_id})

        return [
            {
                "day_of_week": row[0],
                "is_active": row[1],
                "time_slots": [_time_range(r) for r in (row[2] or [])],
            }
            for row in result.fetchall()
        ]

    async def _load_blocks(self, schedule_id: str) -> List[Dict[str, Any]]:
        query = """
            SELECT start_date, end_date, is_all_day, reason
            FROM schedule_blocks
            WHERE schedule_id = :schedule_id
            ORDER BY start_date;
        """
        result = await self.execute_query(query, {"schedule_id": schedule_id})

        return [
            {"start": row[0], "end": row[1], "is_all_day": row[2], "reason": row[3]}
            for row in result.fetchall()
        ]


class AppointmentRepository(BaseRepository):
    """Ledger reads and the transactional booking write."""

    def __init__(self, session: AsyncSession, timezone: str):
        super().__init__(session)
        self.timezone = timezone

    async def load_active_appointments(
        self,
        schedule_id: str,
        start_date: datetime.date,
        end_date: datetime.date,
        professional_id: Optional[str] = None
    ) -> List[Appointment]:
        """
        Get the appointments that still occupy time in a date range.

        Args:
            schedule_id: schedule identifier
            start_date: first date, inclusive
            end_date: last date, inclusive
            professional_id: restrict to one professional (plus unassigned)

        Returns:
            List of Appointment values ordered by date and start
        """
        query = """
            SELECT
                id,
                professional_id,
                appointment_date,
                start_minute,
                duration_minutes,
                status
            FROM appointments
            WHERE schedule_id = :schedule_id
                AND appointment_date BETWEEN :start_date AND :end_date
                AND status NOT IN ('CANCELLED', 'NO_SHOW')
        """
        params: Dict[str, Any] = {
            "schedule_id": schedule_id,
            "start_date": start_date,
            "end_date": end_date,
        }

        if professional_id:
            query += " AND (professional_id = :professional_id OR professional_id IS NULL)"
            params["professional_id"] = professional_id

        query += " ORDER BY appointment_date, start_minute;"

        result = await self.execute_query(query, params)

        return [
            Appointment(
                id=str(row[0]),
                professional_id=row[1],
                date=row[2],
                start_time=row[3],
                duration_minutes=row[4],
                status=row[5],
            )
            for row in result.fetchall()
        ]

    async def commit_appointment(
        self,
        schedule_id: str,
        candidate: BookingCandidate,
        now: datetime.datetime,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        service_id: Optional[str] = None,
        client_name: Optional[str] = None,
        client_phone: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Tuple[BookingDecision, Optional[str]]:
        """
        Re-validate and insert an appointment in one transaction.

        The schedule row is locked first, so concurrent bookings on the same
        schedule are serialized and only one of two overlapping writers can
        pass validation.

        Returns:
            (decision, appointment_id); the id is None unless accepted

        Raises:
            ScheduleNotFoundError: if the schedule disappeared
            DatabaseError: if the write fails for another reason
        """
        try:
            schedule = await ScheduleRepository(self.session, self.timezone).load_schedule(
                schedule_id, for_update=True
            )
            if schedule is None:
                raise ScheduleNotFoundError(schedule_id)

            professional_id = candidate.professional_id or schedule.professional_id
            ledger = await self.load_active_appointments(
                schedule_id, candidate.date, candidate.date, professional_id
            )

            decision = validate_booking(schedule, ledger, now, candidate)
            if not decision.accepted:
                await self.session.rollback()
                return decision, None

            query = """
                INSERT INTO appointments (
                    schedule_id,
                    professional_id,
                    service_id,
                    appointment_date,
                    start_minute,
                    duration_minutes,
                    status,
                    client_name,
                    client_phone,
                    notes,
                    created_at
                )
                VALUES (
                    :schedule_id,
                    :professional_id,
                    :service_id,
                    :appointment_date,
                    :start_minute,
                    :duration_minutes,
                    :status,
                    :client_name,
                    :client_phone,
                    :notes,
                    NOW()
                )
                RETURNING id;
            """
            result = await self.execute_query(
                query,
                {
                    "schedule_id": schedule_id,
                    "professional_id": professional_id,
                    "service_id": service_id,
                    "appointment_date": candidate.date,
                    "start_minute": candidate.start_time,
                    "duration_minutes": candidate.duration_minutes,
                    "status": status.value,
                    "client_name": client_name,
                    "client_phone": client_phone,
                    "notes": notes,
                }
            )
            row = result.fetchone()
            if not row:
                raise DatabaseError("Failed to create appointment - no data returned")

            await self.commit()

            appointment_id = str(row[0])
            logger.info(
                f"Created appointment {appointment_id} on schedule {schedule_id} "
                f"for {candidate.date} at minute {candidate.start_time}"
            )
            return decision, appointment_id

        except ConflictError:
            # Lost a race against a concurrent writer
            await self.session.rollback()
            return BookingDecision.reject(RejectionReason.DOUBLE_BOOKED), None
        except DatabaseError as e:
            await self.session.rollback()
            logger.error(f"Failed to create appointment: {e}")
            raise
