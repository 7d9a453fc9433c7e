"""
Pydantic Schemas

Immutable value types for the scheduling core plus the request/response
schemas used by the HTTP layer.
"""

import datetime
import math
from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

import pytz
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from agenda.scheduling.timeutils import (
    MINUTES_PER_DAY,
    format_hhmm,
    parse_hhmm,
    to_local,
    weekday_index,
)


class ScheduleConfigurationError(Exception):
    """Raised when stored schedule data violates the schedule invariants."""

    def __init__(self, schedule_id: Optional[str], errors: List[Dict[str, Any]]):
        self.schedule_id = schedule_id
        self.errors = errors
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())) or 'schedule'}: {err.get('msg')}"
            for err in errors
        )
        super().__init__(f"Invalid configuration for schedule {schedule_id}: {details}")


def _minute_of_day(value: Any) -> Any:
    """Accept "HH:MM" strings as well as minute-of-day integers."""
    if isinstance(value, str) and ":" in value:
        return parse_hhmm(value)
    return value


MinuteOfDay = Annotated[
    int, BeforeValidator(_minute_of_day), Field(ge=0, le=MINUTES_PER_DAY)
]


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that never occupy a slot
NON_BLOCKING_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})


class RejectionReason(str, Enum):
    OUTSIDE_SCHEDULE = "OUTSIDE_SCHEDULE"
    OUTSIDE_HOURS = "OUTSIDE_HOURS"
    LUNCH_CONFLICT = "LUNCH_CONFLICT"
    BLOCKED = "BLOCKED"
    DOUBLE_BOOKED = "DOUBLE_BOOKED"
    TOO_FAR_AHEAD = "TOO_FAR_AHEAD"
    TOO_SOON = "TOO_SOON"


REJECTION_MESSAGES = {
    RejectionReason.OUTSIDE_SCHEDULE: "This day is not available on the schedule.",
    RejectionReason.OUTSIDE_HOURS: "The requested time is outside working hours.",
    RejectionReason.LUNCH_CONFLICT: "The requested time overlaps the lunch break.",
    RejectionReason.BLOCKED: "The requested time is blocked on the schedule.",
    RejectionReason.DOUBLE_BOOKED: "There is already an appointment at this time.",
    RejectionReason.TOO_FAR_AHEAD: "Appointments cannot be booked this far in advance.",
    RejectionReason.TOO_SOON: "Appointments need more notice before they start.",
}


class TimeRange(BaseModel):
    """A [start, end) window in minute-of-day."""

    model_config = ConfigDict(frozen=True)

    start: MinuteOfDay
    end: MinuteOfDay

    @model_validator(mode="after")
    def check_order(self) -> "TimeRange":
        if self.start >= self.end:
            raise ValueError("time range start must be before its end")
        return self


class DayConfig(BaseModel):
    """Per-weekday override used when a schedule has custom day configuration."""

    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(ge=0, le=6)
    is_active: bool = True
    time_slots: Tuple[TimeRange, ...] = ()


class ScheduleBlock(BaseModel):
    """
    One-off closure of a schedule.

    All-day blocks close every local date between ``start`` and ``end``;
    partial blocks only remove the overlapping time.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime.datetime
    end: datetime.datetime
    is_all_day: bool = True
    reason: Optional[str] = None

    @model_validator(mode="after")
    def check_order(self) -> "ScheduleBlock":
        if self.end <= self.start:
            raise ValueError("block end must be after its start")
        return self


class Schedule(BaseModel):
    """Recurring weekly availability of one professional."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: Optional[str] = None
    professional_id: Optional[str] = None

    working_days: FrozenSet[int]
    start_time: MinuteOfDay
    end_time: MinuteOfDay
    slot_duration: int = Field(default=30, gt=0)
    buffer_time: int = Field(default=0, ge=0)
    lunch_start: Optional[MinuteOfDay] = None
    lunch_end: Optional[MinuteOfDay] = None
    advance_booking_days: int = Field(default=30, ge=0)
    min_notice_hours: int = Field(default=2, ge=0)
    is_active: bool = True
    timezone: str = "UTC"

    use_custom_day_config: bool = False
    day_configs: Tuple[DayConfig, ...] = ()
    blocks: Tuple[ScheduleBlock, ...] = ()

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, v: FrozenSet[int]) -> FrozenSet[int]:
        invalid = sorted(day for day in v if not 0 <= day <= 6)
        if invalid:
            raise ValueError(f"weekday indices must be between 0 and 6, got {invalid}")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if v not in pytz.all_timezones_set:
            raise ValueError(f"unknown timezone: {v}")
        return v

    @model_validator(mode="after")
    def check_windows(self) -> "Schedule":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")

        if (self.lunch_start is None) != (self.lunch_end is None):
            raise ValueError("lunch_start and lunch_end must be set together")

        if self.lunch_start is not None:
            if self.lunch_start >= self.lunch_end:
                raise ValueError("lunch_start must be before lunch_end")
            if self.lunch_start < self.start_time or self.lunch_end > self.end_time:
                raise ValueError("lunch window must lie within the working hours")

        return self

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> "Schedule":
        """
        Build a schedule from stored configuration.

        Raises:
            ScheduleConfigurationError: if the data breaks a schedule invariant
        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ScheduleConfigurationError(data.get("id"), e.errors()) from e

    @property
    def has_lunch(self) -> bool:
        return self.lunch_start is not None and self.lunch_end is not None

    def day_config_for(self, target_date: datetime.date) -> Optional[DayConfig]:
        weekday = weekday_index(target_date)
        for config in self.day_configs:
            if config.day_of_week == weekday:
                return config
        return None

    def works_on(self, target_date: datetime.date) -> bool:
        """Whether the schedule accepts bookings at all on ``target_date``."""
        if not self.is_active:
            return False
        if self.use_custom_day_config:
            config = self.day_config_for(target_date)
            return config is not None and config.is_active
        return weekday_index(target_date) in self.working_days

    def day_windows(self, target_date: datetime.date) -> List[Tuple[int, int]]:
        """Bookable [start, end) windows for ``target_date``, empty when closed."""
        if not self.works_on(target_date):
            return []
        if self.use_custom_day_config:
            config = self.day_config_for(target_date)
            return sorted((r.start, r.end) for r in config.time_slots)
        return [(self.start_time, self.end_time)]

    def lunch_window(self, target_date: datetime.date) -> Optional[Tuple[int, int]]:
        # Custom day ranges already encode breaks
        if self.use_custom_day_config or not self.has_lunch:
            return None
        return (self.lunch_start, self.lunch_end)

    def is_closed_all_day(self, target_date: datetime.date) -> bool:
        for block in self.blocks:
            if not block.is_all_day:
                continue
            first = to_local(block.start, self.timezone).date()
            last = to_local(block.end, self.timezone).date()
            if first <= target_date <= last:
                return True
        return False

    def blocked_ranges(self, target_date: datetime.date) -> List[Tuple[int, int]]:
        """Minute-of-day ranges removed by partial blocks on ``target_date``."""
        ranges = []
        midnight = datetime.datetime.combine(target_date, datetime.time())
        for block in self.blocks:
            if block.is_all_day:
                continue
            start = to_local(block.start, self.timezone).replace(tzinfo=None)
            end = to_local(block.end, self.timezone).replace(tzinfo=None)
            start_minute = max(0, int((start - midnight).total_seconds() // 60))
            end_minute = min(MINUTES_PER_DAY, math.ceil((end - midnight).total_seconds() / 60))
            if start_minute < end_minute:
                ranges.append((start_minute, end_minute))
        return ranges


class Appointment(BaseModel):
    """Ledger entry supplied by the persistence layer."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    professional_id: Optional[str] = None
    date: datetime.date
    start_time: MinuteOfDay
    duration_minutes: int = Field(gt=0)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration_minutes

    @property
    def is_active(self) -> bool:
        return self.status not in NON_BLOCKING_STATUSES


class Slot(BaseModel):
    """A candidate bookable window on one date."""

    model_config = ConfigDict(frozen=True)

    date: datetime.date
    start_time: int
    end_time: int

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time

    @property
    def label(self) -> str:
        return format_hhmm(self.start_time)


class BookingCandidate(BaseModel):
    """A proposed appointment checked by the booking validator."""

    model_config = ConfigDict(frozen=True)

    date: datetime.date
    start_time: MinuteOfDay
    duration_minutes: int = Field(gt=0)
    professional_id: Optional[str] = None

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration_minutes


class BookingDecision(BaseModel):
    """Tagged result of a booking check: accepted, or rejected with a reason."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: Optional[RejectionReason] = None

    @classmethod
    def accept(cls) -> "BookingDecision":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason) -> "BookingDecision":
        return cls(accepted=False, reason=reason)

    @property
    def message(self) -> str:
        if self.accepted:
            return "Time slot available"
        return REJECTION_MESSAGES[self.reason]


# HTTP schemas

class SlotResponse(BaseModel):
    time: str
    end_time: str
    label: str

    @classmethod
    def from_slot(cls, slot: Slot) -> "SlotResponse":
        return cls(
            time=format_hhmm(slot.start_time),
            end_time=format_hhmm(slot.end_time),
            label=slot.label,
        )


class AvailabilityResponse(BaseModel):
    schedule_id: str
    date: datetime.date
    slot_duration: int
    buffer_time: int
    slots: List[SlotResponse]
    message: Optional[str] = None


class BookingRequest(BaseModel):
    """Body of the validate and create endpoints."""

    date: datetime.date
    time: str = Field(pattern=r"^\d{2}:\d{2}$", description="Start time as HH:MM")
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    professional_id: Optional[str] = None
    service_id: Optional[str] = None
    client_name: Optional[str] = Field(default=None, max_length=200)
    client_phone: Optional[str] = Field(default=None, max_length=40)
    notes: Optional[str] = None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if parse_hhmm(v) >= MINUTES_PER_DAY:
            raise ValueError("start time must be before 24:00")
        return v

    def to_candidate(self, default_duration: int) -> BookingCandidate:
        return BookingCandidate(
            date=self.date,
            start_time=parse_hhmm(self.time),
            duration_minutes=default_duration if self.duration_minutes is None else self.duration_minutes,
            professional_id=self.professional_id,
        )


class BookingResponse(BaseModel):
    success: bool
    message: str
    reason: Optional[RejectionReason] = None
    appointment_id: Optional[str] = None
