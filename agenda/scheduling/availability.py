"""
Availability Filter

Narrows generated slots down to the ones a client may book right now,
considering:
- Existing appointments (ledger conflicts)
- Schedule blocks
- Booking horizon (advance_booking_days)
- Minimum notice (min_notice_hours)
"""

import datetime
from typing import Iterable, List, Optional, Sequence

from agenda.models.schemas import Appointment, Schedule, Slot
from agenda.scheduling.timeutils import local_date, localize, overlaps, to_local


def conflicting_appointments(
    appointments: Iterable[Appointment],
    target_date: datetime.date,
    start_time: int,
    end_time: int,
    professional_id: Optional[str] = None,
) -> List[Appointment]:
    """
    Return active ledger entries overlapping [start_time, end_time) on a date.

    When ``professional_id`` is given, entries assigned to another
    professional are ignored. Entries without a professional always count.
    """
    conflicts = []
    for appointment in appointments:
        if not appointment.is_active or appointment.date != target_date:
            continue
        if (
            professional_id is not None
            and appointment.professional_id is not None
            and appointment.professional_id != professional_id
        ):
            continue
        if overlaps(start_time, end_time, appointment.start_time, appointment.end_time):
            conflicts.append(appointment)
    return conflicts


def is_blocked(schedule: Schedule, target_date: datetime.date, start_time: int, end_time: int) -> bool:
    return any(
        overlaps(start_time, end_time, block_start, block_end)
        for block_start, block_end in schedule.blocked_ranges(target_date)
    )


def is_beyond_horizon(schedule: Schedule, target_date: datetime.date, now: datetime.datetime) -> bool:
    """Day-granularity horizon check in the schedule's timezone."""
    today = local_date(now, schedule.timezone)
    return (target_date - today).days > schedule.advance_booking_days


def is_within_notice(
    schedule: Schedule,
    target_date: datetime.date,
    start_time: int,
    now: datetime.datetime,
) -> bool:
    """True when the start instant is earlier than now + min_notice_hours."""
    earliest = to_local(now, schedule.timezone) + datetime.timedelta(hours=schedule.min_notice_hours)
    return localize(target_date, start_time, schedule.timezone) < earliest


def filter_available(
    slots: Sequence[Slot],
    schedule: Schedule,
    appointments: Iterable[Appointment],
    now: datetime.datetime,
    professional_id: Optional[str] = None,
) -> List[Slot]:
    """
    Keep the slots that can still be booked.

    Args:
        slots: candidate slots, usually from generate_slots
        schedule: schedule the slots were generated from
        appointments: ledger entries for the relevant dates
        now: current instant; naive values are read in the schedule timezone
        professional_id: professional to check conflicts for, defaults to
            the schedule owner

    Returns:
        list[Slot]: subsequence of ``slots`` in the same order
    """
    ledger = list(appointments)
    professional_id = professional_id or schedule.professional_id

    available = []
    for slot in slots:
        if conflicting_appointments(
            ledger, slot.date, slot.start_time, slot.end_time, professional_id
        ):
            continue
        if schedule.is_closed_all_day(slot.date):
            continue
        if is_blocked(schedule, slot.date, slot.start_time, slot.end_time):
            continue
        if is_beyond_horizon(schedule, slot.date, now):
            continue
        if is_within_notice(schedule, slot.date, slot.start_time, now):
            continue
        available.append(slot)

    return available
