"""
Booking Validator

Decides whether a single proposed appointment may be written. It must be
re-run inside the transaction that inserts the appointment.
"""

import datetime
import logging
from typing import Iterable

from agenda.models.schemas import (
    Appointment,
    BookingCandidate,
    BookingDecision,
    RejectionReason,
    Schedule,
)
from agenda.scheduling.availability import (
    conflicting_appointments,
    is_beyond_horizon,
    is_blocked,
    is_within_notice,
)
from agenda.scheduling.timeutils import overlaps

logger = logging.getLogger(__name__)


def _reject(candidate: BookingCandidate, reason: RejectionReason) -> BookingDecision:
    logger.debug(
        f"Rejected booking on {candidate.date} at minute {candidate.start_time}: {reason.value}"
    )
    return BookingDecision.reject(reason)


def validate_booking(
    schedule: Schedule,
    appointments: Iterable[Appointment],
    now: datetime.datetime,
    candidate: BookingCandidate,
) -> BookingDecision:
    """
    Check a proposed appointment against the schedule and the ledger.

    Args:
        schedule: schedule the appointment belongs to
        appointments: active ledger entries around the candidate date
        now: current instant
        candidate: proposed date, start minute and duration

    Returns:
        BookingDecision: accepted, or rejected with the first failing reason
        in this order: OUTSIDE_SCHEDULE, OUTSIDE_HOURS, LUNCH_CONFLICT,
        BLOCKED, DOUBLE_BOOKED, TOO_FAR_AHEAD, TOO_SOON
    """
    target_date = candidate.date
    start, end = candidate.start_time, candidate.end_time

    if not schedule.works_on(target_date) or schedule.is_closed_all_day(target_date):
        return _reject(candidate, RejectionReason.OUTSIDE_SCHEDULE)

    windows = schedule.day_windows(target_date)
    if not any(window_start <= start and end <= window_end for window_start, window_end in windows):
        return _reject(candidate, RejectionReason.OUTSIDE_HOURS)

    lunch = schedule.lunch_window(target_date)
    if lunch is not None and overlaps(start, end, *lunch):
        return _reject(candidate, RejectionReason.LUNCH_CONFLICT)

    if is_blocked(schedule, target_date, start, end):
        return _reject(candidate, RejectionReason.BLOCKED)

    professional_id = candidate.professional_id or schedule.professional_id
    if conflicting_appointments(appointments, target_date, start, end, professional_id):
        return _reject(candidate, RejectionReason.DOUBLE_BOOKED)

    if is_beyond_horizon(schedule, target_date, now):
        return _reject(candidate, RejectionReason.TOO_FAR_AHEAD)

    if is_within_notice(schedule, target_date, start, now):
        return _reject(candidate, RejectionReason.TOO_SOON)

    return BookingDecision.accept()
