"""
Slot Generation

Walks a schedule's working window for one date and produces the ordered
candidate slots, skipping the ones that intersect the lunch break.
"""

import datetime
from typing import List, Optional

from agenda.models.schemas import Schedule, Slot
from agenda.scheduling.timeutils import overlaps


def generate_slots(
    schedule: Schedule,
    target_date: datetime.date,
    duration_minutes: Optional[int] = None,
) -> List[Slot]:
    """
    Generate the candidate slots of a schedule for a single date.

    Args:
        schedule: schedule to walk
        target_date: local date to generate slots for
        duration_minutes: length of each slot; defaults to the schedule's
            slot_duration (a selected service may ask for a different one)

    Returns:
        list[Slot]: slots ordered by start time; empty when the schedule is
        inactive or does not work on that weekday

    Example:
        >>> slots = generate_slots(schedule, datetime.date(2025, 1, 6))
        >>> [s.label for s in slots][:2]
        ['08:00', '08:30']
    """
    duration = schedule.slot_duration if duration_minutes is None else duration_minutes
    if duration <= 0:
        raise ValueError("duration_minutes must be positive")

    step = duration + schedule.buffer_time
    lunch = schedule.lunch_window(target_date)

    slots = []
    for window_start, window_end in schedule.day_windows(target_date):
        current = window_start

        while current + duration <= window_end:
            slot_end = current + duration

            # Lunch slots are dropped, the grid is not shifted
            if lunch is None or not overlaps(current, slot_end, *lunch):
                slots.append(Slot(date=target_date, start_time=current, end_time=slot_end))

            current += step

    return slots
