"""
Time helpers shared by the slot generator, the availability filter
and the booking validator.

Times of day are minute-of-day integers (480 = 08:00). Weekdays use
0 = Sunday ... 6 = Saturday.
"""

from datetime import date, datetime, time, timedelta
from typing import Union

import pytz
from pytz.tzinfo import BaseTzInfo

MINUTES_PER_DAY = 24 * 60


def parse_hhmm(value: str) -> int:
    """
    Convert "HH:MM" to minute-of-day.

    "24:00" is accepted as the end of the day.

    Raises:
        ValueError: if the value is not a valid clock time
    """
    hours, minutes = (int(part) for part in value.split(":"))
    total = hours * 60 + minutes
    if not 0 <= minutes < 60 or not 0 <= total <= MINUTES_PER_DAY:
        raise ValueError(f"invalid time of day: {value!r}")
    return total


def format_hhmm(minutes: int) -> str:
    """Convert minute-of-day to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def weekday_index(target_date: date) -> int:
    """Weekday of ``target_date`` with Sunday as 0."""
    return (target_date.weekday() + 1) % 7


def get_timezone(tz: Union[str, BaseTzInfo]) -> BaseTzInfo:
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def localize(target_date: date, minute_of_day: int, tz: Union[str, BaseTzInfo]) -> datetime:
    """
    Build the aware instant for a minute-of-day on a local date.

    Args:
        target_date: local calendar date
        minute_of_day: minutes since local midnight
        tz: timezone name or pytz timezone

    Returns:
        datetime: timezone-aware datetime
    """
    naive = datetime.combine(target_date, time()) + timedelta(minutes=minute_of_day)
    return get_timezone(tz).localize(naive)


def to_local(instant: datetime, tz: Union[str, BaseTzInfo]) -> datetime:
    """Express ``instant`` in ``tz``; naive values are taken as local already."""
    zone = get_timezone(tz)
    if instant.tzinfo is None:
        return zone.localize(instant)
    return instant.astimezone(zone)


def local_date(instant: datetime, tz: Union[str, BaseTzInfo]) -> date:
    return to_local(instant, tz).date()


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap: [start_a, end_a) and [start_b, end_b)."""
    return start_a < end_b and start_b < end_a
