"""
Bookable slot computation.

Pure functions only: no database access, no network, no clock reads.
Everything that varies between calls arrives through the arguments, so
the same inputs always produce the same ordered slots.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

SLOT_DURATION = timedelta(minutes=30)


@dataclass(frozen=True)
class TimeSlot:
    """A half-open interval ``[start, end)`` of timezone-aware datetimes."""
    start: datetime
    end: datetime

    def overlaps(self, other: "TimeSlot") -> bool:
        # Touching boundaries do not count.
        return self.start < other.end and self.end > other.start


@dataclass(frozen=True)
class AvailabilityRule:
    """Weekly working pattern for one user."""
    days: frozenset[int]  # 0 = Sunday
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    time_zone: str = 'UTC'


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_clock(value: str) -> time:
    """Parse a zero-padded ``HH:MM`` string. Raises ValueError otherwise."""
    if len(value) != 5 or value[2] != ':':
        raise ValueError(f'Expected HH:MM, got {value!r}.')
    hour_text, minute_text = value.split(':')
    if not (hour_text.isdigit() and minute_text.isdigit()):
        raise ValueError(f'Expected HH:MM, got {value!r}.')
    return time(int(hour_text), int(minute_text))


def sunday_based_weekday(day: date) -> int:
    # date.weekday() is Monday = 0.
    return (day.weekday() + 1) % 7


def resolve_zone(name: str) -> ZoneInfo | timezone:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning('Unknown time zone %r, interpreting availability in UTC.', name)
        return timezone.utc


def day_window(rule: AvailabilityRule, day: date) -> tuple[datetime, datetime]:
    """Return ``(day_start, day_end)`` in UTC for the rule's working hours on ``day``.

    Working hours are wall-clock times in the rule's own time zone.
    """
    zone = resolve_zone(rule.time_zone)
    day_start = datetime.combine(day, parse_clock(rule.start_time), tzinfo=zone)
    day_end = datetime.combine(day, parse_clock(rule.end_time), tzinfo=zone)
    return as_utc(day_start), as_utc(day_end)


def local_date(rule: AvailabilityRule, moment: datetime) -> date:
    """The calendar date of ``moment`` as seen in the rule's time zone."""
    return as_utc(moment).astimezone(resolve_zone(rule.time_zone)).date()


def compute_slots(
    rule: AvailabilityRule,
    day: date,
    busy_intervals: Iterable[TimeSlot],
    slot_duration: timedelta = SLOT_DURATION,
) -> list[TimeSlot]:
    """
    Slice the rule's working window on ``day`` into fixed-size slots and drop
    every slot that overlaps a busy interval.

    The grid is anchored at the window start and always advances by exactly
    one ``slot_duration``, whether or not the candidate was kept. A trailing
    partial slot is never produced. Busy intervals may overlap each other and
    may lie partly or wholly outside the window.
    """
    if sunday_based_weekday(day) not in rule.days:
        return []

    day_start, day_end = day_window(rule, day)
    busy = [TimeSlot(as_utc(interval.start), as_utc(interval.end)) for interval in busy_intervals]

    slots: list[TimeSlot] = []
    current = day_start

    while current + slot_duration <= day_end:
        candidate = TimeSlot(current, current + slot_duration)
        if not any(candidate.overlaps(interval) for interval in busy):
            slots.append(candidate)
        current += slot_duration

    return slots
