"""
Weekly recurrence expansion.

Weekdays follow the 0 = Sunday .. 6 = Saturday convention used by clients and
stored on ``club_event_series.weekday``. All timestamps are naive local
wall-clock values.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional

from activitee.core.config import (
    DEFAULT_EVENT_DURATION,
    MAX_EVENT_DURATION,
    MAX_SERIES_OCCURRENCES,
)
from activitee.core.exceptions import InvalidRangeError


@dataclass(frozen=True)
class RecurrenceRule:
    weekday: int
    time_of_day: time
    interval_weeks: int
    start_date: date
    end_date: date
    duration_minutes: int


@dataclass(frozen=True)
class Occurrence:
    starts_at: datetime
    ends_at: datetime


def clamp_duration(duration_minutes) -> int:
    """Event length in minutes, forced into 1..MAX_EVENT_DURATION"""
    if duration_minutes is None:
        duration_minutes = DEFAULT_EVENT_DURATION
    return max(1, min(int(duration_minutes), MAX_EVENT_DURATION))


def sunday_based_weekday(day: date) -> int:
    return (day.weekday() + 1) % 7


def first_matching_date(start_date: date, weekday: int) -> Optional[date]:
    """
    Earliest date on or after ``start_date`` falling on ``weekday``.

    None when that date lies past ``date.max``.
    """
    try:
        return start_date + timedelta(days=(weekday - sunday_based_weekday(start_date)) % 7)
    except OverflowError:
        return None


def expand(
    rule: RecurrenceRule, max_occurrences: int = MAX_SERIES_OCCURRENCES
) -> Iterator[Occurrence]:
    """
    Expand ``rule`` into concrete occurrences, earliest first.

    The range is checked eagerly so a bad rule fails before anything is
    produced. The returned iterator is single-use and yields at most
    ``max_occurrences`` items; an empty range yields nothing.

    Raises:
        InvalidRangeError: ``end_date`` is before ``start_date``
    """
    if rule.end_date < rule.start_date:
        raise InvalidRangeError(rule.start_date, rule.end_date)

    return _iterate(rule, max_occurrences)


def _iterate(rule: RecurrenceRule, max_occurrences: int) -> Iterator[Occurrence]:
    step = timedelta(weeks=max(1, rule.interval_weeks))
    length = timedelta(minutes=rule.duration_minutes)

    cursor = first_matching_date(rule.start_date, rule.weekday)
    produced = 0
    # end_date is inclusive: any start time on that day still counts
    while cursor is not None and cursor <= rule.end_date and produced < max_occurrences:
        starts_at = datetime.combine(cursor, rule.time_of_day)
        try:
            ends_at = starts_at + length
        except OverflowError:
            return
        yield Occurrence(starts_at=starts_at, ends_at=ends_at)
        produced += 1
        try:
            cursor += step
        except OverflowError:
            return
