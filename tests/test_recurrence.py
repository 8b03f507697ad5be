from datetime import date, datetime, time, timedelta

import pytest

from activitee.core.exceptions import InvalidRangeError
from activitee.manager.services.recurrence import (
    RecurrenceRule,
    clamp_duration,
    expand,
    first_matching_date,
    sunday_based_weekday,
)


def make_rule(**overrides):
    values = dict(
        weekday=3,
        time_of_day=time(16, 0),
        interval_weeks=1,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
        duration_minutes=90,
    )
    values.update(overrides)
    return RecurrenceRule(**values)


def test_wednesday_series_in_january():
    occurrences = list(expand(make_rule()))

    assert [o.starts_at.date() for o in occurrences] == [
        date(2024, 1, 3),
        date(2024, 1, 10),
        date(2024, 1, 17),
        date(2024, 1, 24),
        date(2024, 1, 31),
    ]
    for occurrence in occurrences:
        assert occurrence.starts_at.time() == time(16, 0)
        assert occurrence.ends_at.time() == time(17, 30)


def test_first_occurrence_moves_forward_to_weekday():
    # 2024-01-03 is a Wednesday; the first Monday after it is 2024-01-08
    rule = make_rule(weekday=1, start_date=date(2024, 1, 3), end_date=date(2024, 2, 3))

    first = next(iter(expand(rule)))

    assert first.starts_at == datetime(2024, 1, 8, 16, 0)


def test_start_date_on_weekday_is_first_occurrence():
    assert first_matching_date(date(2024, 1, 3), 3) == date(2024, 1, 3)


def test_sunday_is_zero():
    assert sunday_based_weekday(date(2024, 1, 7)) == 0
    assert sunday_based_weekday(date(2024, 1, 13)) == 6


def test_occurrences_capped_at_eighty():
    rule = make_rule(start_date=date(2024, 1, 1), end_date=date(2030, 12, 31))

    assert len(list(expand(rule))) == 80


def test_custom_cap():
    assert len(list(expand(make_rule(), max_occurrences=2))) == 2


@pytest.mark.parametrize("interval_weeks", [1, 2, 3])
def test_spacing_and_weekday(interval_weeks):
    rule = make_rule(
        weekday=5,
        interval_weeks=interval_weeks,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 6, 30),
    )
    occurrences = list(expand(rule))

    assert occurrences
    for occurrence in occurrences:
        assert sunday_based_weekday(occurrence.starts_at.date()) == 5
    for previous, current in zip(occurrences, occurrences[1:]):
        assert current.starts_at - previous.starts_at == timedelta(weeks=interval_weeks)


def test_end_before_start_fails_before_iteration():
    rule = make_rule(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))

    with pytest.raises(InvalidRangeError) as exc_info:
        expand(rule)

    assert exc_info.value.status_code == 400
    assert exc_info.value.error_code == "INVALID_RANGE"


def test_no_matching_weekday_gives_empty_sequence():
    # a single Monday never hits a Wednesday
    rule = make_rule(start_date=date(2024, 1, 1), end_date=date(2024, 1, 1))

    assert list(expand(rule)) == []


def test_end_date_is_inclusive_for_late_start():
    rule = make_rule(
        time_of_day=time(23, 30),
        start_date=date(2024, 1, 3),
        end_date=date(2024, 1, 3),
    )

    occurrences = list(expand(rule))

    assert len(occurrences) == 1
    assert occurrences[0].ends_at == datetime(2024, 1, 4, 1, 0)


def test_expansion_is_single_use():
    occurrences = expand(make_rule())

    assert len(list(occurrences)) == 5
    assert list(occurrences) == []


@pytest.mark.parametrize(
    "value,expected", [(None, 60), (0, 1), (-5, 1), (45, 45), (240, 240), (500, 240)]
)
def test_clamp_duration(value, expected):
    assert clamp_duration(value) == expected


def test_weekday_past_last_representable_date_gives_empty_sequence():
    # 9999-12-31 is a Friday; the next Saturday does not exist
    rule = make_rule(weekday=6, start_date=date(9999, 12, 31), end_date=date(9999, 12, 31))

    assert first_matching_date(date(9999, 12, 31), 6) is None
    assert list(expand(rule)) == []


def test_series_ending_on_last_representable_date():
    rule = make_rule(weekday=5, start_date=date(9999, 12, 24), end_date=date(9999, 12, 31))

    occurrences = list(expand(rule))

    assert [o.starts_at for o in occurrences] == [
        datetime(9999, 12, 24, 16, 0),
        datetime(9999, 12, 31, 16, 0),
    ]


def test_occurrence_ending_past_last_representable_date_is_dropped():
    rule = make_rule(
        weekday=5,
        time_of_day=time(23, 30),
        start_date=date(9999, 12, 31),
        end_date=date(9999, 12, 31),
    )

    assert list(expand(rule)) == []
