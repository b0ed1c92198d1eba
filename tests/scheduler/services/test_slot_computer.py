from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import busy, utc
from scheduler.services.slot_computer import (
    AvailabilityRule,
    TimeSlot,
    as_utc,
    compute_slots,
    day_window,
    local_date,
    parse_clock,
    sunday_based_weekday,
)

MONDAY = date(2026, 1, 5)
SUNDAY = date(2026, 1, 4)
WEEKDAYS = AvailabilityRule(days=frozenset({1, 2, 3, 4, 5}), start_time='09:00', end_time='17:00')


def starts(slots: list[TimeSlot]) -> list[tuple[int, int]]:
    return [(slot.start.hour, slot.start.minute) for slot in slots]


def test_sunday_based_weekday_maps_sunday_to_zero() -> None:
    assert sunday_based_weekday(SUNDAY) == 0
    assert sunday_based_weekday(MONDAY) == 1
    assert sunday_based_weekday(date(2026, 1, 10)) == 6


@pytest.mark.parametrize('day', [SUNDAY, date(2026, 1, 10)])
def test_non_working_day_has_no_slots(day: date) -> None:
    assert compute_slots(WEEKDAYS, day, []) == []


def test_rule_without_days_never_has_slots() -> None:
    rule = AvailabilityRule(days=frozenset(), start_time='09:00', end_time='17:00')

    for offset in range(7):
        assert compute_slots(rule, MONDAY + timedelta(days=offset), []) == []


def test_one_hour_window_packs_exactly_two_slots() -> None:
    rule = AvailabilityRule(days=frozenset({1}), start_time='09:00', end_time='10:00')

    assert compute_slots(rule, MONDAY, []) == [
        TimeSlot(utc(2026, 1, 5, 9, 0), utc(2026, 1, 5, 9, 30)),
        TimeSlot(utc(2026, 1, 5, 9, 30), utc(2026, 1, 5, 10, 0)),
    ]


def test_trailing_partial_slot_is_dropped() -> None:
    rule = AvailabilityRule(days=frozenset({1}), start_time='09:00', end_time='10:15')

    assert starts(compute_slots(rule, MONDAY, [])) == [(9, 0), (9, 30)]


def test_degenerate_window_is_empty() -> None:
    rule = AvailabilityRule(days=frozenset({1}), start_time='09:00', end_time='09:00')

    assert compute_slots(rule, MONDAY, []) == []


def test_full_day_without_busy_time_has_sixteen_slots() -> None:
    assert len(compute_slots(WEEKDAYS, MONDAY, [])) == 16


def test_lunch_meeting_leaves_fourteen_slots() -> None:
    slots = compute_slots(WEEKDAYS, MONDAY, [busy(utc(2026, 1, 5, 12), utc(2026, 1, 5, 13))])

    assert len(slots) == 14
    assert (12, 0) not in starts(slots)
    assert (12, 30) not in starts(slots)
    assert starts(slots)[5:7] == [(11, 30), (13, 0)]


def test_slots_touching_a_busy_interval_stay_bookable() -> None:
    slots = compute_slots(WEEKDAYS, MONDAY, [busy(utc(2026, 1, 5, 9, 30), utc(2026, 1, 5, 10, 0))])

    assert TimeSlot(utc(2026, 1, 5, 9, 0), utc(2026, 1, 5, 9, 30)) in slots
    assert TimeSlot(utc(2026, 1, 5, 10, 0), utc(2026, 1, 5, 10, 30)) in slots
    assert (9, 30) not in starts(slots)


def test_busy_interval_off_the_grid_blocks_every_slot_it_touches() -> None:
    slots = compute_slots(WEEKDAYS, MONDAY, [busy(utc(2026, 1, 5, 9, 10), utc(2026, 1, 5, 10, 5))])

    assert starts(slots)[:2] == [(10, 30), (11, 0)]


def test_busy_time_outside_the_window_has_no_effect() -> None:
    outside = [
        busy(utc(2026, 1, 5, 6), utc(2026, 1, 5, 9)),
        busy(utc(2026, 1, 5, 17), utc(2026, 1, 5, 20)),
        busy(utc(2026, 1, 6, 9), utc(2026, 1, 6, 17)),
    ]

    assert compute_slots(WEEKDAYS, MONDAY, outside) == compute_slots(WEEKDAYS, MONDAY, [])


def test_overlapping_and_duplicate_busy_intervals_are_tolerated() -> None:
    intervals = [
        busy(utc(2026, 1, 5, 10), utc(2026, 1, 5, 11)),
        busy(utc(2026, 1, 5, 10, 30), utc(2026, 1, 5, 11, 30)),
        busy(utc(2026, 1, 5, 10), utc(2026, 1, 5, 11)),
    ]

    slots = compute_slots(WEEKDAYS, MONDAY, intervals)

    assert len(slots) == 13
    for slot in slots:
        assert not any(slot.overlaps(interval) for interval in intervals)


def test_slots_stay_inside_the_working_window_and_ascend() -> None:
    rule = AvailabilityRule(days=frozenset({1}), start_time='08:30', end_time='12:45')
    day_start, day_end = day_window(rule, MONDAY)

    slots = compute_slots(rule, MONDAY, [busy(utc(2026, 1, 5, 10), utc(2026, 1, 5, 10, 20))])

    assert slots
    for slot in slots:
        assert day_start <= slot.start
        assert slot.end <= day_end
        assert slot.end - slot.start == timedelta(minutes=30)
    assert [slot.start for slot in slots] == sorted(slot.start for slot in slots)


def test_compute_slots_is_repeatable() -> None:
    intervals = [busy(utc(2026, 1, 5, 12), utc(2026, 1, 5, 13))]

    first = compute_slots(WEEKDAYS, MONDAY, intervals)
    second = compute_slots(WEEKDAYS, MONDAY, intervals)

    assert first == second


def test_naive_busy_intervals_are_read_as_utc() -> None:
    slots = compute_slots(WEEKDAYS, MONDAY, [busy(datetime(2026, 1, 5, 9), datetime(2026, 1, 5, 10))])

    assert starts(slots)[0] == (10, 0)


def test_working_hours_follow_the_rule_time_zone() -> None:
    rule = AvailabilityRule(
        days=frozenset({1}),
        start_time='09:00',
        end_time='10:00',
        time_zone='America/New_York',
    )

    slots = compute_slots(rule, MONDAY, [])

    assert slots == [
        TimeSlot(utc(2026, 1, 5, 14, 0), utc(2026, 1, 5, 14, 30)),
        TimeSlot(utc(2026, 1, 5, 14, 30), utc(2026, 1, 5, 15, 0)),
    ]


def test_unknown_time_zone_falls_back_to_utc() -> None:
    rule = AvailabilityRule(days=frozenset({1}), start_time='09:00', end_time='10:00', time_zone='Mars/Olympus')

    assert day_window(rule, MONDAY) == (utc(2026, 1, 5, 9), utc(2026, 1, 5, 10))


def test_local_date_uses_rule_time_zone() -> None:
    rule = AvailabilityRule(days=frozenset({1}), start_time='09:00', end_time='10:00', time_zone='Asia/Tokyo')

    assert local_date(rule, utc(2026, 1, 4, 23, 0)) == MONDAY


def test_as_utc_converts_offsets() -> None:
    plus_two = timezone(timedelta(hours=2))

    assert as_utc(datetime(2026, 1, 5, 11, 0, tzinfo=plus_two)) == utc(2026, 1, 5, 9, 0)
    assert as_utc(datetime(2026, 1, 5, 9, 0)).tzinfo == timezone.utc


@pytest.mark.parametrize('value', ['9:00', '0900', '25:00', '09:60', 'ab:cd', '09:00:00'])
def test_parse_clock_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValueError):
        parse_clock(value)
