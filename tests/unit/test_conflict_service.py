from __future__ import annotations

from datetime import date

from tutorly.domain.models import OneOffBooking, RecurringOccurrence, SuggestedSlot, WeeklyScheduleSlot
from tutorly.services.conflict_service import (
    DEFAULT_SUGGESTIONS,
    detect_conflicts,
    intervals_overlap,
    suggest_available_slots,
)


def _booking(booking_id: str, day: int, start: float, duration: float, student_id: str | None = None) -> OneOffBooking:
    return OneOffBooking(
        id=booking_id,
        title=f"Lesson {booking_id}",
        subtitle="Math",
        day=day,
        start_time=start,
        duration=duration,
        student_id=student_id,
    )


def test_intervals_overlap_is_half_open() -> None:
    assert intervals_overlap(14, 1, 14.5, 1)
    assert not intervals_overlap(14, 1, 15, 1)
    assert not intervals_overlap(15, 1, 14, 1)


def test_overlapping_slot_conflicts() -> None:
    slot = WeeklyScheduleSlot(day=0, start_time=14, duration=1)

    conflicts = detect_conflicts([slot], [_booking("b1", 0, 14.5, 1)])

    assert len(conflicts) == 1
    assert conflicts[0].day == 0
    assert conflicts[0].time == 14
    assert conflicts[0].conflicting_item.title == "Lesson b1"


def test_back_to_back_slot_does_not_conflict() -> None:
    slot = WeeklyScheduleSlot(day=0, start_time=14, duration=1)

    assert detect_conflicts([slot], [_booking("b1", 0, 15, 1)]) == []


def test_other_day_does_not_conflict() -> None:
    slot = WeeklyScheduleSlot(day=1, start_time=14, duration=1)

    assert detect_conflicts([slot], [_booking("b1", 0, 14, 1)]) == []


def test_own_recurring_occurrences_are_excluded() -> None:
    own_recurring = RecurringOccurrence(
        id="recurring-s1-0-0-2026-03-02",
        title="Ann",
        day=0,
        start_time=14,
        duration=1,
        date=date(2026, 3, 2),
        student_id="s1",
        recurrence_rule_id="recurring-s1-0-0",
    )
    own_one_off = _booking("b1", 0, 14, 1, student_id="s1")
    slot = WeeklyScheduleSlot(day=0, start_time=14, duration=1)

    conflicts = detect_conflicts([slot], [own_recurring, own_one_off], exclude_student_id="s1")

    assert len(conflicts) == 1
    assert conflicts[0].conflicting_item.title == "Lesson b1"


def test_conflicts_keep_insertion_order_without_dedup() -> None:
    slots = [
        WeeklyScheduleSlot(day=0, start_time=9, duration=2),
        WeeklyScheduleSlot(day=0, start_time=13, duration=1),
    ]
    existing = [_booking("b1", 0, 9.5, 1), _booking("b2", 0, 10, 1), _booking("b3", 0, 13, 1)]

    conflicts = detect_conflicts(slots, existing)

    assert [(item.time, item.conflicting_item.title) for item in conflicts] == [
        (9, "Lesson b1"),
        (9, "Lesson b2"),
        (13, "Lesson b3"),
    ]


def test_suggestions_default_when_day_is_free() -> None:
    assert suggest_available_slots(3, [_booking("b1", 0, 9, 1)]) == list(DEFAULT_SUGGESTIONS)


def test_suggestions_between_lessons() -> None:
    existing = [_booking("b2", 0, 11, 1.5), _booking("b1", 0, 9, 1)]

    slots = suggest_available_slots(0, existing, preferred_duration=1)

    assert slots == [
        SuggestedSlot(start_time=8, end_time=9),
        SuggestedSlot(start_time=10, end_time=11),
    ]
    assert all(slot.start_time >= 8 for slot in slots)


def test_suggestions_skip_short_gaps_and_trailing_time() -> None:
    existing = [_booking("b1", 0, 8.5, 1), _booking("b2", 0, 10, 1)]

    slots = suggest_available_slots(0, existing, preferred_duration=1)

    assert slots == []


def test_suggestions_are_limited() -> None:
    existing = [_booking(f"b{index}", 4, 9 + index * 2, 1) for index in range(7)]

    slots = suggest_available_slots(4, existing, preferred_duration=1, limit=5)

    assert len(slots) == 5
    assert slots[0] == SuggestedSlot(start_time=8, end_time=9)
