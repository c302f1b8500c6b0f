from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from tutorly.domain.enums import ExceptionType, OccurrencePhase
from tutorly.domain.errors import (
    CannotDeleteRecurringError,
    DuplicateIdError,
    InvalidChangeError,
    ReservedIdError,
    StudentNotFoundError,
)
from tutorly.domain.models import (
    OneOffBooking,
    RecurringException,
    RecurringOccurrence,
    Student,
    Transaction,
    WeeklyScheduleSlot,
)
from tutorly.services.schedule_aggregate import ScheduleAggregate

NOW = datetime(2026, 3, 5, 10, 0, tzinfo=UTC)


def _aggregate(student: Student) -> ScheduleAggregate:
    aggregate = ScheduleAggregate(timezone="UTC")
    aggregate.add_student(student)
    return aggregate


def _booking(booking_id: str = "b1", **overrides: object) -> OneOffBooking:
    payload: dict[str, object] = {
        "id": booking_id,
        "title": "Sam Taylor",
        "subtitle": "Algebra",
        "start_time": 14,
        "duration": 1,
        "date": date(2026, 3, 4),
        "student_id": "s1",
    }
    payload.update(overrides)
    return OneOffBooking.model_validate(payload)


def test_all_occurrences_combines_bookings_and_recurring(wednesday_student: Student) -> None:
    aggregate = _aggregate(wednesday_student)
    aggregate.add_booking(_booking())

    items = aggregate.get_all_occurrences(date(2026, 3, 2), date(2026, 3, 15))

    assert isinstance(items[0], OneOffBooking)
    assert [item.date for item in items[1:]] == [date(2026, 3, 4), date(2026, 3, 11)]
    assert all(isinstance(item, RecurringOccurrence) for item in items[1:])


def test_occurrences_reflect_exception_edits_immediately(wednesday_student: Student) -> None:
    aggregate = _aggregate(wednesday_student)
    skip = RecurringException(
        id="e1",
        recurrence_rule_id="recurring-s1-2-0",
        date=date(2026, 3, 11),
        type=ExceptionType.SKIP,
    )

    aggregate.add_exception(skip)
    skipped = aggregate.recurring_occurrences(date(2026, 3, 2), date(2026, 3, 15))
    aggregate.remove_exception("e1")
    restored = aggregate.recurring_occurrences(date(2026, 3, 2), date(2026, 3, 15))

    assert [item.date for item in skipped] == [date(2026, 3, 4)]
    assert len(restored) == 2


def test_booking_day_is_derived_from_date() -> None:
    booking = _booking(day=6)

    assert booking.day == 2


def test_duplicate_ids_are_rejected(wednesday_student: Student) -> None:
    aggregate = _aggregate(wednesday_student)
    aggregate.add_booking(_booking())

    with pytest.raises(DuplicateIdError):
        aggregate.add_booking(_booking())
    with pytest.raises(DuplicateIdError):
        aggregate.add_student(wednesday_student)


def test_update_booking_replaces_fields() -> None:
    aggregate = ScheduleAggregate()
    aggregate.add_booking(_booking())

    state = aggregate.update_booking("b1", {"start_time": 9.5, "date": date(2026, 3, 6)})

    assert state.one_off_bookings[0].start_time == 9.5
    assert state.one_off_bookings[0].day == 4


def test_commands_replace_state_snapshot() -> None:
    aggregate = ScheduleAggregate()
    before = aggregate.state

    after = aggregate.add_booking(_booking())

    assert before.one_off_bookings == []
    assert after is aggregate.state
    assert len(after.one_off_bookings) == 1


def test_delete_booking_cascades_transactions_and_keys(wednesday_student: Student) -> None:
    aggregate = _aggregate(wednesday_student)
    aggregate.add_booking(_booking())
    first = aggregate.run_accrual_pass(NOW)
    booking_keys = {key for key in first.processed_keys if key.startswith("b1-")}
    assert booking_keys == {"b1-2026-03-04"}

    state = aggregate.delete_booking("b1", NOW)

    assert state.one_off_bookings == []
    assert not any(item.id.startswith("transaction-b1-") for item in state.transactions)
    assert "b1-2026-03-04" not in state.processed_keys
    assert aggregate.run_accrual_pass(NOW).new_transactions == []


def test_deleting_recurring_occurrence_is_rejected(wednesday_student: Student) -> None:
    aggregate = _aggregate(wednesday_student)
    occurrence = aggregate.recurring_occurrences(date(2026, 3, 2), date(2026, 3, 8))[0]

    with pytest.raises(CannotDeleteRecurringError):
        aggregate.delete_booking("recurring-s1-2-0", NOW)
    with pytest.raises(CannotDeleteRecurringError):
        aggregate.delete_booking(occurrence.id, NOW)
    with pytest.raises(CannotDeleteRecurringError):
        aggregate.delete_occurrence(occurrence, NOW)


def test_delete_unknown_booking_cleans_stale_records() -> None:
    aggregate = ScheduleAggregate()
    aggregate.add_transaction(
        Transaction(id="transaction-gone-1", date=date(2026, 3, 1), student_name="A", amount=1),
    )

    state = aggregate.delete_booking("gone", NOW)

    assert state.transactions == []


def test_conflicts_exclude_own_pattern(wednesday_student: Student) -> None:
    aggregate = _aggregate(wednesday_student)
    aggregate.add_booking(_booking("b2", date=date(2026, 3, 11), start_time=16.5, student_id=None))
    candidate = [WeeklyScheduleSlot(day=2, start_time=16, duration=1)]

    own = aggregate.detect_conflicts(candidate, NOW, exclude_student_id="s1")
    other = aggregate.detect_conflicts(candidate, NOW, exclude_student_id="s2")

    assert [item.conflicting_item.title for item in own] == ["Sam Taylor"]
    assert len(other) > len(own)


def test_suggestions_use_combined_view() -> None:
    aggregate = ScheduleAggregate()
    aggregate.add_booking(_booking("b1", date=None, day=0, start_time=9, duration=1))
    aggregate.add_booking(_booking("b2", date=None, day=0, start_time=11, duration=1.5))

    slots = aggregate.suggest_available_slots(0, NOW, preferred_duration=1)

    assert [(slot.start_time, slot.end_time) for slot in slots] == [(8, 9), (10, 11)]


def test_classification_matches_accrual_boundary() -> None:
    aggregate = ScheduleAggregate(timezone="UTC")
    booking = _booking()
    lesson_end = datetime(2026, 3, 4, 15, 0, tzinfo=UTC)

    assert aggregate.classify(booking, lesson_end) == OccurrencePhase.UPCOMING
    assert aggregate.classify(booking, lesson_end + timedelta(microseconds=1)) == OccurrencePhase.PAST


def test_student_commands(wednesday_student: Student) -> None:
    aggregate = _aggregate(wednesday_student)

    aggregate.update_student("s1", {"name": "Samuel Ortiz", "price_per_hour": 70})
    aggregate.apply_template("s1", "twice-weekly")
    student = aggregate.state.student_by_id("s1")

    assert student is not None
    assert student.initials == "SO"
    assert student.price_per_hour == 70
    assert [slot.day for slot in student.weekly_schedule] == [0, 3]
    with pytest.raises(StudentNotFoundError):
        aggregate.set_weekly_schedule("missing", [])

    aggregate.remove_student("s1")
    assert aggregate.state.students == []


def test_manual_transactions_do_not_touch_processed_keys() -> None:
    aggregate = ScheduleAggregate()
    manual = Transaction(id="manual-1", date=date(2026, 3, 1), student_name="A", amount=30)

    aggregate.add_transaction(manual)
    assert aggregate.state.transactions == [manual]
    aggregate.remove_transaction("manual-1")

    assert aggregate.state.transactions == []
    assert aggregate.state.processed_keys == frozenset()


def test_booking_ids_in_recurring_namespace_are_rejected() -> None:
    aggregate = ScheduleAggregate()

    with pytest.raises(ReservedIdError):
        aggregate.add_booking(_booking("recurring-s1-2"))
    assert aggregate.state.one_off_bookings == []


def test_invalid_updates_leave_state_unchanged(wednesday_student: Student) -> None:
    aggregate = _aggregate(wednesday_student)
    aggregate.add_booking(_booking())
    before = aggregate.state

    with pytest.raises(InvalidChangeError):
        aggregate.update_booking("b1", {"duration": None})
    with pytest.raises(InvalidChangeError):
        aggregate.update_student("s1", {"name": None})

    assert aggregate.state is before


def test_clearing_booking_date_keeps_its_day() -> None:
    aggregate = ScheduleAggregate()
    aggregate.add_booking(_booking())

    state = aggregate.update_booking("b1", {"date": None})

    assert state.one_off_bookings[0].date is None
    assert state.one_off_bookings[0].day == 2
