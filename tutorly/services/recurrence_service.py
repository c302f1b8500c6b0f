from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import date, datetime, time

from dateutil.rrule import WEEKLY, rrule

from tutorly.domain.enums import ExceptionType
from tutorly.domain.errors import UnknownTemplateError
from tutorly.domain.models import RecurringException, RecurringOccurrence, Student, WeeklyScheduleSlot

RULE_ID_PREFIX = "recurring-"

RuleIdOf = Callable[[int, WeeklyScheduleSlot], str]
ExceptionIndex = dict[tuple[str, date], list[RecurringException]]

SCHEDULE_TEMPLATES: dict[str, tuple[WeeklyScheduleSlot, ...]] = {
    "weekly-single": (WeeklyScheduleSlot(day=0, start_time=14, duration=1),),
    "twice-weekly": (
        WeeklyScheduleSlot(day=0, start_time=14, duration=1),
        WeeklyScheduleSlot(day=3, start_time=14, duration=1),
    ),
    "mon-wed-fri": (
        WeeklyScheduleSlot(day=0, start_time=14, duration=1),
        WeeklyScheduleSlot(day=2, start_time=14, duration=1),
        WeeklyScheduleSlot(day=4, start_time=14, duration=1),
    ),
}


def template_slots(template_id: str) -> list[WeeklyScheduleSlot]:
    try:
        return list(SCHEDULE_TEMPLATES[template_id])
    except KeyError as exc:
        raise UnknownTemplateError(template_id) from exc


def recurrence_rule_id(student_id: str, slot: WeeklyScheduleSlot, index: int) -> str:
    # ``index`` counts slots on the same weekday, so edits on other days keep this id.
    return f"{RULE_ID_PREFIX}{student_id}-{slot.day}-{index}"


def day_slot_indexes(slots: Sequence[WeeklyScheduleSlot]) -> list[int]:
    seen: dict[int, int] = defaultdict(int)
    indexes: list[int] = []
    for slot in slots:
        indexes.append(seen[slot.day])
        seen[slot.day] += 1
    return indexes


def rule_ids_for(student: Student) -> list[str]:
    slots = student.weekly_schedule
    return [recurrence_rule_id(student.id, slot, index) for slot, index in zip(slots, day_slot_indexes(slots))]


def index_exceptions(exceptions: Sequence[RecurringException]) -> ExceptionIndex:
    index: ExceptionIndex = defaultdict(list)
    for item in exceptions:
        index[(item.recurrence_rule_id, item.date)].append(item)
    return dict(index)


def slot_dates(slot: WeeklyScheduleSlot, window_start: date, window_end: date) -> list[date]:
    if window_end < window_start:
        return []
    rule = rrule(
        WEEKLY,
        byweekday=slot.day,
        dtstart=datetime.combine(window_start, time.min),
        until=datetime.combine(window_end, time.min),
    )
    return [item.date() for item in rule]


def materialize(
    slots: Sequence[WeeklyScheduleSlot],
    rule_id_of: RuleIdOf,
    exceptions: Sequence[RecurringException] | ExceptionIndex,
    window_start: date,
    window_end: date,
    *,
    student: Student,
) -> list[RecurringOccurrence]:
    """Expand weekly slots into dated occurrences within ``[window_start, window_end]``.

    A ``skip`` exception for ``(rule id, date)`` removes that instance. ``timeChange`` and
    ``durationChange`` exceptions override start time and duration of that instance only.
    Output is ordered by date, then by slot position.
    """
    by_key = exceptions if isinstance(exceptions, dict) else index_exceptions(exceptions)
    dated: list[tuple[date, int, RecurringOccurrence]] = []
    for position, slot in enumerate(slots):
        rule_id = rule_id_of(position, slot)
        for lesson_date in slot_dates(slot, window_start, window_end):
            occurrence = _realize(student, slot, rule_id, lesson_date, by_key.get((rule_id, lesson_date), []))
            if occurrence is not None:
                dated.append((lesson_date, position, occurrence))
    dated.sort(key=lambda item: (item[0], item[1]))
    return [occurrence for _, _, occurrence in dated]


def materialize_student(
    student: Student,
    exceptions: Sequence[RecurringException] | ExceptionIndex,
    window_start: date,
    window_end: date,
) -> list[RecurringOccurrence]:
    indexes = day_slot_indexes(student.weekly_schedule)
    return materialize(
        student.weekly_schedule,
        lambda position, slot: recurrence_rule_id(student.id, slot, indexes[position]),
        exceptions,
        window_start,
        window_end,
        student=student,
    )


def materialize_students(
    students: Sequence[Student],
    exceptions: Sequence[RecurringException],
    window_start: date,
    window_end: date,
) -> list[RecurringOccurrence]:
    # Paused and at-risk students keep their pattern but produce no occurrences.
    by_key = index_exceptions(exceptions)
    occurrences: list[RecurringOccurrence] = []
    for student in students:
        if not student.is_active or not student.weekly_schedule:
            continue
        occurrences.extend(materialize_student(student, by_key, window_start, window_end))
    occurrences.sort(key=lambda item: item.date)
    return occurrences


def _realize(
    student: Student,
    slot: WeeklyScheduleSlot,
    rule_id: str,
    lesson_date: date,
    overrides: list[RecurringException],
) -> RecurringOccurrence | None:
    if any(item.type == ExceptionType.SKIP for item in overrides):
        return None

    start_time = slot.start_time
    duration = slot.duration
    time_change = next((item for item in overrides if item.type == ExceptionType.TIME_CHANGE), None)
    if time_change is not None and time_change.new_time is not None:
        start_time = time_change.new_time
    duration_change = next((item for item in overrides if item.type == ExceptionType.DURATION_CHANGE), None)
    if duration_change is not None and duration_change.new_duration is not None:
        duration = duration_change.new_duration

    return RecurringOccurrence(
        id=f"{rule_id}-{lesson_date.isoformat()}",
        title=student.name,
        subtitle=student.subject,
        day=slot.day,
        start_time=start_time,
        duration=duration,
        color=student.color,
        date=lesson_date,
        student_id=student.id,
        recurrence_rule_id=rule_id,
    )
