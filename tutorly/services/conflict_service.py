from __future__ import annotations

from collections.abc import Sequence

from tutorly.domain.models import (
    Conflict,
    ConflictingItem,
    OneOffBooking,
    RecurringOccurrence,
    SuggestedSlot,
    WeeklyScheduleSlot,
)

DEFAULT_SUGGESTIONS: tuple[SuggestedSlot, ...] = (
    SuggestedSlot(start_time=9, end_time=10),
    SuggestedSlot(start_time=14, end_time=15),
    SuggestedSlot(start_time=16, end_time=17),
)


def intervals_overlap(a_start: float, a_duration: float, b_start: float, b_duration: float) -> bool:
    # Half-open intervals: back-to-back lessons do not overlap.
    a_end = a_start + a_duration
    b_end = b_start + b_duration
    return not (a_end <= b_start or a_start >= b_end)


def detect_conflicts(
    candidate_slots: Sequence[WeeklyScheduleSlot],
    occurrences: Sequence[OneOffBooking | RecurringOccurrence],
    exclude_student_id: str | None = None,
) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for slot in candidate_slots:
        for occurrence in occurrences:
            if (
                exclude_student_id is not None
                and isinstance(occurrence, RecurringOccurrence)
                and occurrence.student_id == exclude_student_id
            ):
                continue
            if occurrence.day != slot.day:
                continue
            if not intervals_overlap(slot.start_time, slot.duration, occurrence.start_time, occurrence.duration):
                continue
            conflicts.append(
                Conflict(
                    day=slot.day,
                    time=slot.start_time,
                    duration=slot.duration,
                    conflicting_item=ConflictingItem(
                        title=occurrence.title,
                        subtitle=occurrence.subtitle,
                        student_id=occurrence.student_id,
                    ),
                )
            )
    return conflicts


def suggest_available_slots(
    day: int,
    occurrences: Sequence[OneOffBooking | RecurringOccurrence],
    preferred_duration: float = 1.0,
    *,
    day_start: float = 8.0,
    limit: int = 5,
) -> list[SuggestedSlot]:
    """Return free gaps on ``day`` that fit ``preferred_duration`` hours.

    Only the gap between ``day_start`` and the first lesson and the gaps between
    consecutive lessons are considered; time after the last lesson is never suggested.
    """
    day_items = sorted((item for item in occurrences if item.day == day), key=lambda item: item.start_time)
    if not day_items:
        return list(DEFAULT_SUGGESTIONS)

    suggestions: list[SuggestedSlot] = []
    first_start = day_items[0].start_time
    if first_start - day_start >= preferred_duration:
        suggestions.append(SuggestedSlot(start_time=day_start, end_time=first_start))

    for current, following in zip(day_items, day_items[1:]):
        gap_start = current.end_time
        gap_end = following.start_time
        if gap_end - gap_start >= preferred_duration:
            suggestions.append(SuggestedSlot(start_time=gap_start, end_time=gap_end))

    return suggestions[:limit]
