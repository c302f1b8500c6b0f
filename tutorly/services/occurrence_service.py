from __future__ import annotations

from datetime import datetime

from tutorly.core.datetime_utils import end_instant, ensure_utc
from tutorly.domain.enums import OccurrencePhase
from tutorly.domain.models import OneOffBooking, RecurringOccurrence


def occurrence_end(occurrence: OneOffBooking | RecurringOccurrence, timezone: str) -> datetime | None:
    if occurrence.date is None:
        return None
    return end_instant(occurrence.date, occurrence.start_time, occurrence.duration, timezone)


def is_completed(occurrence: OneOffBooking | RecurringOccurrence, now: datetime, timezone: str) -> bool:
    # Strict comparison: a lesson ending exactly at ``now`` is still upcoming.
    ends_at = occurrence_end(occurrence, timezone)
    if ends_at is None:
        return False
    return ends_at < ensure_utc(now)


def classify_occurrence(
    occurrence: OneOffBooking | RecurringOccurrence,
    now: datetime,
    timezone: str,
) -> OccurrencePhase:
    if is_completed(occurrence, now, timezone):
        return OccurrencePhase.PAST
    return OccurrencePhase.UPCOMING
