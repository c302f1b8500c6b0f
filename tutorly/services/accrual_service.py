from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date, datetime, timedelta

import structlog

from tutorly.core.datetime_utils import ensure_utc, local_today
from tutorly.domain.enums import TransactionStatus
from tutorly.domain.models import (
    AccrualResult,
    DashboardState,
    OneOffBooking,
    RecurringOccurrence,
    Student,
    Transaction,
)
from tutorly.services.occurrence_service import is_completed
from tutorly.services.recurrence_service import index_exceptions, materialize_student

logger = structlog.get_logger(__name__)

_STAMP_SUFFIX = re.compile(r"\d+")
_DATE_SUFFIX = re.compile(r"\d{4}-\d{2}-\d{2}")


def processed_key(source_id: str, lesson_date: date) -> str:
    return f"{source_id}-{lesson_date.isoformat()}"


def transaction_prefix(source_id: str) -> str:
    return f"transaction-{source_id}-"


class AccrualEngine:
    """Turns completed lessons into transactions, at most once per lesson instance.

    The processed-key set is the only record of what has already been accrued; transaction
    ids embed the generation timestamp and are never used for deduplication.
    """

    def __init__(self, timezone: str = "UTC", window_days: int = 365) -> None:
        self._timezone = timezone
        self._window_days = window_days

    def run(self, state: DashboardState, now: datetime) -> AccrualResult:
        now_utc = ensure_utc(now)
        stamp = int(now_utc.timestamp() * 1000)
        processed = set(state.processed_keys)
        emitted: list[Transaction] = []

        for booking in state.one_off_bookings:
            item = self._accrue_booking(state, booking, now_utc, stamp, processed)
            if item is not None:
                emitted.append(item)

        today = local_today(now_utc, self._timezone)
        window_start = today - timedelta(days=self._window_days)
        exceptions = index_exceptions(state.recurring_exceptions)
        for student in state.students:
            if not student.is_active or not student.price_per_hour or not student.weekly_schedule:
                continue
            first_day = max(window_start, student.joined) if student.joined else window_start
            for occurrence in materialize_student(student, exceptions, first_day, today):
                item = self._accrue_recurring(student, occurrence, now_utc, stamp, processed)
                if item is not None:
                    emitted.append(item)

        if not emitted:
            return AccrualResult(
                new_transactions=[],
                transactions=list(state.transactions),
                processed_keys=state.processed_keys,
            )

        emitted.sort(key=lambda item: item.date, reverse=True)
        logger.info(
            "accrual.transactions_emitted",
            count=len(emitted),
            amount=sum(item.amount for item in emitted),
        )
        return AccrualResult(
            new_transactions=emitted,
            transactions=[*emitted, *state.transactions],
            processed_keys=frozenset(processed),
        )

    def _accrue_booking(
        self,
        state: DashboardState,
        booking: OneOffBooking,
        now_utc: datetime,
        stamp: int,
        processed: set[str],
    ) -> Transaction | None:
        if booking.date is None or booking.student_id is None:
            return None
        if not is_completed(booking, now_utc, self._timezone):
            return None
        key = processed_key(booking.id, booking.date)
        if key in processed:
            return None
        student = state.student_by_id(booking.student_id)
        if student is None or not student.price_per_hour:
            return None
        processed.add(key)
        return _build_transaction(
            transaction_id=f"{transaction_prefix(booking.id)}{stamp}",
            student=student,
            lesson_date=booking.date,
            duration=booking.duration,
        )

    def _accrue_recurring(
        self,
        student: Student,
        occurrence: RecurringOccurrence,
        now_utc: datetime,
        stamp: int,
        processed: set[str],
    ) -> Transaction | None:
        if not is_completed(occurrence, now_utc, self._timezone):
            return None
        key = processed_key(occurrence.recurrence_rule_id, occurrence.date)
        if key in processed:
            return None
        processed.add(key)
        return _build_transaction(
            transaction_id=f"{transaction_prefix(occurrence.recurrence_rule_id)}{occurrence.date.isoformat()}-{stamp}",
            student=student,
            lesson_date=occurrence.date,
            duration=occurrence.duration,
        )


def remove_transactions_by_booking_id(
    transactions: Iterable[Transaction],
    processed_keys: Iterable[str],
    booking_id: str,
) -> tuple[list[Transaction], frozenset[str]]:
    # Only exact "{booking}-{stamp}" and "{booking}-{date}" suffixes belong to this booking.
    id_prefix = transaction_prefix(booking_id)
    key_prefix = f"{booking_id}-"
    kept_transactions = [item for item in transactions if not _has_suffix(item.id, id_prefix, _STAMP_SUFFIX)]
    kept_keys = frozenset(key for key in processed_keys if not _has_suffix(key, key_prefix, _DATE_SUFFIX))
    return kept_transactions, kept_keys


def _build_transaction(
    *,
    transaction_id: str,
    student: Student,
    lesson_date: date,
    duration: float,
) -> Transaction:
    price = student.price_per_hour or 0
    return Transaction(
        id=transaction_id,
        date=lesson_date,
        student_name=student.name,
        initials=student.initials,
        subject=student.subject,
        status=TransactionStatus.PAID,
        amount=price * duration,
        color=student.color,
        duration_hours=duration,
    )


def _has_suffix(value: str, prefix: str, suffix: re.Pattern[str]) -> bool:
    return value.startswith(prefix) and suffix.fullmatch(value[len(prefix) :]) is not None
