from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timedelta
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError

from tutorly.core.datetime_utils import format_hours, local_today
from tutorly.domain.enums import Collection, OccurrencePhase
from tutorly.domain.errors import (
    CannotDeleteRecurringError,
    DuplicateIdError,
    InvalidChangeError,
    ReservedIdError,
    StudentNotFoundError,
)
from tutorly.domain.models import (
    AccrualResult,
    Conflict,
    DashboardState,
    OneOffBooking,
    RecurringException,
    RecurringOccurrence,
    Student,
    SuggestedSlot,
    Transaction,
    WeeklyScheduleSlot,
)
from tutorly.services.accrual_service import AccrualEngine, remove_transactions_by_booking_id
from tutorly.services.conflict_service import detect_conflicts, suggest_available_slots
from tutorly.services.occurrence_service import classify_occurrence
from tutorly.services.recurrence_service import RULE_ID_PREFIX, materialize_students, rule_ids_for, template_slots

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", OneOffBooking, Student)


class ScheduleAggregate:
    """Owns the dashboard state and exposes queries and commands over it.

    Commands never mutate the current state in place: each one builds a new
    ``DashboardState`` and swaps it in, so readers always see a complete snapshot.
    Derived occurrences are recomputed on every read.
    """

    def __init__(
        self,
        state: DashboardState | None = None,
        *,
        timezone: str = "UTC",
        listing_window_days: int = 30,
        accrual_window_days: int = 365,
        day_start_hour: float = 8.0,
        suggestion_limit: int = 5,
    ) -> None:
        self._state = state or DashboardState()
        self._timezone = timezone
        self._listing_window_days = listing_window_days
        self._day_start_hour = day_start_hour
        self._suggestion_limit = suggestion_limit
        self._accrual = AccrualEngine(timezone=timezone, window_days=accrual_window_days)

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def timezone(self) -> str:
        return self._timezone

    def replace_state(self, state: DashboardState) -> None:
        self._state = state

    # Queries

    def listing_window(self, now: datetime) -> tuple[date, date]:
        today = local_today(now, self._timezone)
        span = timedelta(days=self._listing_window_days)
        return today - span, today + span

    def recurring_occurrences(self, window_start: date, window_end: date) -> list[RecurringOccurrence]:
        return materialize_students(
            self._state.students,
            self._state.recurring_exceptions,
            window_start,
            window_end,
        )

    def get_all_occurrences(
        self,
        window_start: date,
        window_end: date,
    ) -> list[OneOffBooking | RecurringOccurrence]:
        return [*self._state.one_off_bookings, *self.recurring_occurrences(window_start, window_end)]

    def all_occurrences(self, now: datetime) -> list[OneOffBooking | RecurringOccurrence]:
        return self.get_all_occurrences(*self.listing_window(now))

    def detect_conflicts(
        self,
        candidate_slots: Sequence[WeeklyScheduleSlot],
        now: datetime,
        exclude_student_id: str | None = None,
    ) -> list[Conflict]:
        conflicts = detect_conflicts(candidate_slots, self.all_occurrences(now), exclude_student_id)
        if conflicts:
            logger.info(
                "schedule.conflicts_detected",
                count=len(conflicts),
                slots=sorted({f"{item.day}@{format_hours(item.time)}" for item in conflicts}),
            )
        return conflicts

    def suggest_available_slots(
        self,
        day: int,
        now: datetime,
        preferred_duration: float = 1.0,
    ) -> list[SuggestedSlot]:
        return suggest_available_slots(
            day,
            self.all_occurrences(now),
            preferred_duration,
            day_start=self._day_start_hour,
            limit=self._suggestion_limit,
        )

    def classify(self, occurrence: OneOffBooking | RecurringOccurrence, now: datetime) -> OccurrencePhase:
        return classify_occurrence(occurrence, now, self._timezone)

    # Accrual

    def run_accrual_pass(self, now: datetime) -> AccrualResult:
        result = self._accrual.run(self._state, now)
        if result.new_transactions:
            self._replace(
                transactions=result.transactions,
                processed_keys=result.processed_keys,
            )
        return result

    # One-off bookings

    def add_booking(self, booking: OneOffBooking) -> DashboardState:
        if booking.id.startswith(RULE_ID_PREFIX):
            raise ReservedIdError(booking.id, RULE_ID_PREFIX)
        self._ensure_unique(Collection.ONE_OFF_BOOKINGS, booking.id, self._state.one_off_bookings)
        return self._replace(one_off_bookings=[*self._state.one_off_bookings, booking])

    def update_booking(self, booking_id: str, changes: dict[str, Any]) -> DashboardState:
        updated: list[OneOffBooking] = []
        for item in self._state.one_off_bookings:
            if item.id == booking_id:
                payload = {**item.model_dump(), **changes, "id": item.id}
                if changes.get("date") is not None and "day" not in changes:
                    payload.pop("day", None)
                item = _revalidate(OneOffBooking, item.id, payload)
            updated.append(item)
        return self._replace(one_off_bookings=updated)

    def remove_booking(self, booking_id: str) -> DashboardState:
        return self._replace(
            one_off_bookings=[item for item in self._state.one_off_bookings if item.id != booking_id],
        )

    def delete_booking(self, booking_id: str, now: datetime) -> DashboardState:
        """Delete a one-off booking together with the transactions it produced."""
        is_booking = any(item.id == booking_id for item in self._state.one_off_bookings)
        if not is_booking and self._is_recurring_id(booking_id, now):
            raise CannotDeleteRecurringError(booking_id)
        if not is_booking:
            logger.warning("schedule.delete_unknown_booking", booking_id=booking_id)

        transactions, processed_keys = remove_transactions_by_booking_id(
            self._state.transactions,
            self._state.processed_keys,
            booking_id,
        )
        removed = len(self._state.transactions) - len(transactions)
        logger.info("schedule.booking_deleted", booking_id=booking_id, transactions_removed=removed)
        return self._replace(
            one_off_bookings=[item for item in self._state.one_off_bookings if item.id != booking_id],
            transactions=transactions,
            processed_keys=processed_keys,
        )

    def delete_occurrence(self, occurrence: OneOffBooking | RecurringOccurrence, now: datetime) -> DashboardState:
        if isinstance(occurrence, RecurringOccurrence):
            raise CannotDeleteRecurringError(occurrence.id)
        return self.delete_booking(occurrence.id, now)

    # Exceptions

    def add_exception(self, exception: RecurringException) -> DashboardState:
        self._ensure_unique(Collection.RECURRING_EXCEPTIONS, exception.id, self._state.recurring_exceptions)
        return self._replace(recurring_exceptions=[*self._state.recurring_exceptions, exception])

    def remove_exception(self, exception_id: str) -> DashboardState:
        return self._replace(
            recurring_exceptions=[item for item in self._state.recurring_exceptions if item.id != exception_id],
        )

    # Students

    def add_student(self, student: Student) -> DashboardState:
        self._ensure_unique(Collection.STUDENTS, student.id, self._state.students)
        return self._replace(students=[*self._state.students, student])

    def update_student(self, student_id: str, changes: dict[str, Any]) -> DashboardState:
        self._require_student(student_id)
        updated: list[Student] = []
        for item in self._state.students:
            if item.id == student_id:
                payload = {**item.model_dump(), **changes, "id": item.id}
                if "name" in changes and "initials" not in changes:
                    payload.pop("initials", None)
                item = _revalidate(Student, item.id, payload)
            updated.append(item)
        return self._replace(students=updated)

    def set_weekly_schedule(self, student_id: str, slots: Sequence[WeeklyScheduleSlot]) -> DashboardState:
        self._require_student(student_id)
        return self._replace(
            students=[
                item.model_copy(update={"weekly_schedule": list(slots)}) if item.id == student_id else item
                for item in self._state.students
            ],
        )

    def apply_template(self, student_id: str, template_id: str) -> DashboardState:
        return self.set_weekly_schedule(student_id, template_slots(template_id))

    def remove_student(self, student_id: str) -> DashboardState:
        return self._replace(students=[item for item in self._state.students if item.id != student_id])

    # Manual transactions

    def add_transaction(self, transaction: Transaction) -> DashboardState:
        self._ensure_unique(Collection.TRANSACTIONS, transaction.id, self._state.transactions)
        return self._replace(transactions=[transaction, *self._state.transactions])

    def remove_transaction(self, transaction_id: str) -> DashboardState:
        return self._replace(
            transactions=[item for item in self._state.transactions if item.id != transaction_id],
        )

    def _replace(self, **changes: Any) -> DashboardState:
        self._state = self._state.model_copy(update=changes)
        return self._state

    def _require_student(self, student_id: str) -> Student:
        student = self._state.student_by_id(student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        return student

    def _ensure_unique(self, collection: Collection, item_id: str, items: Sequence[Any]) -> None:
        if any(item.id == item_id for item in items):
            raise DuplicateIdError(collection.value, item_id)

    def _is_recurring_id(self, item_id: str, now: datetime) -> bool:
        for student in self._state.students:
            if item_id in rule_ids_for(student):
                return True
        return any(item.id == item_id for item in self.recurring_occurrences(*self.listing_window(now)))


def _revalidate(model: type[ModelT], item_id: str, payload: dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in error["loc"]) or "record" for error in exc.errors()})
        raise InvalidChangeError(item_id, ", ".join(fields)) from exc
