from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime
from typing import Any

import structlog

from tutorly.core.datetime_utils import local_today
from tutorly.domain.enums import Collection
from tutorly.domain.models import (
    AccrualResult,
    Conflict,
    DashboardState,
    EarningsSummary,
    OneOffBooking,
    RecurringException,
    RecurringOccurrence,
    Student,
    SuggestedSlot,
    Transaction,
    WeeklyScheduleSlot,
)
from tutorly.repositories.dashboard_state_repository import DashboardStateRepository
from tutorly.scheduler.ticker import Ticker
from tutorly.services.earnings_service import summarize
from tutorly.services.schedule_aggregate import ScheduleAggregate

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class DashboardService:
    def __init__(
        self,
        aggregate: ScheduleAggregate,
        repository: DashboardStateRepository,
        *,
        ticker: Ticker | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._aggregate = aggregate
        self._repository = repository
        self._ticker = ticker
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def state(self) -> DashboardState:
        return self._aggregate.state

    @property
    def aggregate(self) -> ScheduleAggregate:
        return self._aggregate

    async def load(self) -> DashboardState:
        async with self._lock:
            state = await self._repository.load()
            self._aggregate.replace_state(state)
        return state

    def start_ticker(self) -> None:
        if self._ticker is None:
            return
        self._ticker.start(self.tick)
        logger.info("dashboard.ticker_started")

    async def stop_ticker(self) -> None:
        if self._ticker is None:
            return
        await self._ticker.stop()
        logger.info("dashboard.ticker_stopped")

    async def tick(self) -> None:
        await self.run_accrual_pass()

    # Queries

    def get_all_occurrences(
        self,
        window_start: date | None = None,
        window_end: date | None = None,
    ) -> list[OneOffBooking | RecurringOccurrence]:
        default_start, default_end = self._aggregate.listing_window(self._clock())
        return self._aggregate.get_all_occurrences(window_start or default_start, window_end or default_end)

    def detect_conflicts(
        self,
        candidate_slots: Sequence[WeeklyScheduleSlot],
        exclude_student_id: str | None = None,
    ) -> list[Conflict]:
        return self._aggregate.detect_conflicts(candidate_slots, self._clock(), exclude_student_id)

    def suggest_available_slots(self, day: int, preferred_duration: float = 1.0) -> list[SuggestedSlot]:
        return self._aggregate.suggest_available_slots(day, self._clock(), preferred_duration)

    def earnings_summary(self) -> EarningsSummary:
        today = local_today(self._clock(), self._aggregate.timezone)
        return summarize(self._aggregate.state.transactions, today)

    # Accrual

    async def run_accrual_pass(self, now: datetime | None = None) -> AccrualResult:
        async with self._lock:
            return await self._accrue(now)

    async def _accrue(self, now: datetime | None = None) -> AccrualResult:
        moment = now or self._clock()
        previous = self._aggregate.state
        result = self._aggregate.run_accrual_pass(moment)
        if result.new_transactions:
            await self._persist(previous, [Collection.TRANSACTIONS, Collection.PROCESSED_KEYS])
        logger.debug("accrual.pass_completed", new_transactions=len(result.new_transactions))
        return result

    # Commands

    async def add_booking(self, booking: OneOffBooking) -> OneOffBooking:
        await self._mutate(lambda: self._aggregate.add_booking(booking), Collection.ONE_OFF_BOOKINGS)
        return booking

    async def update_booking(self, booking_id: str, changes: dict[str, Any]) -> DashboardState:
        return await self._mutate(
            lambda: self._aggregate.update_booking(booking_id, changes),
            Collection.ONE_OFF_BOOKINGS,
        )

    async def delete_booking(self, booking_id: str) -> DashboardState:
        return await self._mutate(
            lambda: self._aggregate.delete_booking(booking_id, self._clock()),
            Collection.TRANSACTIONS,
            Collection.PROCESSED_KEYS,
            Collection.ONE_OFF_BOOKINGS,
        )

    async def add_exception(self, exception: RecurringException) -> RecurringException:
        await self._mutate(lambda: self._aggregate.add_exception(exception), Collection.RECURRING_EXCEPTIONS)
        return exception

    async def remove_exception(self, exception_id: str) -> DashboardState:
        return await self._mutate(
            lambda: self._aggregate.remove_exception(exception_id),
            Collection.RECURRING_EXCEPTIONS,
        )

    async def add_student(self, student: Student) -> Student:
        await self._mutate(lambda: self._aggregate.add_student(student), Collection.STUDENTS)
        return student

    async def update_student(self, student_id: str, changes: dict[str, Any]) -> DashboardState:
        return await self._mutate(lambda: self._aggregate.update_student(student_id, changes), Collection.STUDENTS)

    async def set_weekly_schedule(self, student_id: str, slots: Sequence[WeeklyScheduleSlot]) -> DashboardState:
        return await self._mutate(
            lambda: self._aggregate.set_weekly_schedule(student_id, slots),
            Collection.STUDENTS,
        )

    async def apply_template(self, student_id: str, template_id: str) -> DashboardState:
        return await self._mutate(
            lambda: self._aggregate.apply_template(student_id, template_id),
            Collection.STUDENTS,
        )

    async def remove_student(self, student_id: str) -> DashboardState:
        return await self._mutate(lambda: self._aggregate.remove_student(student_id), Collection.STUDENTS)

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            previous = self._aggregate.state
            self._aggregate.add_transaction(transaction)
            await self._persist(previous, [Collection.TRANSACTIONS])
        return transaction

    async def remove_transaction(self, transaction_id: str) -> DashboardState:
        async with self._lock:
            previous = self._aggregate.state
            state = self._aggregate.remove_transaction(transaction_id)
            await self._persist(previous, [Collection.TRANSACTIONS])
        return state

    async def _mutate(self, command: Callable[[], DashboardState], *collections: Collection) -> DashboardState:
        # Every schedule mutation is followed by an accrual pass over the new snapshot.
        async with self._lock:
            previous = self._aggregate.state
            command()
            await self._persist(previous, collections)
            await self._accrue()
            return self._aggregate.state

    async def _persist(self, previous: DashboardState, collections: Sequence[Collection]) -> None:
        # Memory only keeps a snapshot once the store has accepted it.
        try:
            await self._repository.save(self._aggregate.state, collections)
        except Exception:
            self._aggregate.replace_state(previous)
            logger.exception("dashboard.save_failed", collections=[item.value for item in collections])
            raise
