from __future__ import annotations

from datetime import UTC, datetime

import pytest

from tutorly.domain.models import Student, WeeklyScheduleSlot
from tutorly.repositories.dashboard_state_repository import DashboardStateRepository
from tutorly.scheduler.ticker import TickCallback
from tutorly.services.stores.blob_store import RedisBlobStore


class FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, object] = {}

    async def set(self, key: str, value: object, ex: int | None = None, nx: bool = False) -> bool:
        if nx and key in self._store:
            return False
        self._store[key] = value
        return True

    async def get(self, key: str) -> object | None:
        return self._store.get(key)

    async def delete(self, key: str) -> int:
        if key in self._store:
            del self._store[key]
            return 1
        return 0

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


class ManualTicker:
    def __init__(self) -> None:
        self.callback: TickCallback | None = None
        self.stopped = False

    def start(self, callback: TickCallback) -> None:
        self.callback = callback

    async def stop(self) -> None:
        self.stopped = True
        self.callback = None

    async def fire(self) -> None:
        assert self.callback is not None
        await self.callback()


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def repository(fake_redis: FakeRedis) -> DashboardStateRepository:
    return DashboardStateRepository(RedisBlobStore(fake_redis, prefix="test"))  # type: ignore[arg-type]


@pytest.fixture
def manual_ticker() -> ManualTicker:
    return ManualTicker()


@pytest.fixture
def clock() -> FixedClock:
    # Thursday 2026-03-05
    return FixedClock(datetime(2026, 3, 5, 10, 0, tzinfo=UTC))


@pytest.fixture
def wednesday_student() -> Student:
    return Student(
        id="s1",
        name="Sam Taylor",
        subject="Algebra",
        price_per_hour=60,
        joined="2026-03-02",
        weekly_schedule=[WeeklyScheduleSlot(day=2, start_time=16, duration=1)],
    )
