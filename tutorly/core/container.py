from __future__ import annotations

from dataclasses import dataclass, field

from redis.asyncio import Redis

from tutorly.core.config import Settings
from tutorly.repositories.dashboard_state_repository import DashboardStateRepository
from tutorly.scheduler.ticker import AsyncioTicker, Ticker
from tutorly.services.dashboard_service import Clock, DashboardService, utc_now
from tutorly.services.schedule_aggregate import ScheduleAggregate
from tutorly.services.stores.blob_store import RedisBlobStore


@dataclass(slots=True)
class AppContainer:
    settings: Settings
    redis: Redis
    ticker: Ticker | None = None
    clock: Clock = utc_now
    _dashboard: DashboardService | None = field(default=None, init=False)

    def create_aggregate(self) -> ScheduleAggregate:
        return ScheduleAggregate(
            timezone=self.settings.timezone,
            listing_window_days=self.settings.listing_window_days,
            accrual_window_days=self.settings.accrual_window_days,
            day_start_hour=self.settings.day_start_hour,
            suggestion_limit=self.settings.suggestion_limit,
        )

    def create_repository(self) -> DashboardStateRepository:
        store = RedisBlobStore(self.redis, prefix=self.settings.store_key_prefix)
        return DashboardStateRepository(store)

    @property
    def dashboard(self) -> DashboardService:
        if self._dashboard is None:
            ticker = self.ticker or AsyncioTicker(self.settings.accrual_poll_seconds)
            self._dashboard = DashboardService(
                self.create_aggregate(),
                self.create_repository(),
                ticker=ticker,
                clock=self.clock,
            )
        return self._dashboard
