from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.asyncio import Redis

from tutorly.api.routes import router as api_router
from tutorly.core.config import get_settings
from tutorly.core.container import AppContainer
from tutorly.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.app_env != "dev")

    redis = Redis.from_url(settings.redis_url, decode_responses=False)
    container = AppContainer(settings=settings, redis=redis)
    app.state.container = container

    dashboard = container.dashboard
    await dashboard.load()
    await dashboard.run_accrual_pass()
    dashboard.start_ticker()

    try:
        yield
    finally:
        await dashboard.stop_ticker()
        await redis.aclose()


app = FastAPI(title="Tutorly", lifespan=lifespan)
app.include_router(api_router)
