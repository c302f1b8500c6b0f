from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class Ticker(Protocol):
    def start(self, callback: TickCallback) -> None: ...

    async def stop(self) -> None: ...


class AsyncioTicker:
    """Runs ``callback`` every ``interval_seconds`` on the current event loop until stopped."""

    def __init__(self, interval_seconds: float) -> None:
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: TickCallback) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(callback))

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self, callback: TickCallback) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await callback()
            except Exception:
                logger.exception("ticker.callback_failed")
