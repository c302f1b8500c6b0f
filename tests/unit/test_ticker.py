from __future__ import annotations

import asyncio

from tutorly.scheduler.ticker import AsyncioTicker


async def test_ticker_invokes_callback_until_stopped() -> None:
    calls: list[int] = []

    async def callback() -> None:
        calls.append(1)

    ticker = AsyncioTicker(interval_seconds=0.01)
    ticker.start(callback)
    await asyncio.sleep(0.05)
    await ticker.stop()
    seen = len(calls)
    await asyncio.sleep(0.03)

    assert seen >= 1
    assert len(calls) == seen
    assert not ticker.running


async def test_ticker_survives_failing_callback() -> None:
    calls: list[int] = []

    async def callback() -> None:
        calls.append(1)
        raise RuntimeError("boom")

    ticker = AsyncioTicker(interval_seconds=0.01)
    ticker.start(callback)
    await asyncio.sleep(0.05)
    await ticker.stop()

    assert len(calls) >= 2
