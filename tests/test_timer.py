"""Тесты периодического таймера на asyncio."""

import asyncio

import pytest

from teleop.timer import AsyncioTimer


def test_periodic_sync_and_async_callbacks():
    ticks = []

    async def async_tick():
        ticks.append("async")

    async def _run_test():
        timer = AsyncioTimer()
        h1 = timer.schedule_periodic(10, lambda: ticks.append("sync"))
        h2 = timer.schedule_periodic(10, async_tick)
        await asyncio.sleep(0.1)
        h1.cancel()
        h2.cancel()
        count = len(ticks)
        await asyncio.sleep(0.05)
        assert len(ticks) == count

    asyncio.run(_run_test())

    assert "sync" in ticks
    assert "async" in ticks


def test_failing_callback_keeps_ticking():
    calls = []

    def flaky():
        calls.append(1)
        raise RuntimeError("sensor glitch")

    async def _run_test():
        handle = AsyncioTimer().schedule_periodic(10, flaky)
        await asyncio.sleep(0.1)
        handle.cancel()

    asyncio.run(_run_test())

    assert len(calls) >= 2


def test_interval_must_be_positive():
    async def _run_test():
        with pytest.raises(ValueError):
            AsyncioTimer().schedule_periodic(0, lambda: None)

    asyncio.run(_run_test())
