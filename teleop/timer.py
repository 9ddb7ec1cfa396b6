"""
Periodic timer on the asyncio loop.

Callbacks may be plain functions or coroutine functions. A failing
callback is logged and the timer keeps ticking.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Any]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Timer(Protocol):
    def schedule_periodic(self, interval_ms: int, callback: TickCallback) -> TimerHandle:
        ...


class PeriodicHandle:
    def __init__(self, task: "asyncio.Task[None]") -> None:
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()


class AsyncioTimer:
    """Timer capability backed by one asyncio task per schedule."""

    def schedule_periodic(self, interval_ms: int, callback: TickCallback) -> PeriodicHandle:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        task = asyncio.get_running_loop().create_task(self._run(interval_ms / 1000, callback))
        return PeriodicHandle(task)

    @staticmethod
    async def _run(interval_s: float, callback: TickCallback) -> None:
        while True:
            await asyncio.sleep(interval_s)
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.error("Periodic callback failed: %s", exc, exc_info=True)
