import logging
from collections.abc import Callable
from typing import Any

from teleop.hw.sensors import TelemetrySource
from teleop.messages import TelemetrySample
from teleop.timer import Timer, TimerHandle

logger = logging.getLogger(__name__)

TickListener = Callable[[tuple[TelemetrySample, ...]], Any]

DEFAULT_TICK_MS = 5000
WINDOW_CAPACITY = 20


class TelemetryBuffer:
    """
    Rolling window of telemetry samples for the live charts.

    Every tick the whole window is resampled from the source and swapped
    in as one immutable tuple, so a listener or snapshot reader always
    sees either the previous window or the new one.
    """

    def __init__(
        self,
        source: TelemetrySource,
        timer: Timer,
        window_size: int = WINDOW_CAPACITY,
        channels: int = 4,
        tick_ms: int = DEFAULT_TICK_MS,
    ) -> None:
        if not 0 < window_size <= WINDOW_CAPACITY:
            raise ValueError(f"window_size must be 1..{WINDOW_CAPACITY}, got {window_size}")
        self.source = source
        self.window_size = window_size
        self.channels = channels
        self.tick_ms = tick_ms
        self._timer = timer
        self._handle: TimerHandle | None = None
        self._window: tuple[TelemetrySample, ...] = ()
        self._listeners: list[TickListener] = []

    def subscribe(self, on_tick: TickListener) -> Callable[[], None]:
        """Register a listener called with the new window after each refresh."""
        self._listeners.append(on_tick)

        def unsubscribe() -> None:
            if on_tick in self._listeners:
                self._listeners.remove(on_tick)

        return unsubscribe

    def get_snapshot(self) -> tuple[TelemetrySample, ...]:
        return self._window

    def start(self) -> None:
        if self._handle is not None:
            return
        self.refresh()
        self._handle = self._timer.schedule_periodic(self.tick_ms, self.refresh)
        logger.info("Telemetry refresh every %d ms (%d samples)", self.tick_ms, self.window_size)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def refresh(self) -> None:
        rows = self.source.read_window(self.window_size, self.channels)
        if len(rows) != self.window_size:
            # Keep the previous window rather than publish a short one
            logger.warning(
                "Telemetry source returned %d rows, expected %d", len(rows), self.window_size
            )
            return

        window = tuple(
            TelemetrySample(timestamp=i, channels=tuple(float(v) for v in row[: self.channels]))
            for i, row in enumerate(rows)
        )
        self._window = window

        for listener in list(self._listeners):
            try:
                listener(window)
            except Exception as e:
                logger.error("Error in telemetry listener: %s", e, exc_info=True)
