"""
Telemetry sources.

A source hands the buffer one full window of channel rows per tick,
oldest row first. The buffer assigns timestamps and owns the window.
"""

import logging
from collections import deque
from collections.abc import Sequence
from typing import Protocol

import numpy as np

logger = logging.getLogger(__name__)


class TelemetrySource(Protocol):
    def read_window(self, size: int, channels: int) -> np.ndarray:
        """
        Produce a full window of readings.

        Returns:
            Array of shape (size, channels), row 0 is the oldest reading
        """
        ...


class SimulatedSource:
    """Pseudo-random readings, uniformly drawn per channel per tick."""

    def __init__(self, low: float = 0.0, high: float = 100.0, seed: int | None = None) -> None:
        if high <= low:
            raise ValueError(f"empty value range: [{low}, {high})")
        self.low = low
        self.high = high
        self._rng = np.random.default_rng(seed)

    def read_window(self, size: int, channels: int) -> np.ndarray:
        return self._rng.uniform(self.low, self.high, size=(size, channels))


class LiveSensorSource:
    """
    Resamples the most recent readings pushed by a real sensor feed.

    The feed calls `push()` whenever a reading arrives; each tick returns
    the newest `size` readings. Until enough readings have arrived the
    window is front-padded with zeros.
    """

    def __init__(self, history: int = 20) -> None:
        self._readings: deque[tuple[float, ...]] = deque(maxlen=history)

    def push(self, channels: Sequence[float]) -> None:
        self._readings.append(tuple(float(v) for v in channels))

    def read_window(self, size: int, channels: int) -> np.ndarray:
        window = np.zeros((size, channels), dtype=float)
        recent = list(self._readings)[-size:]
        offset = size - len(recent)
        for row, reading in enumerate(recent, start=offset):
            width = min(channels, len(reading))
            window[row, :width] = reading[:width]
        return window
