"""
Camera acquisition via OpenCV.

`OpenCvCapture.request_stream()` opens the device off the event loop and
either returns a stream handle or raises DeviceUnavailable.
"""

import asyncio
import logging
from typing import Optional, Protocol

import cv2
import numpy as np

from teleop.errors import DeviceUnavailable
from teleop.messages import CaptureConstraints

logger = logging.getLogger(__name__)


class StreamHandle(Protocol):
    def read(self) -> Optional[np.ndarray]:
        """Latest frame in BGR, or None if the device produced nothing."""
        ...

    def release(self) -> None:
        ...


class MediaCapture(Protocol):
    async def request_stream(self, constraints: CaptureConstraints) -> StreamHandle:
        ...


class OpenCvStream:
    def __init__(self, cap: cv2.VideoCapture) -> None:
        self._cap: cv2.VideoCapture | None = cap

    def read(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return None
        ret, frame = self._cap.read()
        if not ret or frame is None:
            return None
        return frame

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


class OpenCvCapture:
    async def request_stream(self, constraints: CaptureConstraints) -> OpenCvStream:
        return await asyncio.to_thread(self._open, constraints)

    @staticmethod
    def _open(constraints: CaptureConstraints) -> OpenCvStream:
        logger.info("Opening camera at index %s", constraints.camera_index)
        cap = cv2.VideoCapture(constraints.camera_index)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(f"no camera at index {constraints.camera_index}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        cap.set(cv2.CAP_PROP_FPS, constraints.fps)
        return OpenCvStream(cap)
