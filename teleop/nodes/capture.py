import asyncio
import logging
from collections.abc import Callable
from typing import Any, Optional

import numpy as np

from teleop.errors import DeviceUnavailable
from teleop.hw.camera import MediaCapture, StreamHandle
from teleop.messages import CaptureConstraints, VideoSession, VideoStatus

logger = logging.getLogger(__name__)

SessionListener = Callable[[VideoSession], Any]


class VideoCaptureManager:
    """
    Owns the camera stream for one console session.

    Idle/Failed/Released -> Requesting -> Active | Failed(reason)
    Active -> Released on release()

    A release() issued while the acquisition is still pending is
    remembered: if the device shows up afterwards it is closed right away
    and the session ends Released, never Active. The stream handle never
    leaves this object; the display sink pulls frames via read_frame().
    """

    def __init__(self, capture: MediaCapture, constraints: CaptureConstraints) -> None:
        self.capture = capture
        self.constraints = constraints
        self._status = VideoStatus.IDLE
        self._reason: str | None = None
        self._handle: StreamHandle | None = None
        self._teardown_pending = False
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> VideoSession:
        return VideoSession(
            status=self._status,
            reason=self._reason,
            stream_attached=self._handle is not None,
        )

    @property
    def status(self) -> VideoStatus:
        return self._status

    @property
    def teardown_pending(self) -> bool:
        return self._teardown_pending

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    async def request_capture(self) -> VideoSession:
        if self._status in (VideoStatus.REQUESTING, VideoStatus.ACTIVE):
            logger.debug("Capture already %s, request ignored", self._status.value)
            return self.session

        self._teardown_pending = False
        self._set_status(VideoStatus.REQUESTING)

        try:
            handle = await self.capture.request_stream(self.constraints)
        except asyncio.CancelledError:
            self._teardown_pending = False
            self._set_status(VideoStatus.RELEASED)
            raise
        except DeviceUnavailable as exc:
            self._finish_failed(exc.detail)
            return self.session
        except Exception as exc:
            logger.error("Camera acquisition error: %s", exc, exc_info=True)
            self._finish_failed(str(exc) or type(exc).__name__)
            return self.session

        if self._teardown_pending:
            logger.info("Camera acquired after teardown was requested, releasing")
            self._teardown_pending = False
            self._release_handle(handle)
            self._set_status(VideoStatus.RELEASED)
        else:
            self._handle = handle
            self._set_status(VideoStatus.ACTIVE)
        return self.session

    def release(self) -> VideoSession:
        if self._status == VideoStatus.ACTIVE:
            handle, self._handle = self._handle, None
            if handle is not None:
                self._release_handle(handle)
            self._set_status(VideoStatus.RELEASED)
        elif self._status == VideoStatus.REQUESTING:
            self._teardown_pending = True
            logger.info("Release requested while acquiring, teardown pending")
        return self.session

    def read_frame(self) -> Optional[np.ndarray]:
        if self._status != VideoStatus.ACTIVE or self._handle is None:
            return None
        return self._handle.read()

    def _finish_failed(self, reason: str) -> None:
        if self._teardown_pending:
            # Nothing was acquired and nobody is waiting for it any more
            self._teardown_pending = False
            self._set_status(VideoStatus.RELEASED)
            return
        logger.warning("Camera unavailable: %s", reason)
        self._set_status(VideoStatus.FAILED, reason)

    @staticmethod
    def _release_handle(handle: StreamHandle) -> None:
        try:
            handle.release()
        except Exception as exc:
            logger.error("Error releasing camera stream: %s", exc)

    def _set_status(self, status: VideoStatus, reason: str | None = None) -> None:
        self._status = status
        self._reason = reason
        logger.info("Video status: %s", status.value)
        session = self.session
        for listener in self._listeners:
            try:
                listener(session)
            except Exception as e:
                logger.error("Error in video listener: %s", e, exc_info=True)
