import asyncio
import fractions
import logging
import time

import cv2
import numpy as np
from aiortc import MediaStreamTrack, RTCPeerConnection
from av import VideoFrame

from teleop.config import VideoConfig
from teleop.nodes.capture import VideoCaptureManager

logger = logging.getLogger(__name__)


def prepare_frame(frame: np.ndarray | None, cfg: VideoConfig) -> np.ndarray:
    """BGR camera frame -> RGB at the configured size; black when there is no frame."""
    if frame is None:
        return np.zeros((cfg.height, cfg.width, 3), dtype=np.uint8)

    frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    frame = cv2.resize(frame, (cfg.width, cfg.height))

    if cfg.flip_horizontal and cfg.flip_vertical:
        frame = cv2.flip(frame, -1)  # оба направления
    elif cfg.flip_vertical:
        frame = cv2.flip(frame, 0)  # только вертикально
    elif cfg.flip_horizontal:
        frame = cv2.flip(frame, 1)  # только горизонтально
    return frame


class SessionVideoTrack(MediaStreamTrack):
    """
    Display sink for the Camera Feed panel.

    Pulls frames from the session's capture manager; while no stream is
    active it keeps the peer alive with black frames.
    """

    kind = "video"

    def __init__(self, capture: VideoCaptureManager, cfg: VideoConfig) -> None:
        super().__init__()
        self._capture = capture
        self._cfg = cfg
        self._start_time: float | None = None
        self._frame_count = 0

    async def recv(self) -> VideoFrame:
        try:
            # Initialize start time on first frame
            if self._start_time is None:
                self._start_time = time.time()

            elapsed = time.time() - self._start_time
            pts = int(elapsed * self._cfg.pts_clock_hz)
            time_base = fractions.Fraction(1, self._cfg.pts_clock_hz)

            self._frame_count += 1
            frame = prepare_frame(self._capture.read_frame(), self._cfg)

            video_frame = VideoFrame.from_ndarray(frame, format="rgb24")
            video_frame.pts = pts
            video_frame.time_base = time_base

            # Control frame rate
            await asyncio.sleep(1 / self._cfg.fps)

            return video_frame
        except Exception as e:
            logger.error(f"Error in SessionVideoTrack.recv: {e}")
            raise


async def create_peer_connection(capture: VideoCaptureManager, cfg: VideoConfig) -> RTCPeerConnection:
    pc = RTCPeerConnection()
    pc.addTrack(SessionVideoTrack(capture, cfg))
    logger.info("Created peer connection with session video track")
    return pc
