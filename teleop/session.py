"""
ConsoleSession - the one object the rendering layer talks to.

Owns the mode controller, telemetry buffer, gamepad manager, camera
manager and command dispatcher, wires their change notifications into a
single snapshot stream, and runs the control loop that polls the gamepad
and forwards queued commands (or ESTOP) to the robot transport.
"""

import logging
from collections.abc import Callable
from typing import Any, Optional

from teleop.config import Config, InputConfig, TelemetryConfig, config
from teleop.hw.camera import MediaCapture, OpenCvCapture
from teleop.hw.gamepad import BrowserGamepad, InputDevice, PygameGamepad
from teleop.hw.sensors import LiveSensorSource, SimulatedSource, TelemetrySource
from teleop.hw.transport_stub import CommandTransport, LoggingTransport
from teleop.messages import (
    MOVE_MAX_DEG,
    MOVE_MIN_DEG,
    CaptureConstraints,
    Command,
    CommandKind,
    ConsoleSnapshot,
    GamepadSnapshot,
    Mode,
    VideoSession,
)
from teleop.nodes.capture import VideoCaptureManager
from teleop.nodes.commands import CommandDispatcher, parse_command
from teleop.nodes.input import InputDeviceManager
from teleop.nodes.mode import ModeController
from teleop.nodes.telemetry import TelemetryBuffer
from teleop.timer import AsyncioTimer, Timer, TimerHandle
from teleop.view import PANELS_BY_MODE

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[ConsoleSnapshot], Any]


def make_telemetry_source(cfg: TelemetryConfig) -> TelemetrySource:
    if cfg.source == "live":
        return LiveSensorSource(history=cfg.window_size)
    return SimulatedSource(low=cfg.min_value, high=cfg.max_value, seed=cfg.seed)


def make_input_device(cfg: InputConfig) -> InputDevice:
    if cfg.backend == "pygame":
        return PygameGamepad(deadzone=cfg.deadzone)
    return BrowserGamepad(deadzone=cfg.deadzone)


class ConsoleSession:
    def __init__(
        self,
        cfg: Config = config,
        *,
        telemetry_source: Optional[TelemetrySource] = None,
        input_device: Optional[InputDevice] = None,
        capture: Optional[MediaCapture] = None,
        transport: Optional[CommandTransport] = None,
        timer: Optional[Timer] = None,
    ) -> None:
        self.config = cfg
        self._timer = timer or AsyncioTimer()

        self.mode_controller = ModeController()
        self.telemetry = TelemetryBuffer(
            telemetry_source or make_telemetry_source(cfg.telemetry),
            self._timer,
            window_size=cfg.telemetry.window_size,
            channels=cfg.telemetry.channels,
            tick_ms=cfg.telemetry.tick_ms,
        )
        self.input_devices = InputDeviceManager(input_device or make_input_device(cfg.input))
        self.video = VideoCaptureManager(
            capture or OpenCvCapture(),
            CaptureConstraints(
                camera_index=cfg.video.camera_index,
                width=cfg.video.width,
                height=cfg.video.height,
                fps=cfg.video.fps,
            ),
        )
        self.dispatcher = CommandDispatcher()
        self.transport = transport or LoggingTransport(log_commands=cfg.control.log_commands)

        self._move_angle = MOVE_MIN_DEG
        self._listeners: list[SnapshotListener] = []
        self._control_handle: TimerHandle | None = None
        self._estop_forwarded = False
        self._running = False

        self.mode_controller.add_listener(self._on_mode_change)
        self.telemetry.subscribe(lambda _window: self._notify())
        self.input_devices.add_listener(lambda _status: self._notify())
        self.video.add_listener(lambda _session: self._notify())
        self.dispatcher.add_listener(lambda _queue, _engaged: self._notify())

    # Lifecycle

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        logger.info("Console session starting")
        self._running = True
        self.telemetry.start()
        self.input_devices.start()
        interval_ms = max(1, 1000 // self.config.input.poll_hz)
        self._control_handle = self._timer.schedule_periodic(interval_ms, self.control_tick)

    async def stop(self) -> None:
        if not self._running:
            return
        logger.info("Console session stopping")
        self._running = False
        if self._control_handle is not None:
            self._control_handle.cancel()
            self._control_handle = None
        self.telemetry.stop()
        self.input_devices.stop()
        self.video.release()
        try:
            await self.transport.emergency_stop()
        except Exception as e:
            logger.error("Error stopping robot on shutdown: %s", e, exc_info=True)

    # Mode

    @property
    def mode(self) -> Mode:
        return self.mode_controller.mode

    def set_mode(self, target: Mode | str) -> Mode:
        return self.mode_controller.set_mode(target)

    def _on_mode_change(self, old: Mode, new: Mode) -> None:
        if "video" not in PANELS_BY_MODE[new]:
            self.video.release()
        self._notify()

    # Commands

    @property
    def move_angle(self) -> float:
        return self._move_angle

    def set_move_angle(self, angle: float) -> float:
        angle = float(angle)
        if not MOVE_MIN_DEG <= angle <= MOVE_MAX_DEG:
            raise ValueError(f"Move angle out of range: {angle}")
        self._move_angle = angle
        self._notify()
        return angle

    def dispatch(self, command: Command) -> None:
        self.dispatcher.dispatch(command)

    def send(self, kind: str, angle: float | None = None) -> Command:
        """Dispatch by wire name; Move without an angle uses the slider value."""
        if kind == CommandKind.MOVE.value and angle is None:
            angle = self._move_angle
        command = parse_command(kind, angle)
        self.dispatcher.dispatch(command)
        return command

    def trigger_estop(self) -> None:
        self.dispatcher.trigger_estop()

    def reset_estop(self) -> None:
        self.dispatcher.reset_estop()
        self._estop_forwarded = False

    # Video

    async def request_capture(self) -> VideoSession:
        return await self.video.request_capture()

    def release_capture(self) -> VideoSession:
        return self.video.release()

    # Control loop

    def poll_input(self) -> Optional[GamepadSnapshot]:
        return self.input_devices.poll_state()

    async def control_tick(self) -> None:
        self.poll_input()

        if self.dispatcher.engaged:
            if not self._estop_forwarded:
                self._estop_forwarded = True
                await self.transport.emergency_stop()
            return

        commands = self.dispatcher.drain()
        for index, command in enumerate(commands):
            # ESTOP may land while an earlier send is in flight
            if self.dispatcher.engaged:
                logger.warning("Dropping %s drained before ESTOP", command.label)
                continue
            try:
                await self.transport.send(command)
            except Exception:
                # The failed command and everything after it wait for the next tick
                self.dispatcher.requeue(commands[index:])
                raise

    # Snapshots

    def snapshot(self) -> ConsoleSnapshot:
        return ConsoleSnapshot(
            mode=self.mode_controller.mode,
            telemetry=self.telemetry.get_snapshot(),
            input=self.input_devices.status,
            video=self.video.session,
            commands=self.dispatcher.pending,
            estop_engaged=self.dispatcher.engaged,
            move_angle=self._move_angle,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("Error in session listener: %s", e, exc_info=True)
