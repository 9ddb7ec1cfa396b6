"""
Gamepad input devices.

Two backends share one contract: connect/disconnect events go to the
handlers given to `start()`, and `current_snapshot()` returns the latest
axes/buttons without blocking.

- BrowserGamepad: fed by the operator page (Gamepad API events relayed
  over /ws/control)
- PygameGamepad: a controller plugged into the console host
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any, Optional, Protocol

from teleop.messages import GamepadSnapshot

logger = logging.getLogger(__name__)

try:
    import pygame  # type: ignore[import-not-found]

    PYGAME_AVAILABLE = True
except ImportError:  # pragma: no cover - pygame is an optional extra
    pygame = None  # type: ignore[assignment]
    PYGAME_AVAILABLE = False


ConnectedHandler = Callable[[str], Any]
DisconnectedHandler = Callable[[], Any]


class InputDevice(Protocol):
    def start(self, on_connected: ConnectedHandler, on_disconnected: DisconnectedHandler) -> None:
        ...

    def stop(self) -> None:
        ...

    def pump(self) -> None:
        """Deliver device events queued since the last call (no-op for push backends)."""
        ...

    def current_snapshot(self) -> Optional[GamepadSnapshot]:
        ...


def apply_deadzone(values: Sequence[float], deadzone: float) -> tuple[float, ...]:
    return tuple(0.0 if abs(v) < deadzone else float(v) for v in values)


class BrowserGamepad:
    def __init__(self, deadzone: float = 0.05) -> None:
        self._deadzone = deadzone
        self._on_connected: ConnectedHandler | None = None
        self._on_disconnected: DisconnectedHandler | None = None
        self._snapshot: GamepadSnapshot | None = None

    def start(self, on_connected: ConnectedHandler, on_disconnected: DisconnectedHandler) -> None:
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected

    def stop(self) -> None:
        self._on_connected = None
        self._on_disconnected = None
        self._snapshot = None

    def pump(self) -> None:
        pass

    def current_snapshot(self) -> Optional[GamepadSnapshot]:
        return self._snapshot

    # Called from the control socket

    def connect(self, device_id: str) -> None:
        if self._on_connected is None:
            logger.debug("Gamepad connect for %s ignored, device not started", device_id)
            return
        self._snapshot = GamepadSnapshot(axes=(), buttons=())
        self._on_connected(device_id)

    def disconnect(self) -> None:
        if self._on_disconnected is None:
            return
        self._snapshot = None
        self._on_disconnected()

    def update(self, axes: Sequence[float], buttons: Sequence[float]) -> None:
        if self._snapshot is None:
            return
        self._snapshot = GamepadSnapshot(
            axes=apply_deadzone(axes, self._deadzone),
            buttons=tuple(float(b) for b in buttons),
        )


class PygameGamepad:
    """Local joystick via pygame's JOYDEVICEADDED / JOYDEVICEREMOVED events."""

    def __init__(self, deadzone: float = 0.05) -> None:
        if not PYGAME_AVAILABLE:
            raise RuntimeError("pygame not installed. Install with: pip install pygame")
        self._deadzone = deadzone
        self._joystick: Optional["pygame.joystick.JoystickType"] = None  # type: ignore[name-defined]
        self._on_connected: ConnectedHandler | None = None
        self._on_disconnected: DisconnectedHandler | None = None

    def start(self, on_connected: ConnectedHandler, on_disconnected: DisconnectedHandler) -> None:
        logger.info("Initializing pygame joystick input")
        pygame.init()
        pygame.joystick.init()
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected

    def stop(self) -> None:
        logger.info("Stopping pygame joystick input")
        self._on_connected = None
        self._on_disconnected = None
        if self._joystick is not None:
            self._joystick.quit()
            self._joystick = None
        pygame.joystick.quit()
        pygame.quit()

    def pump(self) -> None:
        if self._on_connected is None or self._on_disconnected is None:
            return
        for event in pygame.event.get((pygame.JOYDEVICEADDED, pygame.JOYDEVICEREMOVED)):
            if event.type == pygame.JOYDEVICEADDED:
                joystick = pygame.joystick.Joystick(event.device_index)
                self._joystick = joystick
                logger.info(
                    "Joystick %s: %d axes, %d buttons",
                    joystick.get_name(),
                    joystick.get_numaxes(),
                    joystick.get_numbuttons(),
                )
                self._on_connected(joystick.get_name())
            elif (
                self._joystick is not None
                and event.instance_id == self._joystick.get_instance_id()
            ):
                self._joystick = None
                self._on_disconnected()

    def current_snapshot(self) -> Optional[GamepadSnapshot]:
        joystick = self._joystick
        if joystick is None:
            return None
        axes = [joystick.get_axis(i) for i in range(joystick.get_numaxes())]
        buttons = [float(joystick.get_button(i)) for i in range(joystick.get_numbuttons())]
        return GamepadSnapshot(axes=apply_deadzone(axes, self._deadzone), buttons=tuple(buttons))
