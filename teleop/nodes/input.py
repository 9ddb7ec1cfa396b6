import logging
from collections.abc import Callable
from typing import Any, Optional

from teleop.hw.gamepad import InputDevice
from teleop.messages import GamepadSnapshot, InputDeviceStatus

logger = logging.getLogger(__name__)

StatusListener = Callable[[InputDeviceStatus], Any]


class InputDeviceManager:
    """
    Single owner of the session's InputDeviceStatus.

    Connect/disconnect events are applied in the order they arrive, so the
    last event always wins. `poll_state()` is the control-loop side: it
    never waits on the device and reports nothing while disconnected.
    """

    def __init__(self, device: InputDevice) -> None:
        self.device = device
        self._status = InputDeviceStatus()
        self._listeners: list[StatusListener] = []
        self._started = False

    @property
    def status(self) -> InputDeviceStatus:
        return self._status

    @property
    def status_text(self) -> str:
        return self._status.status_text

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        if self._started:
            return
        self.device.start(self.device_connected, self.device_disconnected)
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self.device.stop()
        if self._status.connected:
            self._set_status(InputDeviceStatus())

    def device_connected(self, device_id: str) -> None:
        logger.info("Gamepad connected: %s", device_id)
        self._set_status(InputDeviceStatus(connected=True, id=device_id))

    def device_disconnected(self) -> None:
        logger.info("Gamepad disconnected")
        self._set_status(InputDeviceStatus(connected=False))

    def poll_state(self) -> Optional[GamepadSnapshot]:
        self.device.pump()
        if not self._status.connected:
            return None
        snapshot = self.device.current_snapshot()
        if snapshot is None:
            return None
        # Snapshot updates are not status changes, listeners are not notified
        self._status = InputDeviceStatus(
            connected=True,
            id=self._status.id,
            last_axes=snapshot.axes,
            last_buttons=snapshot.buttons,
        )
        return snapshot

    def _set_status(self, status: InputDeviceStatus) -> None:
        self._status = status
        for listener in self._listeners:
            try:
                listener(status)
            except Exception as e:
                logger.error("Error in input status listener: %s", e, exc_info=True)
