import logging
from collections.abc import Callable
from typing import Any

from teleop.errors import InvalidModeTransition
from teleop.messages import MODE_LABELS, Mode

logger = logging.getLogger(__name__)

ModeListener = Callable[[Mode, Mode], Any]


def parse_mode(target: Mode | str) -> Mode:
    """Accept a Mode, its canonical name ("DirectDrive") or tab label ("Direct Drive")."""
    if isinstance(target, Mode):
        return target
    if isinstance(target, str):
        for mode in Mode:
            if target in (mode.value, mode.name, MODE_LABELS[mode]):
                return mode
    raise InvalidModeTransition(f"unknown mode: {target!r}")


class ModeController:
    """
    Finite state machine over the five operating modes.

    Any mode may follow any other. Listeners get (old, new) on every
    actual change, never on a no-op or a refused transition.
    """

    def __init__(self) -> None:
        self._mode = Mode.IDLE
        self._listeners: list[ModeListener] = []

    @property
    def mode(self) -> Mode:
        return self._mode

    def add_listener(self, listener: ModeListener) -> None:
        self._listeners.append(listener)

    def set_mode(self, target: Mode | str) -> Mode:
        new_mode = parse_mode(target)
        if new_mode == self._mode:
            return new_mode

        old_mode = self._mode
        self._mode = new_mode
        logger.info("Mode transition: %s -> %s", old_mode.value, new_mode.value)

        for listener in self._listeners:
            try:
                listener(old_mode, new_mode)
            except Exception as e:
                logger.error("Error in mode listener: %s", e, exc_info=True)
        return new_mode
