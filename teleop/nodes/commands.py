import logging
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from teleop.errors import DispatchWhileEstopped, UnknownCommand
from teleop.messages import Command, CommandKind, EstopState

logger = logging.getLogger(__name__)

QueueListener = Callable[[tuple[Command, ...], bool], Any]


def parse_command(kind: str, angle: float | None = None) -> Command:
    """Build a Command from its wire name ("Dig", "Move", ...)."""
    try:
        command_kind = CommandKind(kind)
    except ValueError:
        raise UnknownCommand(f"unknown command: {kind!r}") from None
    if command_kind == CommandKind.MOVE:
        if angle is None:
            raise ValueError("Move requires an angle")
        return Command.move(angle)
    return Command(command_kind)


class CommandDispatcher:
    """
    FIFO of operator commands with ESTOP precedence.

    While ESTOP is engaged the queue is empty and every dispatch is
    refused. Engaging clears whatever was pending.
    """

    def __init__(self, supported: Iterable[CommandKind] = tuple(CommandKind)) -> None:
        self.supported = frozenset(supported)
        self.estop = EstopState()
        self._queue: deque[Command] = deque()
        self._listeners: list[QueueListener] = []

    @property
    def engaged(self) -> bool:
        return self.estop.engaged

    @property
    def pending(self) -> tuple[Command, ...]:
        return tuple(self._queue)

    def add_listener(self, listener: QueueListener) -> None:
        """listener(queue, estop_engaged) after every change"""
        self._listeners.append(listener)

    def dispatch(self, command: Command) -> None:
        if self.estop.engaged:
            logger.warning("Command %s rejected: ESTOP engaged", getattr(command, "label", command))
            raise DispatchWhileEstopped("ESTOP engaged, reset before sending commands")
        if not isinstance(command, Command) or command.kind not in self.supported:
            logger.warning("Command %r rejected: not supported", command)
            raise UnknownCommand(f"unsupported command: {command!r}")

        self._queue.append(command)
        logger.info("Queued command: %s", command.label)
        self._notify()

    def trigger_estop(self) -> None:
        if self.estop.engaged and not self._queue:
            return
        dropped = len(self._queue)
        self.estop.engaged = True
        self._queue.clear()
        logger.critical("ESTOP engaged, %d pending command(s) dropped", dropped)
        self._notify()

    def reset_estop(self) -> None:
        if not self.estop.engaged:
            return
        self.estop.engaged = False
        logger.info("ESTOP reset")
        self._notify()

    def drain(self) -> list[Command]:
        if self.estop.engaged:
            return []
        drained = list(self._queue)
        self._queue.clear()
        if drained:
            self._notify()
        return drained

    def requeue(self, commands: Iterable[Command]) -> None:
        """Put unsent commands back at the head of the queue, oldest first."""
        commands = list(commands)
        if not commands:
            return
        if self.estop.engaged:
            logger.warning("ESTOP engaged, %d unsent command(s) dropped", len(commands))
            return
        self._queue.extendleft(reversed(commands))
        logger.warning("Requeued %d unsent command(s)", len(commands))
        self._notify()

    def _notify(self) -> None:
        queue = tuple(self._queue)
        for listener in self._listeners:
            try:
                listener(queue, self.estop.engaged)
            except Exception as e:
                logger.error("Error in command listener: %s", e, exc_info=True)
