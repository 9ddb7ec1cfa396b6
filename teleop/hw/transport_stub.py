"""
Robot command transport stub.
TODO: Replace with the real link to the excavator controller once its protocol is fixed.
"""

import logging
from collections import deque
from typing import Protocol

from teleop.messages import Command

logger = logging.getLogger(__name__)


class CommandTransport(Protocol):
    async def send(self, command: Command) -> None:
        ...

    async def emergency_stop(self) -> None:
        ...


class LoggingTransport:
    """Records commands instead of sending them anywhere."""

    def __init__(self, log_commands: bool = True) -> None:
        self.log_commands = log_commands
        self.sent: deque[Command] = deque(maxlen=256)
        self.estops = 0

    async def send(self, command: Command) -> None:
        self.sent.append(command)
        if self.log_commands:
            logger.info("[ROBOT] %s", command.label)

    async def emergency_stop(self) -> None:
        self.estops += 1
        logger.warning("[ROBOT] emergency stop")
