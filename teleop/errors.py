"""Console error kinds.

Every operation that can be refused raises one of these and leaves the
owning component's state exactly as it was before the call.
"""


class ConsoleError(Exception):
    """Base class for all refusals raised by the console core."""

    kind = "console_error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.kind)
        self.detail = detail or self.kind


class InvalidModeTransition(ConsoleError):
    kind = "invalid_mode_transition"


class DeviceUnavailable(ConsoleError):
    """Capture permission denied or no capture device present."""

    kind = "device_unavailable"


class DispatchWhileEstopped(ConsoleError):
    kind = "dispatch_while_estopped"


class UnknownCommand(ConsoleError):
    kind = "unknown_command"
