from dataclasses import dataclass, field
from enum import Enum


class Mode(str, Enum):
    IDLE = "Idle"
    DIRECT_DRIVE = "DirectDrive"
    AUTONOMOUS_DRIVE = "AutonomousDrive"
    CAMERA_FEED = "CameraFeed"
    TEST = "Test"

    @property
    def label(self) -> str:
        return MODE_LABELS[self]


# Tab order in the console
MODE_LABELS: dict[Mode, str] = {
    Mode.IDLE: "Idle",
    Mode.DIRECT_DRIVE: "Direct Drive",
    Mode.AUTONOMOUS_DRIVE: "Autonomous Drive",
    Mode.CAMERA_FEED: "Camera Feed",
    Mode.TEST: "Test",
}


@dataclass(frozen=True)
class TelemetrySample:
    timestamp: int  # monotonic index inside the window
    channels: tuple[float, ...]  # value1..value4

    def as_point(self) -> dict[str, float]:
        """Chart point in the {time, value1, value2, ...} shape."""
        point: dict[str, float] = {"time": self.timestamp}
        for idx, value in enumerate(self.channels, start=1):
            point[f"value{idx}"] = value
        return point


@dataclass(frozen=True)
class GamepadSnapshot:
    axes: tuple[float, ...]  # -1..1
    buttons: tuple[float, ...]  # 0..1 (pressed amount)


@dataclass(frozen=True)
class InputDeviceStatus:
    connected: bool = False
    id: str | None = None
    last_axes: tuple[float, ...] | None = None
    last_buttons: tuple[float, ...] | None = None

    @property
    def status_text(self) -> str:
        if self.connected:
            return f"connected: {self.id}"
        return "disconnected"


class VideoStatus(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    ACTIVE = "active"
    FAILED = "failed"
    RELEASED = "released"


@dataclass(frozen=True)
class VideoSession:
    status: VideoStatus = VideoStatus.IDLE
    reason: str | None = None  # set only for FAILED
    stream_attached: bool = False

    @property
    def status_text(self) -> str:
        if self.status == VideoStatus.FAILED:
            return f"camera unavailable: {self.reason}"
        return {
            VideoStatus.IDLE: "camera idle",
            VideoStatus.REQUESTING: "requesting camera",
            VideoStatus.ACTIVE: "camera live",
            VideoStatus.RELEASED: "camera released",
        }[self.status]


@dataclass(frozen=True)
class CaptureConstraints:
    camera_index: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30


class CommandKind(str, Enum):
    RAISE_BUCKET_LADDER = "RaiseBucketLadder"
    LOWER_BUCKET_LADDER = "LowerBucketLadder"
    RAISE_DEPOSIT_BIN = "RaiseDepositBin"
    LOWER_DEPOSIT_BIN = "LowerDepositBin"
    DIG = "Dig"
    DUMP = "Dump"
    MOVE = "Move"


# Button order on the commands panel
COMMAND_LABELS: dict[CommandKind, str] = {
    CommandKind.RAISE_BUCKET_LADDER: "Raise Bucket Ladder",
    CommandKind.LOWER_BUCKET_LADDER: "Lower Bucket Ladder",
    CommandKind.RAISE_DEPOSIT_BIN: "Raise Deposit Bin",
    CommandKind.LOWER_DEPOSIT_BIN: "Lower Deposit Bin",
    CommandKind.DIG: "Dig",
    CommandKind.DUMP: "Dump",
    CommandKind.MOVE: "Move",
}

MOVE_MIN_DEG = 0.0
MOVE_MAX_DEG = 360.0


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    angle: float | None = None  # degrees, Move only
    label: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if self.kind == CommandKind.MOVE:
            if self.angle is None or not MOVE_MIN_DEG <= self.angle <= MOVE_MAX_DEG:
                raise ValueError(f"Move angle out of range: {self.angle}")
        elif self.angle is not None:
            raise ValueError(f"{self.kind.value} takes no angle")

        if not self.label:
            label = COMMAND_LABELS.get(self.kind, str(self.kind))
            if self.kind == CommandKind.MOVE:
                label = f"{label} {self.angle:g}°"
            object.__setattr__(self, "label", label)

    @classmethod
    def move(cls, angle: float) -> "Command":
        return cls(CommandKind.MOVE, angle=float(angle))


@dataclass
class EstopState:
    engaged: bool = False


@dataclass(frozen=True)
class ConsoleSnapshot:
    """Everything the rendering layer may read, frozen at one instant."""

    mode: Mode
    telemetry: tuple[TelemetrySample, ...]
    input: InputDeviceStatus
    video: VideoSession
    commands: tuple[Command, ...]
    estop_engaged: bool
    move_angle: float = 0.0
