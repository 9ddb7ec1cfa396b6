"""
Rendering descriptions for the operator page.

Pure functions from a ConsoleSnapshot to plain dicts; the page draws
whatever it receives and keeps no state of its own.
"""

from typing import Any

from teleop.messages import (
    COMMAND_LABELS,
    MODE_LABELS,
    MOVE_MAX_DEG,
    MOVE_MIN_DEG,
    ConsoleSnapshot,
    Mode,
    VideoStatus,
)

# Panels that make sense in each mode, in page order
PANELS_BY_MODE: dict[Mode, tuple[str, ...]] = {
    Mode.IDLE: ("commands", "charts", "levers", "readings"),
    Mode.DIRECT_DRIVE: ("commands", "gamepad", "move", "charts", "levers"),
    Mode.AUTONOMOUS_DRIVE: ("charts", "levers", "readings"),
    Mode.CAMERA_FEED: ("video", "charts"),
    Mode.TEST: ("commands", "gamepad", "video", "charts", "levers", "move", "readings"),
}

LEVER_FULL_SCALE = 100.0


def render_tabs(snapshot: ConsoleSnapshot) -> list[dict[str, Any]]:
    return [
        {"mode": mode.value, "label": label, "active": mode == snapshot.mode}
        for mode, label in MODE_LABELS.items()
    ]


def render_estop(snapshot: ConsoleSnapshot) -> dict[str, Any]:
    engaged = snapshot.estop_engaged
    return {
        "engaged": engaged,
        "label": "Reset ESTOP" if engaged else "ESTOP",
        "status": "ESTOP engaged, commands blocked" if engaged else "",
    }


def render_commands(snapshot: ConsoleSnapshot) -> dict[str, Any]:
    enabled = not snapshot.estop_engaged
    return {
        "title": "Commands",
        "buttons": [
            {"kind": kind.value, "label": label, "enabled": enabled}
            for kind, label in COMMAND_LABELS.items()
        ],
        "queue": [command.label for command in snapshot.commands],
    }


def render_charts(snapshot: ConsoleSnapshot) -> dict[str, Any]:
    points = [sample.as_point() for sample in snapshot.telemetry]
    keys = [key for key in (points[0] if points else {}) if key != "time"]
    return {
        "title": "Charts",
        "series": [
            {"dataKey": key, "points": [{"time": p["time"], "value": p[key]} for p in points]}
            for key in keys
        ],
    }


def render_levers(snapshot: ConsoleSnapshot) -> list[dict[str, Any]]:
    """One gauge per channel, driven by the newest sample."""
    if not snapshot.telemetry:
        return []
    latest = snapshot.telemetry[-1]
    levers = []
    for value in latest.channels:
        level = min(max(value / LEVER_FULL_SCALE, 0.0), 1.0)
        levers.append({"level": level, "text": f"Live Value: {level:.1f}"})
    return levers


def render_move(snapshot: ConsoleSnapshot) -> dict[str, Any]:
    return {
        "title": "Move",
        "min": MOVE_MIN_DEG,
        "max": MOVE_MAX_DEG,
        "value": snapshot.move_angle,
        "caption": f"Play around: {snapshot.move_angle:g}°",
    }


def render_gamepad(snapshot: ConsoleSnapshot) -> dict[str, Any]:
    status = snapshot.input
    return {
        "status": status.status_text,
        "connected": status.connected,
        "axes": list(status.last_axes or ()),
        "buttons": list(status.last_buttons or ()),
    }


def render_video(snapshot: ConsoleSnapshot) -> dict[str, Any]:
    video = snapshot.video
    return {
        "status": video.status.value,
        "text": video.status_text,
        "stream": video.stream_attached,
        "can_request": video.status
        in (VideoStatus.IDLE, VideoStatus.FAILED, VideoStatus.RELEASED),
    }


def render_readings(snapshot: ConsoleSnapshot) -> dict[str, Any]:
    return {
        "title": "Other Readings",
        "values": [snapshot.input.status_text, snapshot.video.status_text],
    }


_PANEL_RENDERERS = {
    "commands": render_commands,
    "charts": render_charts,
    "levers": render_levers,
    "move": render_move,
    "gamepad": render_gamepad,
    "video": render_video,
    "readings": render_readings,
}


def render_view(snapshot: ConsoleSnapshot) -> dict[str, Any]:
    panels = PANELS_BY_MODE[snapshot.mode]
    return {
        "mode": snapshot.mode.value,
        "tabs": render_tabs(snapshot),
        "estop": render_estop(snapshot),
        "panels": [{"name": name, "body": _PANEL_RENDERERS[name](snapshot)} for name in panels],
    }
