import asyncio
import json
import logging
from typing import Any

from aiortc import RTCPeerConnection, RTCSessionDescription
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from teleop.config import config
from teleop.errors import (
    ConsoleError,
    DeviceUnavailable,
    DispatchWhileEstopped,
    InvalidModeTransition,
    UnknownCommand,
)
from teleop.hw.gamepad import BrowserGamepad
from teleop.messages import COMMAND_LABELS, MODE_LABELS, ConsoleSnapshot
from teleop.session import ConsoleSession
from teleop.video import create_peer_connection
from teleop.view import render_view

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[ConsoleError], int] = {
    InvalidModeTransition: 422,
    UnknownCommand: 422,
    DispatchWhileEstopped: 409,
    DeviceUnavailable: 503,
}

STATE_QUEUE_SIZE = 32

# Control messages that may wait on hardware
BACKGROUND_MESSAGES = frozenset({"video_request"})

# Keep peer connections alive
_peer_connections: set[RTCPeerConnection] = set()


class Offer(BaseModel):
    sdp: str
    type: str


class ModeRequest(BaseModel):
    mode: str


class CommandRequest(BaseModel):
    kind: str
    angle: float | None = None


class MoveRequest(BaseModel):
    angle: float


def error_payload(exc: ConsoleError) -> dict[str, Any]:
    return {"ok": False, "error": exc.kind, "detail": exc.detail}


def snapshot_payload(snapshot: ConsoleSnapshot) -> dict[str, Any]:
    payload = jsonable_encoder(snapshot)
    payload["input"]["status_text"] = snapshot.input.status_text
    payload["video"]["status_text"] = snapshot.video.status_text
    return payload


async def handle_control_message(msg: dict[str, Any], session: ConsoleSession) -> dict[str, Any]:
    """
    Apply one /ws/control message to the session.

    Raises:
        ConsoleError: refused by the session (state unchanged)
        ValueError: malformed message
    """
    if not isinstance(msg, dict):
        raise ValueError("message must be a JSON object")
    msg_type = msg.get("type")

    if msg_type == "command":
        angle = msg.get("angle")
        command = session.send(str(msg.get("kind", "")), None if angle is None else float(angle))
        return {"ok": True, "queued": command.label}

    if msg_type == "estop":
        session.trigger_estop()
        return {"ok": True, "estop": True}

    if msg_type == "estop_reset":
        session.reset_estop()
        return {"ok": True, "estop": False}

    if msg_type == "mode":
        mode = session.set_mode(str(msg.get("mode", "")))
        return {"ok": True, "mode": mode.value}

    if msg_type == "move":
        angle = session.set_move_angle(float(msg.get("angle", 0.0)))
        return {"ok": True, "angle": angle}

    if msg_type == "video_request":
        video = await session.request_capture()
        return {"ok": True, "video": video.status.value, "text": video.status_text}

    if msg_type == "video_release":
        video = session.release_capture()
        return {"ok": True, "video": video.status.value}

    if msg_type in ("gamepad_connected", "gamepad_disconnected", "gamepad_state"):
        device = session.input_devices.device
        if not isinstance(device, BrowserGamepad):
            raise ValueError("gamepad events are only accepted with the browser backend")
        if msg_type == "gamepad_connected":
            device.connect(str(msg.get("id", "")))
        elif msg_type == "gamepad_disconnected":
            device.disconnect()
        else:
            device.update(msg.get("axes", []), msg.get("buttons", []))
        return {"ok": True, "gamepad": session.input_devices.status_text}

    raise ValueError(f"Unsupported message type: {msg_type!r}")


async def _reply_to(ws: WebSocket, msg: Any, session: ConsoleSession) -> None:
    try:
        reply = await handle_control_message(msg, session)
    except ConsoleError as exc:
        reply = error_payload(exc)
    except (ValueError, TypeError) as exc:
        reply = {"ok": False, "error": "bad_message", "detail": str(exc)}
    await ws.send_json(reply)


async def run_control_socket(ws: WebSocket, session: ConsoleSession, estop_on_disconnect: bool) -> None:
    """
    Serve one operator connection; every message gets exactly one reply.

    Camera requests are answered from a background task so the socket
    keeps reading; an ESTOP is never stuck behind a slow camera.
    """
    background: set[asyncio.Task[None]] = set()
    try:
        while True:
            msg_text = await ws.receive_text()
            try:
                msg = json.loads(msg_text)
            except ValueError as exc:
                await ws.send_json({"ok": False, "error": "bad_message", "detail": str(exc)})
                continue

            if isinstance(msg, dict) and msg.get("type") in BACKGROUND_MESSAGES:
                task = asyncio.create_task(_reply_to(ws, msg, session))
                background.add(task)
                task.add_done_callback(background.discard)
                continue

            await _reply_to(ws, msg, session)

    except WebSocketDisconnect:
        if estop_on_disconnect:
            logger.warning("Operator disconnected, engaging ESTOP")
            session.trigger_estop()
    finally:
        # Nobody is left to answer; a pending camera request ends Released
        for task in list(background):
            task.cancel()
        if background:
            await asyncio.gather(*background, return_exceptions=True)


async def _run_peer_connection(pc: RTCPeerConnection) -> None:
    """Keep peer connection alive until it closes."""

    @pc.on("connectionstatechange")
    async def on_connectionstatechange() -> None:
        if pc.connectionState in ["closed", "failed"]:
            logger.info(f"Peer connection {pc.connectionState}, cleaning up")
            _peer_connections.discard(pc)
            await pc.close()

    @pc.on("iceconnectionstatechange")
    async def on_iceconnectionstatechange() -> None:
        if pc.iceConnectionState == "failed":
            logger.warning("ICE connection failed")


def create_app(session: ConsoleSession | None = None) -> FastAPI:
    session = session or ConsoleSession(config)
    cfg = session.config
    app = FastAPI(title="teleop-console")
    app.state.session = session

    @app.on_event("startup")
    async def on_startup() -> None:
        await session.start()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await session.stop()
        for pc in list(_peer_connections):
            await pc.close()
        _peer_connections.clear()

    @app.exception_handler(ConsoleError)
    async def console_error_handler(request: Request, exc: ConsoleError) -> JSONResponse:
        return JSONResponse(status_code=_ERROR_STATUS.get(type(exc), 400), content=error_payload(exc))

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/")
    async def index() -> dict[str, Any]:
        return render_view(session.snapshot())

    @app.get("/api/config")
    async def get_config() -> dict[str, Any]:
        """Получить конфигурацию для фронтенда"""
        return {
            "modes": [{"mode": m.value, "label": label} for m, label in MODE_LABELS.items()],
            "commands": [{"kind": k.value, "label": label} for k, label in COMMAND_LABELS.items()],
            "telemetry": {
                "tick_ms": cfg.telemetry.tick_ms,
                "window_size": cfg.telemetry.window_size,
                "channels": cfg.telemetry.channels,
            },
            "input": {"backend": cfg.input.backend, "poll_hz": cfg.input.poll_hz},
            "video": {
                "width": cfg.video.width,
                "height": cfg.video.height,
                "fps": cfg.video.fps,
            },
        }

    @app.get("/api/state")
    async def get_state() -> dict[str, Any]:
        return snapshot_payload(session.snapshot())

    @app.get("/api/view")
    async def get_view() -> dict[str, Any]:
        return render_view(session.snapshot())

    @app.post("/api/mode")
    async def post_mode(body: ModeRequest) -> dict[str, Any]:
        mode = session.set_mode(body.mode)
        return {"ok": True, "mode": mode.value}

    @app.post("/api/commands")
    async def post_command(body: CommandRequest) -> dict[str, Any]:
        try:
            command = session.send(body.kind, body.angle)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"ok": True, "queued": command.label, "queue": [c.label for c in session.dispatcher.pending]}

    @app.post("/api/move")
    async def post_move(body: MoveRequest) -> dict[str, Any]:
        try:
            angle = session.set_move_angle(body.angle)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"ok": True, "angle": angle}

    @app.post("/api/estop")
    async def post_estop() -> dict[str, Any]:
        session.trigger_estop()
        return {"ok": True, "estop": True}

    @app.post("/api/estop/reset")
    async def post_estop_reset() -> dict[str, Any]:
        session.reset_estop()
        return {"ok": True, "estop": False}

    @app.post("/api/video/request")
    async def post_video_request() -> dict[str, Any]:
        video = await session.request_capture()
        return {"status": video.status.value, "text": video.status_text}

    @app.post("/api/video/release")
    async def post_video_release() -> dict[str, Any]:
        video = session.release_capture()
        return {"status": video.status.value, "text": video.status_text}

    @app.post("/webrtc/offer")
    async def webrtc_offer(offer: Offer) -> dict[str, Any]:
        pc = await create_peer_connection(session.video, cfg.video)

        # Store PC to keep it alive
        _peer_connections.add(pc)

        # Start background task to monitor connection
        asyncio.create_task(_run_peer_connection(pc))

        remote_desc = RTCSessionDescription(sdp=offer.sdp, type=offer.type)
        await pc.setRemoteDescription(remote_desc)

        answer = await pc.createAnswer()
        await pc.setLocalDescription(answer)

        return {"sdp": pc.localDescription.sdp, "type": pc.localDescription.type}

    @app.websocket("/ws/control")
    async def ws_control(ws: WebSocket) -> None:
        await ws.accept()
        await run_control_socket(ws, session, estop_on_disconnect=cfg.server.estop_on_disconnect)

    @app.websocket("/ws/state")
    async def ws_state(ws: WebSocket) -> None:
        await ws.accept()
        queue: asyncio.Queue[ConsoleSnapshot] = asyncio.Queue(maxsize=STATE_QUEUE_SIZE)

        def on_snapshot(snapshot: ConsoleSnapshot) -> None:
            if queue.full():
                # Slow reader: only the newest state matters
                queue.get_nowait()
            queue.put_nowait(snapshot)

        unsubscribe = session.subscribe(on_snapshot)

        async def push_snapshots() -> None:
            while True:
                snapshot = await queue.get()
                await ws.send_json(snapshot_payload(snapshot))

        await ws.send_json(snapshot_payload(session.snapshot()))
        sender = asyncio.create_task(push_snapshots())
        try:
            # Clients only listen; reading here just waits for the disconnect
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            sender.cancel()
            unsubscribe()
            logger.info("State subscriber disconnected")

    return app


app = create_app()
