"""Тесты HTTP и WebSocket API консоли."""

import asyncio
import json

import numpy as np
import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from teleop.config import Config, InputConfig
from teleop.hw.transport_stub import LoggingTransport
from teleop.messages import VideoStatus
from teleop.session import ConsoleSession
from teleop.web.server import create_app, handle_control_message, run_control_socket


class _Handle:
    def cancel(self) -> None:
        pass


class _ManualTimer:
    def schedule_periodic(self, interval_ms, callback):
        return _Handle()


class _Stream:
    def read(self):
        return np.zeros((2, 2, 3), dtype=np.uint8)

    def release(self) -> None:
        pass


class _InstantCapture:
    async def request_stream(self, constraints):
        return _Stream()


def _session(**cfg) -> ConsoleSession:
    return ConsoleSession(
        Config(**cfg),
        capture=_InstantCapture(),
        transport=LoggingTransport(log_commands=False),
        timer=_ManualTimer(),
    )


@pytest.fixture
def session() -> ConsoleSession:
    return _session()


@pytest.fixture
def client(session):
    with TestClient(create_app(session)) as client:
        yield client


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_index_is_operator_view(client):
    response = client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "Idle"
    assert len(body["tabs"]) == 5


def test_config_endpoint(client):
    body = client.get("/api/config").json()
    assert body["telemetry"]["tick_ms"] == 5000
    assert [m["label"] for m in body["modes"]][1] == "Direct Drive"


def test_state_after_startup(client):
    body = client.get("/api/state").json()
    assert body["mode"] == "Idle"
    assert len(body["telemetry"]) == 20
    assert body["input"]["status_text"] == "disconnected"
    assert body["video"]["status"] == "idle"
    assert body["estop_engaged"] is False


def test_estop_scenario_over_http(client):
    assert client.post("/api/commands", json={"kind": "RaiseBucketLadder"}).status_code == 200
    assert client.post("/api/estop").json()["estop"] is True

    state = client.get("/api/state").json()
    assert state["commands"] == []
    assert state["estop_engaged"] is True

    refused = client.post("/api/commands", json={"kind": "Dump"})
    assert refused.status_code == 409
    assert refused.json()["error"] == "dispatch_while_estopped"

    client.post("/api/estop/reset")
    response = client.post("/api/commands", json={"kind": "Dump"})
    assert response.status_code == 200
    assert response.json()["queue"] == ["Dump"]


def test_unknown_command_and_bad_angle(client):
    unknown = client.post("/api/commands", json={"kind": "Fly"})
    assert unknown.status_code == 422
    assert unknown.json()["error"] == "unknown_command"

    assert client.post("/api/commands", json={"kind": "Move", "angle": 400}).status_code == 422
    assert client.post("/api/move", json={"angle": -3}).status_code == 422


def test_invalid_mode(client):
    response = client.post("/api/mode", json={"mode": "Flying"})
    assert response.status_code == 422
    assert response.json()["error"] == "invalid_mode_transition"
    assert client.get("/api/state").json()["mode"] == "Idle"


def test_video_request_and_mode_release(client):
    client.post("/api/mode", json={"mode": "CameraFeed"})
    assert client.post("/api/video/request").json()["status"] == "active"

    client.post("/api/mode", json={"mode": "Idle"})
    assert client.get("/api/state").json()["video"]["status"] == "released"


def test_ws_control_roundtrip(client):
    with client.websocket_connect("/ws/control") as ws:
        ws.send_json({"type": "gamepad_connected", "id": "X"})
        assert ws.receive_json()["gamepad"] == "connected: X"

        ws.send_json({"type": "gamepad_disconnected"})
        assert ws.receive_json()["gamepad"] == "disconnected"

        ws.send_json({"type": "command", "kind": "Dig"})
        assert ws.receive_json() == {"ok": True, "queued": "Dig"}

        ws.send_json({"type": "mode", "mode": "Flying"})
        reply = ws.receive_json()
        assert reply["ok"] is False
        assert reply["error"] == "invalid_mode_transition"

        ws.send_text("not json")
        assert ws.receive_json()["error"] == "bad_message"


class _ScriptedSocket:
    """Сокет управления: проигрывает сообщения и отключается."""

    def __init__(self, messages: list[str]) -> None:
        self._messages = list(messages)
        self.replies: list[dict] = []

    async def receive_text(self) -> str:
        if not self._messages:
            raise WebSocketDisconnect(code=1000)
        return self._messages.pop(0)

    async def send_json(self, data: dict) -> None:
        self.replies.append(data)


def test_control_socket_disconnect_engages_estop(session):
    ws = _ScriptedSocket([json.dumps({"type": "command", "kind": "Dig"})])

    asyncio.run(run_control_socket(ws, session, estop_on_disconnect=True))

    assert ws.replies == [{"ok": True, "queued": "Dig"}]
    assert session.dispatcher.engaged is True
    assert session.dispatcher.pending == ()


def test_control_socket_disconnect_without_estop(session):
    ws = _ScriptedSocket([json.dumps({"type": "command", "kind": "Dig"})])

    asyncio.run(run_control_socket(ws, session, estop_on_disconnect=False))

    assert session.dispatcher.engaged is False
    assert len(session.dispatcher.pending) == 1


def test_ws_state_sends_initial_snapshot(client):
    with client.websocket_connect("/ws/state") as ws:
        first = ws.receive_json()
        assert first["mode"] == "Idle"

        client.post("/api/mode", json={"mode": "Test"})
        assert ws.receive_json()["mode"] == "Test"


def test_gamepad_messages_need_browser_backend():
    session = _session()
    session.input_devices.device = object()  # any non-browser backend

    with pytest.raises(ValueError):
        asyncio.run(handle_control_message({"type": "gamepad_connected", "id": "X"}, session))


def test_handle_control_message_move_and_video():
    session = _session()

    async def _run_test():
        assert (await handle_control_message({"type": "move", "angle": 30}, session))["angle"] == 30.0
        reply = await handle_control_message({"type": "video_request"}, session)
        assert reply["video"] == "active"
        reply = await handle_control_message({"type": "video_release"}, session)
        assert reply["video"] == "released"

    asyncio.run(_run_test())


def test_pygame_backend_config_is_validated():
    assert InputConfig(backend="pygame").backend == "pygame"


class _HeldSocket(_ScriptedSocket):
    """Сокет, который после сообщений остаётся открытым до close()."""

    def __init__(self, messages: list[str]) -> None:
        super().__init__(messages)
        self._closed: asyncio.Event | None = None

    async def receive_text(self) -> str:
        if self._messages:
            return self._messages.pop(0)
        if self._closed is None:
            self._closed = asyncio.Event()
        await self._closed.wait()
        raise WebSocketDisconnect(code=1000)

    def close(self) -> None:
        self._closed.set()


class _PendingCapture:
    """Камера, которая открывается только по команде теста."""

    def __init__(self) -> None:
        self.future: asyncio.Future | None = None

    async def request_stream(self, constraints):
        self.future = asyncio.get_running_loop().create_future()
        return await self.future


async def _yield_loop(times: int = 20) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


def _pending_camera_session(capture: _PendingCapture) -> ConsoleSession:
    return ConsoleSession(
        Config(),
        capture=capture,
        transport=LoggingTransport(log_commands=False),
        timer=_ManualTimer(),
    )


def test_estop_is_not_blocked_by_pending_camera_request():
    """ESTOP срабатывает сразу, пока камера ещё открывается."""
    capture = _PendingCapture()
    session = _pending_camera_session(capture)
    session.send("Dig")
    ws = _HeldSocket([json.dumps({"type": "video_request"}), json.dumps({"type": "estop"})])

    async def _run_test():
        runner = asyncio.create_task(run_control_socket(ws, session, estop_on_disconnect=False))
        await _yield_loop()

        assert session.dispatcher.engaged is True
        assert session.dispatcher.pending == ()
        assert session.video.status == VideoStatus.REQUESTING
        assert ws.replies == [{"ok": True, "estop": True}]

        capture.future.set_result(_Stream())
        await _yield_loop()
        assert ws.replies[-1]["video"] == "active"

        ws.close()
        await runner

    asyncio.run(_run_test())


def test_disconnect_cancels_pending_camera_request():
    """Оператор ушёл до открытия камеры: запрос отменяется, камера не захвачена."""
    capture = _PendingCapture()
    session = _pending_camera_session(capture)
    ws = _HeldSocket([json.dumps({"type": "video_request"})])

    async def _run_test():
        runner = asyncio.create_task(run_control_socket(ws, session, estop_on_disconnect=True))
        await _yield_loop()
        assert session.video.status == VideoStatus.REQUESTING

        ws.close()
        await runner

    asyncio.run(_run_test())

    assert session.video.status == VideoStatus.RELEASED
    assert session.dispatcher.engaged is True
    assert ws.replies == []
