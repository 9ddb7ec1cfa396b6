"""Тесты менеджера геймпада и браузерного геймпада."""

import pytest

from teleop.hw.gamepad import BrowserGamepad, apply_deadzone
from teleop.nodes.input import InputDeviceManager


@pytest.fixture
def gamepad():
    return BrowserGamepad(deadzone=0.1)


@pytest.fixture
def manager(gamepad):
    manager = InputDeviceManager(gamepad)
    manager.start()
    return manager


def test_initially_disconnected(manager):
    assert manager.status.connected is False
    assert manager.status_text == "disconnected"
    assert manager.poll_state() is None


def test_connect_sets_status_text(manager, gamepad):
    gamepad.connect("Xbox 360 Controller")

    assert manager.status.connected is True
    assert manager.status.id == "Xbox 360 Controller"
    assert manager.status_text == "connected: Xbox 360 Controller"


def test_connect_then_disconnect_ends_disconnected(manager, gamepad):
    gamepad.connect("X")
    gamepad.disconnect()

    assert manager.status_text == "disconnected"
    assert manager.poll_state() is None


def test_last_event_wins(manager):
    manager.device_disconnected()
    manager.device_connected("A")
    manager.device_connected("B")

    assert manager.status_text == "connected: B"

    manager.device_connected("C")
    manager.device_disconnected()

    assert manager.status_text == "disconnected"


def test_poll_returns_latest_snapshot_and_records_it(manager, gamepad):
    gamepad.connect("pad")
    gamepad.update(axes=[0.5, -0.05, -1.0], buttons=[1, 0])

    snapshot = manager.poll_state()

    assert snapshot is not None
    assert snapshot.axes == (0.5, 0.0, -1.0)
    assert snapshot.buttons == (1.0, 0.0)
    assert manager.status.last_axes == (0.5, 0.0, -1.0)
    assert manager.status.last_buttons == (1.0, 0.0)
    assert manager.status_text == "connected: pad"


def test_update_without_connection_is_ignored(manager, gamepad):
    gamepad.update(axes=[1.0], buttons=[1])

    assert gamepad.current_snapshot() is None
    assert manager.poll_state() is None


def test_listeners_only_on_connection_changes(manager, gamepad):
    seen = []
    manager.add_listener(lambda status: seen.append(status.status_text))

    gamepad.connect("pad")
    gamepad.update(axes=[0.3], buttons=[])
    manager.poll_state()
    gamepad.disconnect()

    assert seen == ["connected: pad", "disconnected"]


def test_events_before_start_are_dropped(gamepad):
    manager = InputDeviceManager(gamepad)
    gamepad.connect("early")

    assert manager.status.connected is False


def test_stop_tears_down_status(manager, gamepad):
    gamepad.connect("pad")
    manager.stop()

    assert manager.status.connected is False
    gamepad.connect("late")
    assert manager.status.connected is False


def test_apply_deadzone():
    assert apply_deadzone([0.04, -0.2, 0.0], 0.05) == (0.0, -0.2, 0.0)
