"""Тесты для конфигурации консоли."""

import pytest
from pydantic import ValidationError

from teleop.config import Config, InputConfig, TelemetryConfig, VideoConfig


def test_telemetry_config_defaults() -> None:
    """Окно из 20 отсчётов по 4 канала, обновление раз в 5 секунд."""
    config = TelemetryConfig()

    assert config.source == "simulated"
    assert config.tick_ms == 5000
    assert config.window_size == 20
    assert config.channels == 4
    assert config.min_value == 0.0
    assert config.max_value == 100.0


def test_telemetry_window_cannot_exceed_capacity() -> None:
    """Окно больше 20 отсчётов запрещено."""
    with pytest.raises(ValidationError):
        TelemetryConfig(window_size=21)


def test_input_config_defaults() -> None:
    """По умолчанию геймпад приходит из браузера, опрос 60 Hz."""
    config = InputConfig()

    assert config.backend == "browser"
    assert config.poll_hz == 60


def test_input_config_rejects_unknown_backend() -> None:
    """Неизвестный источник геймпада не проходит валидацию."""
    with pytest.raises(ValidationError):
        InputConfig(backend="joystick-over-serial")


def test_video_config_limits() -> None:
    """Ограничения разрешения и FPS."""
    with pytest.raises(ValidationError):
        VideoConfig(fps=0)
    with pytest.raises(ValidationError):
        VideoConfig(width=100)


def test_config_sections() -> None:
    """Главная конфигурация собирает все секции."""
    config = Config()

    assert config.server.port == 8000
    assert config.server.estop_on_disconnect is True
    assert config.telemetry.tick_ms == 5000
    assert config.video.camera_index == 0
    assert config.control.log_commands is True


def test_config_nested_override() -> None:
    """Секции можно переопределить при создании."""
    config = Config(telemetry=TelemetryConfig(tick_ms=1000, seed=7))

    assert config.telemetry.tick_ms == 1000
    assert config.telemetry.seed == 7
    assert config.input.poll_hz == 60
