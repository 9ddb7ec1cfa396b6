from typing import Literal

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Настройки веб-сервера"""
    host: str = Field("0.0.0.0", description="Адрес для привязки сервера")
    port: int = Field(8000, ge=1, le=65535, description="Порт сервера")
    reload: bool = Field(False, description="Auto-reload при изменении кода (для разработки)")
    estop_on_disconnect: bool = Field(
        True, description="Включать ESTOP при отключении оператора от /ws/control"
    )


class TelemetryConfig(BaseModel):
    """Настройки буфера телеметрии"""
    source: Literal["simulated", "live"] = Field("simulated", description="Источник телеметрии")
    tick_ms: int = Field(5000, ge=100, le=60000, description="Период обновления окна (мс)")
    window_size: int = Field(20, ge=1, le=20, description="Количество отсчётов в окне")
    channels: int = Field(4, ge=1, le=16, description="Количество каналов в отсчёте")

    # Диапазон значений симулятора
    min_value: float = Field(0.0, description="Минимальное значение канала")
    max_value: float = Field(100.0, description="Максимальное значение канала")
    seed: int | None = Field(None, description="Seed генератора (для воспроизводимости)")


class InputConfig(BaseModel):
    """Настройки геймпада"""
    backend: Literal["browser", "pygame"] = Field("browser", description="Источник событий геймпада")
    poll_hz: int = Field(60, ge=1, le=240, description="Частота опроса в цикле управления (Hz)")
    deadzone: float = Field(0.05, ge=0.0, lt=1.0, description="Мёртвая зона стиков")


class VideoConfig(BaseModel):
    """Настройки видеопотока"""
    # Источник видео
    camera_index: int = Field(0, ge=0, description="Индекс камеры для OpenCV")

    # Разрешение
    width: int = Field(640, ge=320, le=1920, description="Ширина видео")
    height: int = Field(480, ge=240, le=1080, description="Высота видео")

    # FPS
    fps: int = Field(30, ge=1, le=60, description="Частота кадров")

    # WebRTC
    pts_clock_hz: int = Field(90000, description="Частота PTS clock для WebRTC")

    # Трансформации изображения
    flip_horizontal: bool = Field(False, description="Горизонтальное отражение (зеркало)")
    flip_vertical: bool = Field(False, description="Вертикальное отражение (переворот)")


class ControlConfig(BaseModel):
    """Настройки сессии управления"""
    log_commands: bool = Field(True, description="Логировать команды, отправленные роботу")


class Config(BaseModel):
    """Главная конфигурация приложения"""
    server: ServerConfig = ServerConfig()
    telemetry: TelemetryConfig = TelemetryConfig()
    input: InputConfig = InputConfig()
    video: VideoConfig = VideoConfig()
    control: ControlConfig = ControlConfig()


# Глобальный экземпляр конфигурации
config = Config()
