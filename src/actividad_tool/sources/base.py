"""Clases base para fuentes de pasos."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from actividad_tool.engine import DailyTrackingEngine


class SensorStatus(Enum):
    """Estado visible del sensor de pasos."""

    IDLE = "idle"
    TRACKING = "tracking"
    UNSUPPORTED = "unsupported"
    DENIED = "denied"

    def status_text(self) -> str:
        return _STATUS_TEXT[self]


_STATUS_TEXT: dict[SensorStatus, str] = {
    SensorStatus.IDLE: "Sensor: inactivo",
    SensorStatus.TRACKING: "Sensor: registrando",
    SensorStatus.UNSUPPORTED: "Sensor: no disponible",
    SensorStatus.DENIED: "Sensor: permiso denegado",
}


class StepSource(ABC):
    """Abstract step source feeding a tracking engine."""

    def __init__(self, engine: DailyTrackingEngine) -> None:
        """Create a step source.

        Args:
            engine: Engine receiving step counts.
        """
        self._engine = engine
        self._status = SensorStatus.IDLE

    @property
    def status(self) -> SensorStatus:
        return self._status

    @property
    def running(self) -> bool:
        return self._status is SensorStatus.TRACKING

    def start(
        self,
        now_ms: float,
        *,
        available: bool = True,
        permitted: bool = True,
    ) -> SensorStatus:
        """Begin tracking unless the sensor is missing or not allowed.

        Args:
            now_ms: Start instant in milliseconds.
            available: Whether the platform exposes the sensor.
            permitted: Outcome of the motion permission request.

        Returns:
            Resulting sensor status.
        """
        if not available:
            self._status = SensorStatus.UNSUPPORTED
        elif not permitted:
            self._status = SensorStatus.DENIED
        else:
            self._reset(now_ms)
            self._status = SensorStatus.TRACKING
        return self._status

    def stop(self) -> None:
        self._status = SensorStatus.IDLE

    @abstractmethod
    def _reset(self, now_ms: float) -> None:
        """Clear per-session detector state."""
