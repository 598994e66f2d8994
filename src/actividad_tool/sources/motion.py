"""Deteccion de pasos a partir del acelerometro (con gravedad)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from actividad_tool.sources.base import StepSource
from actividad_tool.storage import AppConfig

if TYPE_CHECKING:
    from actividad_tool.engine import DailyTrackingEngine


@dataclass(frozen=True)
class MotionConfig:
    """Tunable constants of the motion heuristic."""

    threshold_g: float = 0.28
    min_interval_ms: float = 450
    alpha: float = 0.02
    seed_g: float = 1.0
    gravity: float = 9.81

    @classmethod
    def from_app_config(cls, config: AppConfig) -> MotionConfig:
        return cls(
            threshold_g=config.step_threshold_g,
            min_interval_ms=config.step_min_interval_ms,
            alpha=config.baseline_alpha,
        )


class MotionHeuristicSource(StepSource):
    """Emit +1 step when the magnitude departs from an adaptive baseline.

    The baseline is an exponential moving average of the magnitude in g,
    seeded at resting gravity. A spike counts as a step only when the gap
    to the baseline exceeds ``threshold_g`` and more than
    ``min_interval_ms`` passed since the previous step.
    """

    def __init__(
        self, engine: DailyTrackingEngine, config: MotionConfig | None = None
    ) -> None:
        super().__init__(engine)
        self._config = config or MotionConfig()
        self._baseline_g = self._config.seed_g
        self._last_step_ms = 0.0

    @property
    def baseline_g(self) -> float:
        return self._baseline_g

    def _reset(self, now_ms: float) -> None:
        self._baseline_g = self._config.seed_g
        self._last_step_ms = now_ms

    def on_sample(
        self,
        ax: float | None,
        ay: float | None,
        az: float | None,
        timestamp_ms: float,
    ) -> bool:
        """Process one acceleration sample in m/s2.

        Missing axes count as 0. A non-finite magnitude is dropped without
        touching the baseline.

        Returns:
            True if the sample produced a step event.
        """
        if not self.running:
            return False
        cfg = self._config
        x, y, z = (_axis(v) for v in (ax, ay, az))
        magnitude_g = math.sqrt(x * x + y * y + z * z) / cfg.gravity
        if not math.isfinite(magnitude_g):
            return False

        self._baseline_g = self._baseline_g * (1 - cfg.alpha) + magnitude_g * cfg.alpha
        diff = abs(magnitude_g - self._baseline_g)
        if diff <= cfg.threshold_g:
            return False
        if timestamp_ms - self._last_step_ms <= cfg.min_interval_ms:
            return False

        self._last_step_ms = timestamp_ms
        self._engine.record_steps(1, absolute=False)
        return True


def _axis(value: float | None) -> float:
    return 0.0 if value is None else float(value)
