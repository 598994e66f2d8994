"""Contador de pasos por hardware (total acumulado desde el arranque)."""

from __future__ import annotations

import math

from actividad_tool.sources.base import StepSource


class HardwareCounterSource(StepSource):
    """Translate a cumulative since-boot total into today's absolute steps."""

    def _reset(self, now_ms: float) -> None:
        # The anchor lives in the engine state so it survives restarts.
        return None

    def on_total(self, total: float) -> int | None:
        """Handle one counter sample.

        The first sample with no anchor becomes the anchor. Later samples
        report ``max(0, total - anchor)`` as an absolute value, so replaying
        the same total changes nothing.

        Returns:
            Steps reported for today, or None if the sample was ignored.
        """
        if not self.running or not math.isfinite(total):
            return None
        self._engine.ensure_rolled()
        anchor = self._engine.baseline_step_count
        if anchor < 0:
            self._engine.set_baseline_step_count(total)
            anchor = total
        steps = max(0, int(total - anchor))
        self._engine.record_steps(steps, absolute=True)
        return steps
