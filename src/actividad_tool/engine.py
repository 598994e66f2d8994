"""Motor del dia: contadores, cambio de fecha e historial acotado."""

from __future__ import annotations

import logging
import math
import sqlite3
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from actividad_tool.clock import date_key
from actividad_tool.model import (
    HISTORY_MAX_DAYS,
    UNSET_BASELINE,
    WATER_GOAL_MAX_ML,
    WATER_GOAL_MIN_ML,
    DayRecord,
    Snapshot,
    is_valid_water_goal,
)
from actividad_tool.storage import StateStore

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Snapshot], None]


class Clock(Protocol):
    def now(self) -> datetime: ...


class WaterGoalError(ValueError):
    """Water goal outside the accepted range."""


class DailyTrackingEngine:
    """Owns the day's counters and the archived history.

    Every mutation runs a full roll-check, mutate, persist cycle. Writes
    that fail are logged and the in-memory state stays authoritative until
    the next successful write.
    """

    def __init__(self, store: StateStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock
        self._listeners: list[SnapshotListener] = []
        self._state = store.load_state(date_key(clock.now()))
        self.ensure_rolled()

    @property
    def current_date(self) -> str:
        return self._state.current_date

    @property
    def baseline_step_count(self) -> float:
        return self._state.baseline_step_count

    def subscribe(self, listener: SnapshotListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def ensure_rolled(self, now: datetime | None = None) -> bool:
        """Archive the stored day if the calendar day changed.

        Args:
            now: Moment to compare against; defaults to the engine clock.

        Returns:
            True if a rollover happened.
        """
        today = date_key(now if now is not None else self._clock.now())
        state = self._state
        if state.current_date == today:
            return False

        if state.steps_today > 0 or state.water_today > 0:
            state.history.append(
                DayRecord(
                    date=state.current_date,
                    steps=state.steps_today,
                    water=state.water_today,
                )
            )
        state.history = [r for r in state.history if r.date != today]
        state.history = state.history[-HISTORY_MAX_DAYS:]
        logger.info("Rollover %s -> %s", state.current_date, today)
        state.current_date = today
        state.steps_today = 0
        state.water_today = 0
        # The hardware counter re-anchors on the first sample of the new day.
        state.baseline_step_count = UNSET_BASELINE
        self._commit()
        return True

    def record_steps(self, value: int, *, absolute: bool) -> None:
        """Set (absolute) or increment (relative) today's steps, clamped at 0."""
        self.ensure_rolled()
        if absolute:
            self._state.steps_today = max(0, int(value))
        else:
            self._state.steps_today = max(0, self._state.steps_today + int(value))
        self._commit()

    def add_water(self, amount_ml: int) -> None:
        self.ensure_rolled()
        self._state.water_today = max(0, self._state.water_today + int(amount_ml))
        self._commit()

    def set_water_goal(self, ml: int) -> None:
        """Update the daily goal.

        Raises:
            WaterGoalError: If ``ml`` is outside 500-6000; the goal is kept.
        """
        valid = isinstance(ml, int) and not isinstance(ml, bool)
        if not valid or not is_valid_water_goal(ml):
            raise WaterGoalError(
                f"La meta debe estar entre {WATER_GOAL_MIN_ML} y "
                f"{WATER_GOAL_MAX_ML} ml (recibido: {ml!r})"
            )
        self.ensure_rolled()
        self._state.water_goal_ml = ml
        self._commit()

    def set_baseline_step_count(self, value: float) -> None:
        self.ensure_rolled()
        self._state.baseline_step_count = float(value)
        self._commit()

    def snapshot(self) -> Snapshot:
        """Project the state for rendering without touching it."""
        state = self._state
        today = DayRecord(
            date=state.current_date,
            steps=state.steps_today,
            water=state.water_today,
        )
        merged = sorted([*state.history, today], key=lambda r: r.date)
        return Snapshot(
            current_date=state.current_date,
            steps_today=state.steps_today,
            water_today=state.water_today,
            water_goal_ml=state.water_goal_ml,
            percent_of_goal=percent_of_goal(state.water_today, state.water_goal_ml),
            history=tuple(merged),
        )

    def refresh(self) -> Snapshot:
        """Roll if the day changed, then project."""
        self.ensure_rolled()
        return self.snapshot()

    def _commit(self) -> None:
        try:
            self._store.save_state(self._state)
        except (OSError, sqlite3.Error) as exc:
            logger.error("Could not persist tracking state: %s", exc)
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)


def percent_of_goal(water_ml: int, goal_ml: int) -> int:
    if goal_ml <= 0:
        return 0
    # Half-up rounding, 12.5 -> 13.
    pct = math.floor(water_ml / goal_ml * 100 + 0.5)
    return max(0, min(100, pct))
