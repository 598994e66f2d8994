"""Modelos tipados para el registro diario de pasos y agua."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from actividad_tool.clock import date_key, parse_date_key

WATER_GOAL_MIN_ML = 500
WATER_GOAL_MAX_ML = 6000
DEFAULT_WATER_GOAL_ML = 2000
HISTORY_MAX_DAYS = 7
UNSET_BASELINE = -1.0

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayRecord:
    """Archived counters of one calendar day."""

    date: str
    steps: int = 0
    water: int = 0

    def to_dict(self) -> dict[str, object]:
        return {"date": self.date, "steps": self.steps, "water": self.water}

    @classmethod
    def from_dict(cls, raw: Any) -> DayRecord:
        """Build a record from its JSON shape.

        Raises:
            ValueError: If the item is not a dict with a valid day key.
        """
        if not isinstance(raw, dict) or not isinstance(raw.get("date"), str):
            raise ValueError(f"Invalid history entry: {raw!r}")
        return cls(
            date=normalize_date_key(raw["date"]),
            steps=max(0, _as_int(raw.get("steps", 0))),
            water=max(0, _as_int(raw.get("water", 0))),
        )


@dataclass
class TrackingState:
    """Mutable state of the current day plus the archived week."""

    current_date: str
    steps_today: int = 0
    water_today: int = 0
    water_goal_ml: int = DEFAULT_WATER_GOAL_ML
    history: list[DayRecord] = field(default_factory=list)
    baseline_step_count: float = UNSET_BASELINE

    @classmethod
    def fresh(cls, today: str) -> TrackingState:
        return cls(current_date=today)

    def to_dict(self) -> dict[str, object]:
        """Persisted JSON shape (camelCase keys)."""
        return {
            "currentDate": self.current_date,
            "stepsToday": self.steps_today,
            "waterToday": self.water_today,
            "waterGoalMl": self.water_goal_ml,
            "history": [record.to_dict() for record in self.history],
            "baselineStepCount": self.baseline_step_count,
        }

    @classmethod
    def from_dict(cls, raw: Any, today: str) -> TrackingState:
        """Rebuild state from its persisted shape.

        Missing keys take defaults. The history is normalized so it never
        holds the current day and keeps only the newest entries.

        Args:
            raw: Decoded JSON object.
            today: Day key used when ``currentDate`` is missing or invalid.

        Returns:
            Normalized tracking state.

        Raises:
            ValueError: If the payload shape is invalid.
        """
        if not isinstance(raw, dict):
            raise ValueError("State payload must be an object")
        try:
            current_date = normalize_date_key(raw.get("currentDate"))
        except ValueError:
            current_date = today
        history_raw = raw.get("history") or []
        if not isinstance(history_raw, list):
            raise ValueError("history must be a list")
        history: list[DayRecord] = []
        for item in history_raw:
            try:
                history.append(DayRecord.from_dict(item))
            except ValueError:
                logger.warning("Dropping invalid history entry: %r", item)
        history = [r for r in history if r.date != current_date]

        goal = _as_int(raw.get("waterGoalMl", DEFAULT_WATER_GOAL_ML))
        if not is_valid_water_goal(goal):
            goal = DEFAULT_WATER_GOAL_ML
        baseline = _as_float(raw.get("baselineStepCount", UNSET_BASELINE))
        if not math.isfinite(baseline):
            baseline = UNSET_BASELINE

        return cls(
            current_date=current_date,
            steps_today=max(0, _as_int(raw.get("stepsToday", 0))),
            water_today=max(0, _as_int(raw.get("waterToday", 0))),
            water_goal_ml=goal,
            history=history[-HISTORY_MAX_DAYS:],
            baseline_step_count=baseline,
        )


@dataclass(frozen=True)
class Snapshot:
    """Read-only projection handed to the UI."""

    current_date: str
    steps_today: int
    water_today: int
    water_goal_ml: int
    percent_of_goal: int
    history: tuple[DayRecord, ...]


def normalize_date_key(value: Any) -> str:
    """Canonical ``YYYY-MM-DD`` form of a day key.

    Raises:
        ValueError: If the value is not a parseable day key.
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected a day key, got {value!r}")
    return date_key(parse_date_key(value))


def is_valid_water_goal(ml: int) -> bool:
    return WATER_GOAL_MIN_ML <= ml <= WATER_GOAL_MAX_ML


def _as_int(value: Any) -> int:
    number = _as_float(value)
    if not math.isfinite(number):
        raise ValueError(f"Expected a finite number, got {value!r}")
    return int(number)


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float | str):
        raise ValueError(f"Expected a number, got {value!r}")
    return float(value)
