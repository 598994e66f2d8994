"""Historial en DataFrame: tabla diaria, resumen y formato de vista previa."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

import pandas as pd

from actividad_tool.clock import parse_date_key
from actividad_tool.engine import percent_of_goal
from actividad_tool.model import DayRecord, Snapshot

HISTORY_COLUMNS = ["date", "steps", "water_ml", "percent_of_goal"]


@dataclass(frozen=True)
class HistorySummary:
    """Aggregates over the visible history."""

    days: int
    total_steps: int
    avg_steps: float
    total_water_ml: int
    avg_water_ml: float
    days_goal_met: int


def history_frame(snapshot: Snapshot) -> pd.DataFrame:
    """Snapshot history (today included) as a DataFrame, oldest first."""
    return records_to_frame(snapshot.history, snapshot.water_goal_ml)


def records_to_frame(records: Sequence[DayRecord], goal_ml: int) -> pd.DataFrame:
    """Convert day records to DataFrame with a goal percentage column."""
    rows = [
        {
            "date": parse_date_key(r.date),
            "steps": r.steps,
            "water_ml": r.water,
            "percent_of_goal": percent_of_goal(r.water, goal_ml),
        }
        for r in records
    ]
    if not rows:
        return pd.DataFrame(columns=HISTORY_COLUMNS)
    df = pd.DataFrame(rows)
    return df.sort_values("date").reset_index(drop=True)[HISTORY_COLUMNS]


def summarize_history(frame: pd.DataFrame, goal_ml: int) -> HistorySummary:
    """Totals, averages (2 decimals) and days at or above goal."""
    if frame.empty:
        return HistorySummary(0, 0, 0.0, 0, 0.0, 0)
    steps = pd.to_numeric(frame["steps"], errors="coerce").fillna(0)
    water = pd.to_numeric(frame["water_ml"], errors="coerce").fillna(0)
    return HistorySummary(
        days=len(frame),
        total_steps=int(steps.sum()),
        avg_steps=round(float(steps.mean()), 2),
        total_water_ml=int(water.sum()),
        avg_water_ml=round(float(water.mean()), 2),
        days_goal_met=int((water >= goal_ml).sum()),
    )


def display_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Prepare a string-renderable DataFrame for aligned preview."""
    if df.empty:
        return df.copy()
    out = df.copy()
    for col in out.columns:
        out[col] = out[col].map(_format_preview_value)
    return out.rename(
        columns={
            "date": "Fecha",
            "steps": "Pasos",
            "water_ml": "Agua (ml)",
            "percent_of_goal": "Meta %",
        }
    )


def _format_preview_value(value: object) -> str:
    """Format preview values without NaN/scientific notation."""
    if value is None or pd.isna(value):
        return ""
    if isinstance(value, pd.Timestamp):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        text = format(value, "f").rstrip("0").rstrip(".")
        return text if text else "0"
    return str(value)
