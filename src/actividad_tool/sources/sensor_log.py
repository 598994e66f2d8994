"""Lectura y reproduccion de registros de sensores en CSV."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import pandas as pd

from actividad_tool.sources.hardware_counter import HardwareCounterSource
from actividad_tool.sources.motion import MotionHeuristicSource

MOTION_COLUMNS = ["timestamp_ms", "ax", "ay", "az"]

_MOTION_PATTERNS: dict[str, list[str]] = {
    "timestamp_ms": [r"^timestamp", r"^time", r"^ts\b", r"^t$"],
    "ax": [r"^ax$", r"^x$", r"accel_?x", r"\bx\b"],
    "ay": [r"^ay$", r"^y$", r"accel_?y", r"\by\b"],
    "az": [r"^az$", r"^z$", r"accel_?z", r"\bz\b"],
}
_COUNTER_PATTERNS = [r"^total", r"^steps?_since_boot", r"^steps?$", r"^value$"]


def load_motion_log(path: Path) -> pd.DataFrame:
    """Load an accelerometer log.

    Returns DataFrame columns:
        timestamp_ms, ax, ay, az (axes in m/s2, NaN for missing values)

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If no timestamp column can be found.
    """
    df = _read_csv(path)
    cols = list(df.columns)
    mapping = {
        name: _find_col(cols, patterns) for name, patterns in _MOTION_PATTERNS.items()
    }
    if mapping["timestamp_ms"] is None:
        raise ValueError(f"No timestamp column in {path}")

    out = pd.DataFrame(
        {
            name: (
                pd.to_numeric(df[col], errors="coerce")
                if col is not None
                else pd.Series([float("nan")] * len(df), dtype="float64")
            )
            for name, col in mapping.items()
        }
    )
    out = out.dropna(subset=["timestamp_ms"])
    return out[MOTION_COLUMNS].sort_values("timestamp_ms").reset_index(drop=True)


def load_counter_log(path: Path) -> pd.DataFrame:
    """Load a hardware step counter log (one cumulative total per row).

    Returns DataFrame columns:
        total

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If no total column can be found.
    """
    df = _read_csv(path)
    col = _find_col(list(df.columns), _COUNTER_PATTERNS)
    if col is None:
        raise ValueError(f"No step total column in {path}")
    totals = pd.to_numeric(df[col], errors="coerce").dropna()
    return pd.DataFrame({"total": totals.astype("float64")}).reset_index(drop=True)


def replay_motion(source: MotionHeuristicSource, frame: pd.DataFrame) -> int:
    """Feed a motion log through the detector; returns step events."""
    if frame.empty:
        return 0
    if not source.running:
        source.start(float(frame["timestamp_ms"].iloc[0]))
    events = 0
    for row in frame.itertuples(index=False):
        if source.on_sample(
            _none_if_nan(row.ax),
            _none_if_nan(row.ay),
            _none_if_nan(row.az),
            float(row.timestamp_ms),
        ):
            events += 1
    return events


def replay_counter(source: HardwareCounterSource, frame: pd.DataFrame) -> int | None:
    """Feed counter totals; returns the last reported step count."""
    if not source.running:
        source.start(0.0)
    last: int | None = None
    for total in frame["total"]:
        reported = source.on_total(float(total))
        if reported is not None:
            last = reported
    return last


def _read_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(str(path))
    df = pd.read_csv(path)
    return df.rename(columns={c: str(c).strip().lower() for c in df.columns})


def _find_col(columns: list[str], patterns: list[str]) -> str | None:
    for pat in patterns:
        rx = re.compile(pat, re.IGNORECASE)
        for c in columns:
            if rx.search(c):
                return c
    return None


def _none_if_nan(value: Any) -> float | None:
    if value is None or pd.isna(value):
        return None
    return float(value)
