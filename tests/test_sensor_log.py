"""Tests for CSV sensor log reading and replay."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from actividad_tool.engine import DailyTrackingEngine
from actividad_tool.sources.hardware_counter import HardwareCounterSource
from actividad_tool.sources.motion import MotionHeuristicSource
from actividad_tool.sources.sensor_log import (
    _find_col,
    load_counter_log,
    load_motion_log,
    replay_counter,
    replay_motion,
)


def _write_csv(path: Path, data: dict[str, list[object]]) -> None:
    pd.DataFrame(data).to_csv(path, index=False)


def test_find_col_matches_aliases() -> None:
    cols = ["time", "accel_x", "accel_y", "accel_z"]
    assert _find_col(cols, [r"^timestamp", r"^time"]) == "time"
    assert _find_col(cols, [r"^ax$", r"accel_?x"]) == "accel_x"
    assert _find_col(cols, [r"\bunknown\b"]) is None


def test_load_motion_log_normalizes_columns(tmp_path: Path) -> None:
    csv = tmp_path / "motion.csv"
    _write_csv(
        csv,
        {
            " Timestamp_ms ": [2000, 1000, None],
            "X": [0.1, 0.2, 0.3],
            "Y": [0.0, "bad", 0.0],
            "Z": [9.8, 13.7, 9.8],
        },
    )
    df = load_motion_log(csv)
    assert list(df.columns) == ["timestamp_ms", "ax", "ay", "az"]
    assert list(df["timestamp_ms"]) == [1000.0, 2000.0]
    assert pd.isna(df.loc[0, "ay"])


def test_load_motion_log_missing_axis_is_nan(tmp_path: Path) -> None:
    csv = tmp_path / "motion.csv"
    _write_csv(csv, {"timestamp_ms": [0, 10], "az": [9.81, 9.81]})
    df = load_motion_log(csv)
    assert df["ax"].isna().all()
    assert df["ay"].isna().all()


def test_load_motion_log_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_motion_log(tmp_path / "missing.csv")
    csv = tmp_path / "bad.csv"
    _write_csv(csv, {"ax": [1.0], "ay": [1.0], "az": [1.0]})
    with pytest.raises(ValueError):
        load_motion_log(csv)


def test_replay_motion_counts_steps(
    tmp_path: Path, engine: DailyTrackingEngine
) -> None:
    csv = tmp_path / "walk.csv"
    timestamps = [0, 1000, 1500, 2000, 2500, 3000, 3100]
    magnitudes = [1.0, 1.4, 1.0, 1.4, 1.0, 1.4, 1.4]
    _write_csv(
        csv,
        {
            "timestamp_ms": timestamps,
            "ax": [0.0] * len(timestamps),
            "ay": [None] * len(timestamps),
            "az": [g * 9.81 for g in magnitudes],
        },
    )
    source = MotionHeuristicSource(engine)
    events = replay_motion(source, load_motion_log(csv))
    assert events == 3
    assert engine.snapshot().steps_today == 3


def test_replay_motion_empty_frame(engine: DailyTrackingEngine) -> None:
    source = MotionHeuristicSource(engine)
    assert replay_motion(source, pd.DataFrame(columns=["timestamp_ms"])) == 0
    assert not source.running


def test_load_and_replay_counter(tmp_path: Path, engine: DailyTrackingEngine) -> None:
    csv = tmp_path / "counter.csv"
    _write_csv(csv, {"total": [8000, 8000, "x", 8120, 8120]})
    frame = load_counter_log(csv)
    assert list(frame["total"]) == [8000.0, 8000.0, 8120.0, 8120.0]

    steps = replay_counter(HardwareCounterSource(engine), frame)
    assert steps == 120
    assert engine.snapshot().steps_today == 120


def test_load_counter_log_without_total_column(tmp_path: Path) -> None:
    csv = tmp_path / "counter.csv"
    _write_csv(csv, {"foo": [1, 2]})
    with pytest.raises(ValueError):
        load_counter_log(csv)
