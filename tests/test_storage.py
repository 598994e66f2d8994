from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path

from conftest import FixedClock

from actividad_tool.engine import DailyTrackingEngine
from actividad_tool.model import DayRecord, TrackingState
from actividad_tool.report import history_frame
from actividad_tool.storage import AppConfig, SQLiteStore, parse_history_lines


def test_store_config_roundtrip(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    config = AppConfig(
        reminders_enabled=True,
        reminder_interval_minutes=90,
        water_presets=[200, 330],
        step_threshold_g=0.3,
        timezone="America/Argentina/Buenos_Aires",
        export_dir="/data/out",
        sensor_log_path="/data/motion.csv",
    )
    store.save_config(config)
    loaded = store.load_config()
    assert loaded == config


def test_store_config_defaults_and_bad_values(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    assert store.load_config() == AppConfig()

    with store._connect() as conn:
        conn.executemany(
            "INSERT INTO app_config(key, value) VALUES(?, ?)",
            [
                ("reminders_enabled", "maybe"),
                ("reminder_interval_minutes", "-5"),
                ("water_presets", "not json"),
                ("baseline_alpha", "nan"),
                ("reminder_end_hour", "30"),
            ],
        )
        conn.commit()
    loaded = store.load_config()
    assert loaded.reminders_enabled is False
    assert loaded.reminder_interval_minutes == 120
    assert loaded.water_presets == [150, 250]
    assert loaded.baseline_alpha == 0.02
    assert loaded.reminder_end_hour == 22


def test_state_roundtrip_uses_camel_case_blob(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    state = TrackingState(
        current_date="2024-01-03",
        steps_today=812,
        water_today=1250,
        water_goal_ml=2500,
        history=[DayRecord("2024-01-02", 4000, 1800)],
        baseline_step_count=15234.0,
    )
    store.save_state(state)

    blob = json.loads(store.read_blob() or "{}")
    assert blob["currentDate"] == "2024-01-03"
    assert blob["history"] == [{"date": "2024-01-02", "steps": 4000, "water": 1800}]
    assert store.load_state("2024-01-03") == state


def test_load_state_missing_is_fresh(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    assert store.load_state("2024-05-01") == TrackingState.fresh("2024-05-01")


def test_load_state_malformed_falls_back(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    for blob in ["{not json", "[]", '{"history": "oops"}', '{"stepsToday": "x"}']:
        store.write_blob(blob)
        assert store.load_state("2024-05-01") == TrackingState.fresh("2024-05-01")


def test_load_state_normalizes_history(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    history = [
        {"date": f"2024-01-{day:02d}", "steps": day, "water": 10}
        for day in range(1, 10)
    ]
    history.append({"date": "2024-01-10", "steps": 1, "water": 1})
    store.write_blob(
        json.dumps(
            {
                "currentDate": "2024-01-10",
                "stepsToday": -4,
                "waterGoalMl": 99999,
                "history": history,
            }
        )
    )
    state = store.load_state("2024-01-10")
    assert len(state.history) == 7
    assert state.history[0].date == "2024-01-03"
    assert all(r.date != "2024-01-10" for r in state.history)
    assert state.steps_today == 0
    assert state.water_goal_ml == 2000
    assert state.baseline_step_count == -1.0


def test_parse_history_lines_skips_garbage() -> None:
    text = "2024-01-01,100,250\n\nbad line\n2024-01-02,x,3\n2024-01-01,150,300\n"
    assert parse_history_lines(text) == [DayRecord("2024-01-01", 150, 300)]


def test_import_legacy_log_merges_without_today(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    store.save_state(
        TrackingState(
            current_date="2024-01-05",
            water_today=300,
            history=[DayRecord("2024-01-03", 10, 20)],
        )
    )
    added = store.import_legacy_log(
        "2024-01-02,500,1000\n2024-01-03,999,999\n2024-01-05,1,1\n", "2024-01-05"
    )
    assert added == 1
    state = store.load_state("2024-01-05")
    assert state.history == [
        DayRecord("2024-01-02", 500, 1000),
        DayRecord("2024-01-03", 10, 20),
    ]
    assert state.water_today == 300
    assert store.import_legacy_log("2024-01-02,1,1", "2024-01-05") == 0


def test_load_state_drops_invalid_dates(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    store.write_blob(
        json.dumps(
            {
                "currentDate": "not-a-day",
                "waterToday": 400,
                "history": [
                    {"date": "garbage", "steps": 1, "water": 1},
                    {"date": 20240101, "steps": 1, "water": 1},
                    {"date": "2024-1-3", "steps": 30, "water": 300},
                ],
            }
        )
    )
    state = store.load_state("2024-01-05")
    assert state.current_date == "2024-01-05"
    assert state.water_today == 400
    assert state.history == [DayRecord("2024-01-03", 30, 300)]


def test_bad_stored_dates_do_not_break_rendering(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    store.write_blob(
        json.dumps(
            {
                "currentDate": "2024-01-01",
                "history": [{"date": "garbage", "steps": 5, "water": 5}],
            }
        )
    )
    assert store.import_legacy_log("foo,10,20\n2023-13-01,1,1\n", "2024-01-01") == 0

    engine = DailyTrackingEngine(store, FixedClock(datetime(2024, 1, 1, 9, 0)))
    frame = history_frame(engine.refresh())
    assert list(frame["date"]) == [date(2024, 1, 1)]


def test_parse_history_lines_skips_bad_day_keys() -> None:
    text = "foo,10,20\n2024-02-30,1,1\n2024-1-2,5,6\n"
    assert parse_history_lines(text) == [DayRecord("2024-01-02", 5, 6)]
