"""Persistencia SQLite para configuracion y estado diario."""

from __future__ import annotations

import json
import logging
import math
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from actividad_tool.model import (
    HISTORY_MAX_DAYS,
    WATER_GOAL_MAX_ML,
    DayRecord,
    TrackingState,
    normalize_date_key,
)

logger = logging.getLogger(__name__)

STATE_KEY = "swt_state_v1"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS app_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT
);
"""


@dataclass(frozen=True)
class AppConfig:
    """Configuracion persistida de la app."""

    reminders_enabled: bool = False
    reminder_interval_minutes: int = 120
    reminder_start_hour: int = 8
    reminder_end_hour: int = 22
    water_presets: list[int] = field(default_factory=lambda: [150, 250])
    step_threshold_g: float = 0.28
    step_min_interval_ms: int = 450
    baseline_alpha: float = 0.02
    timezone: str = ""
    export_dir: str = ""
    sensor_log_path: str = ""


class StateStore(ABC):
    """Single JSON blob holding the tracking state."""

    @abstractmethod
    def read_blob(self) -> str | None:
        """Return the stored blob, or None when nothing was saved yet."""

    @abstractmethod
    def write_blob(self, text: str) -> None:
        """Replace the stored blob.

        Raises:
            OSError | sqlite3.Error: If the backend cannot write.
        """

    def load_state(self, today: str) -> TrackingState:
        """Load state, falling back to a fresh day on any bad content."""
        try:
            raw = self.read_blob()
        except (OSError, sqlite3.Error) as exc:
            logger.warning("Could not read stored state: %s", exc)
            return TrackingState.fresh(today)
        if not raw:
            return TrackingState.fresh(today)
        try:
            return TrackingState.from_dict(json.loads(raw), today)
        except (json.JSONDecodeError, ValueError) as exc:
            logger.warning("Discarding malformed stored state: %s", exc)
            return TrackingState.fresh(today)

    def save_state(self, state: TrackingState) -> None:
        self.write_blob(json.dumps(state.to_dict(), ensure_ascii=True))


class SQLiteStore(StateStore):
    """Repositorio SQLite para la app."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            self._migrate(conn)
            conn.commit()

    def _migrate(self, conn: sqlite3.Connection) -> None:
        """Apply lightweight schema migrations."""
        cols = {row["name"] for row in conn.execute("PRAGMA table_info(app_state)")}
        if "updated_at" not in cols:
            conn.execute("ALTER TABLE app_state ADD COLUMN updated_at TEXT")

    def read_blob(self) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM app_state WHERE key = ?", (STATE_KEY,)
            ).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def write_blob(self, text: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO app_state(key, value, updated_at)
                VALUES(?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    updated_at=excluded.updated_at
                """,
                (STATE_KEY, text),
            )
            conn.commit()

    def import_legacy_log(self, text: str, today: str) -> int:
        """Merge ``date,steps,water`` lines into the stored history.

        Days already archived keep their stored values and the current day
        is never archived. Returns how many records were added.
        """
        state = self.load_state(today)
        known = {record.date for record in state.history}
        incoming = [
            record
            for record in parse_history_lines(text)
            if record.date not in known and record.date != state.current_date
        ]
        if not incoming:
            return 0
        merged = sorted([*state.history, *incoming], key=lambda r: r.date)
        state.history = merged[-HISTORY_MAX_DAYS:]
        self.save_state(state)
        return len(incoming)

    def load_config(self) -> AppConfig:
        """Devuelve configuracion guardada o defaults."""
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        values = {row["key"]: row["value"] for row in rows}
        defaults = AppConfig()
        return AppConfig(
            reminders_enabled=_parse_bool(
                values.get("reminders_enabled"), defaults.reminders_enabled
            ),
            reminder_interval_minutes=_parse_number(
                values.get("reminder_interval_minutes"),
                defaults.reminder_interval_minutes,
                int,
                minimum=1,
            ),
            reminder_start_hour=_parse_number(
                values.get("reminder_start_hour"),
                defaults.reminder_start_hour,
                int,
                minimum=0,
                maximum=23,
            ),
            reminder_end_hour=_parse_number(
                values.get("reminder_end_hour"),
                defaults.reminder_end_hour,
                int,
                minimum=1,
                maximum=24,
            ),
            water_presets=_parse_presets(values.get("water_presets")),
            step_threshold_g=_parse_number(
                values.get("step_threshold_g"),
                defaults.step_threshold_g,
                float,
                minimum=0.01,
            ),
            step_min_interval_ms=_parse_number(
                values.get("step_min_interval_ms"),
                defaults.step_min_interval_ms,
                int,
                minimum=0,
            ),
            baseline_alpha=_parse_number(
                values.get("baseline_alpha"),
                defaults.baseline_alpha,
                float,
                minimum=0.0001,
                maximum=1.0,
            ),
            timezone=values.get("timezone", defaults.timezone),
            export_dir=values.get("export_dir", defaults.export_dir),
            sensor_log_path=values.get("sensor_log_path", defaults.sensor_log_path),
        )

    def save_config(self, config: AppConfig) -> None:
        """Guarda la configuracion en tabla key/value."""
        payload = {
            "reminders_enabled": json.dumps(config.reminders_enabled),
            "reminder_interval_minutes": str(config.reminder_interval_minutes),
            "reminder_start_hour": str(config.reminder_start_hour),
            "reminder_end_hour": str(config.reminder_end_hour),
            "water_presets": json.dumps(config.water_presets),
            "step_threshold_g": str(config.step_threshold_g),
            "step_min_interval_ms": str(config.step_min_interval_ms),
            "baseline_alpha": str(config.baseline_alpha),
            "timezone": config.timezone,
            "export_dir": config.export_dir,
            "sensor_log_path": config.sensor_log_path,
        }
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload.items(),
            )
            conn.commit()


def parse_history_lines(text: str) -> list[DayRecord]:
    """Parse the delimited ``date,steps,water`` log of the mobile shell.

    Blank and malformed lines, bad day keys included, are skipped; the last
    line for a date wins.
    """
    by_date: dict[str, DayRecord] = {}
    for line in text.splitlines():
        parts = [part.strip() for part in line.split(",")]
        if len(parts) < 3 or not parts[0]:
            continue
        try:
            record = DayRecord(
                date=normalize_date_key(parts[0]),
                steps=max(0, int(float(parts[1]))),
                water=max(0, int(float(parts[2]))),
            )
        except ValueError:
            continue
        by_date[record.date] = record
    return list(by_date.values())


def _parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError:
        return default
    return parsed if isinstance(parsed, bool) else default


def _parse_number(
    raw: str | None,
    default: Any,
    kind: type,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> Any:
    if raw is None:
        return default
    try:
        value = kind(float(raw))
    except (ValueError, OverflowError):
        return default
    if not math.isfinite(value):
        return default
    if minimum is not None and value < minimum:
        return default
    if maximum is not None and value > maximum:
        return default
    return value


def _parse_presets(raw: str | None) -> list[int]:
    default = AppConfig().water_presets
    if raw is None:
        return default
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError:
        return default
    if not isinstance(parsed, list):
        return default
    out = [
        int(item)
        for item in parsed
        if isinstance(item, int | float)
        and not isinstance(item, bool)
        and 0 < item <= WATER_GOAL_MAX_ML
    ]
    return out or default
