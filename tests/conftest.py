from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from actividad_tool.engine import DailyTrackingEngine
from actividad_tool.storage import SQLiteStore


class FixedClock:
    """Manually advanced clock."""

    def __init__(self, moment: datetime) -> None:
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, **kwargs: float) -> None:
        self.moment = self.moment + timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 1, 12, 0))


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(tmp_path / "app.sqlite3")


@pytest.fixture
def engine(store: SQLiteStore, clock: FixedClock) -> DailyTrackingEngine:
    return DailyTrackingEngine(store, clock)
