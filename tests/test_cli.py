"""Tests for CLI entrypoints."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest
from conftest import FixedClock

from actividad_tool import cli
from actividad_tool.storage import SQLiteStore


@pytest.fixture
def run(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> tuple[FixedClock, Callable[..., int]]:
    clock = FixedClock(datetime(2024, 1, 1, 10, 0))
    monkeypatch.setattr(cli, "SystemClock", lambda _tz: clock)
    monkeypatch.setattr(cli, "setup_logging", lambda _dir: _dir / "x.log")
    db = tmp_path / "app.sqlite3"

    def _run(*args: str) -> int:
        monkeypatch.setattr(
            "sys.argv",
            ["prog", "--db", str(db), "--log-dir", str(tmp_path / "logs"), *args],
        )
        return cli.main()

    return clock, _run


def test_parse_args_custom_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "sys.argv",
        [
            "prog",
            "--db",
            "/tmp/x.sqlite3",
            "--tz",
            "UTC",
            "pasos",
            "--counter",
            "c.csv",
        ],
    )
    ns = cli.parse_args()
    assert ns.db == "/tmp/x.sqlite3"
    assert ns.tz == "UTC"
    assert ns.command == "pasos"
    assert ns.counter == "c.csv"
    assert ns.motion is None


def test_parse_args_requires_command(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.argv", ["prog"])
    with pytest.raises(SystemExit):
        cli.parse_args()


def test_water_and_status(
    run: tuple[FixedClock, Callable[..., int]],
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _, main = run
    assert main("agua", "250") == 0
    assert main("agua", "250") == 0
    out = capsys.readouterr().out
    assert "OK: +250 ml" in out
    assert "Agua: 500 / 2000 ml (25%)" in out

    state = SQLiteStore(tmp_path / "app.sqlite3").load_state("2024-01-01")
    assert state.water_today == 500


def test_goal_out_of_range_exits_with_error(
    run: tuple[FixedClock, Callable[..., int]], capsys: pytest.CaptureFixture[str]
) -> None:
    _, main = run
    assert main("meta", "499") == cli.EXIT_INVALID
    assert "Error:" in capsys.readouterr().out
    assert main("meta", "3000") == 0
    assert "Agua: 0 / 3000 ml (0%)" in capsys.readouterr().out


def test_status_after_midnight_shows_rollover(
    run: tuple[FixedClock, Callable[..., int]], capsys: pytest.CaptureFixture[str]
) -> None:
    clock, main = run
    main("agua", "2000")
    clock.advance(days=1)
    capsys.readouterr()

    assert main("estado") == 0
    out = capsys.readouterr().out
    assert "Fecha: 2024-01-02" in out
    assert "01/01/2024" in out
    assert "meta cumplida 1 días" in out


def test_counter_replay(
    run: tuple[FixedClock, Callable[..., int]],
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _, main = run
    csv = tmp_path / "counter.csv"
    pd.DataFrame({"total": [500, 640, 700]}).to_csv(csv, index=False)

    assert main("pasos", "--counter", str(csv)) == 0
    out = capsys.readouterr().out
    assert "pasos de hoy: 200" in out
    assert "Pasos: 200" in out


def test_motion_replay(
    run: tuple[FixedClock, Callable[..., int]],
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _, main = run
    csv = tmp_path / "motion.csv"
    pd.DataFrame(
        {
            "timestamp_ms": [0, 1000, 1500, 2000],
            "ax": [0.0, 0.0, 0.0, 0.0],
            "ay": [0.0, 0.0, 0.0, 0.0],
            "az": [9.81, 13.734, 9.81, 13.734],
        }
    ).to_csv(csv, index=False)

    assert main("pasos", "--motion", str(csv)) == 0
    assert "4 muestras, 2 pasos detectados" in capsys.readouterr().out


def test_missing_sensor_log_propagates(
    run: tuple[FixedClock, Callable[..., int]], tmp_path: Path
) -> None:
    _, main = run
    with pytest.raises(FileNotFoundError):
        main("pasos", "--counter", str(tmp_path / "nope.csv"))


def test_export_writes_timestamped_xlsx(
    run: tuple[FixedClock, Callable[..., int]],
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _, main = run
    main("agua", "750")
    out_dir = tmp_path / "salidas"

    assert main("exportar", "--out-dir", str(out_dir)) == 0
    files = list(out_dir.glob("*.xlsx"))
    assert [f.name for f in files] == ["historial_actividad_2024-01-01_10-00-00.xlsx"]
    assert "OK: Output:" in capsys.readouterr().out


def test_import_legacy_log(
    run: tuple[FixedClock, Callable[..., int]],
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _, main = run
    log = tmp_path / "history.txt"
    log.write_text("2023-12-30,4000,1500\n2023-12-31,6000,2100\n", encoding="utf-8")

    assert main("importar-log", str(log)) == 0
    out = capsys.readouterr().out
    assert "OK: 2 días importados" in out
    assert "Historial: 3 días" in out
