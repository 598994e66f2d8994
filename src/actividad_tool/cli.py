"""CLI para registrar agua, pasos y consultar/exportar el historial."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from actividad_tool.clock import SystemClock
from actividad_tool.engine import DailyTrackingEngine, WaterGoalError
from actividad_tool.excel_writer import ExcelLayout, write_history_xlsx
from actividad_tool.logging_setup import setup_logging
from actividad_tool.report import display_frame, history_frame, summarize_history
from actividad_tool.sources.hardware_counter import HardwareCounterSource
from actividad_tool.sources.motion import MotionConfig, MotionHeuristicSource
from actividad_tool.sources.sensor_log import (
    load_counter_log,
    load_motion_log,
    replay_counter,
    replay_motion,
)
from actividad_tool.storage import AppConfig, SQLiteStore

logger = logging.getLogger(__name__)

EXIT_INVALID = 2


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        description="Registro diario de pasos y agua con historial de 7 días."
    )
    parser.add_argument(
        "--db",
        default=str(Path.cwd() / "actividad_tool.sqlite3"),
        help="Base SQLite (default: ./actividad_tool.sqlite3).",
    )
    parser.add_argument(
        "--tz",
        default=None,
        help="Zona horaria para el cambio de día (default: configuración o local).",
    )
    parser.add_argument(
        "--log-dir",
        default=str(Path.cwd() / "logs"),
        help="Directorio de logs (default: ./logs).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("estado", help="Muestra el día actual y el historial.")

    agua = sub.add_parser("agua", help="Registra agua (ml).")
    agua.add_argument("ml", type=int)

    meta = sub.add_parser("meta", help="Cambia la meta diaria (500-6000 ml).")
    meta.add_argument("ml", type=int)

    pasos = sub.add_parser("pasos", help="Reproduce un registro CSV de sensor.")
    group = pasos.add_mutually_exclusive_group(required=True)
    group.add_argument("--motion", help="CSV de acelerómetro (timestamp_ms,ax,ay,az).")
    group.add_argument("--counter", help="CSV del contador de pasos (total).")

    exportar = sub.add_parser("exportar", help="Exporta el historial a Excel.")
    exportar.add_argument("--out-dir", default=None)

    importar = sub.add_parser(
        "importar-log", help="Importa un log 'fecha,pasos,agua' por línea."
    )
    importar.add_argument("path")
    return parser.parse_args()


def main() -> int:
    """Run the tracker CLI.

    Returns:
        Exit code (0 on success, 2 on invalid input).
    """
    ns = parse_args()
    setup_logging(Path(ns.log_dir).expanduser())

    store = SQLiteStore(Path(ns.db).expanduser())
    config = store.load_config()
    clock = SystemClock(ns.tz if ns.tz is not None else config.timezone)
    engine = DailyTrackingEngine(store, clock)

    if ns.command == "agua":
        engine.add_water(ns.ml)
        print(f"OK: +{ns.ml} ml")
    elif ns.command == "meta":
        try:
            engine.set_water_goal(ns.ml)
        except WaterGoalError as exc:
            print(f"Error: {exc}")
            return EXIT_INVALID
        print(f"OK: Meta {ns.ml} ml")
    elif ns.command == "pasos":
        _replay(ns, engine, config)
    elif ns.command == "exportar":
        return _export(ns, engine, config, clock)
    elif ns.command == "importar-log":
        text = Path(ns.path).expanduser().read_text(encoding="utf-8")
        added = store.import_legacy_log(text, engine.current_date)
        engine = DailyTrackingEngine(store, clock)
        print(f"OK: {added} días importados")

    _print_status(engine)
    return 0


def _replay(
    ns: argparse.Namespace, engine: DailyTrackingEngine, config: AppConfig
) -> None:
    if ns.motion:
        frame = load_motion_log(Path(ns.motion).expanduser())
        source = MotionHeuristicSource(engine, MotionConfig.from_app_config(config))
        events = replay_motion(source, frame)
        print(f"OK: {len(frame)} muestras, {events} pasos detectados")
    else:
        counter_frame = load_counter_log(Path(ns.counter).expanduser())
        counter = HardwareCounterSource(engine)
        steps = replay_counter(counter, counter_frame)
        print(f"OK: {len(counter_frame)} lecturas, pasos de hoy: {steps}")


def _export(
    ns: argparse.Namespace,
    engine: DailyTrackingEngine,
    config: AppConfig,
    clock: SystemClock,
) -> int:
    frame = history_frame(engine.refresh())
    if ns.out_dir:
        out_dir = Path(ns.out_dir).expanduser()
    elif config.export_dir:
        out_dir = Path(config.export_dir).expanduser()
    else:
        out_dir = Path.cwd() / "salidas"
    ts = clock.now().strftime("%Y-%m-%d_%H-%M-%S")
    out_path = out_dir / f"historial_actividad_{ts}.xlsx"
    write_history_xlsx(frame, out_path, ExcelLayout())
    logger.info("History exported to %s", out_path)
    print(f"OK: Output: {out_path}")
    return 0


def _print_status(engine: DailyTrackingEngine) -> None:
    snap = engine.refresh()
    frame = history_frame(snap)
    summary = summarize_history(frame, snap.water_goal_ml)
    print(f"Fecha: {snap.current_date}")
    print(f"Pasos: {snap.steps_today}")
    print(
        f"Agua: {snap.water_today} / {snap.water_goal_ml} ml "
        f"({snap.percent_of_goal}%)"
    )
    print(
        f"Historial: {summary.days} días, promedio {summary.avg_steps:g} pasos, "
        f"{summary.avg_water_ml:g} ml; meta cumplida {summary.days_goal_met} días"
    )
    print(display_frame(frame).to_string(index=False))
