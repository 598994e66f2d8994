"""App Kivy: pasos, agua, recordatorios e historial con persistencia SQLite."""

from __future__ import annotations

import logging
import time
import traceback
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import pandas as pd

from actividad_tool.clock import SystemClock
from actividad_tool.engine import DailyTrackingEngine, WaterGoalError
from actividad_tool.excel_writer import ExcelLayout, write_history_xlsx
from actividad_tool.logging_setup import setup_logging
from actividad_tool.model import WATER_GOAL_MAX_ML, WATER_GOAL_MIN_ML, Snapshot
from actividad_tool.reminders import (
    QUICK_LOG_ML,
    InAppOnlyNotifier,
    ReminderScheduler,
)
from actividad_tool.report import display_frame, history_frame
from actividad_tool.sources.base import SensorStatus
from actividad_tool.sources.motion import MotionConfig, MotionHeuristicSource
from actividad_tool.sources.sensor_log import load_motion_log
from actividad_tool.storage import SQLiteStore

logger = logging.getLogger(__name__)

SENSOR_RATE_HZ = 60
DAY_POLL_SECONDS = 60


def run_app() -> int:
    """Lanza la app Kivy."""
    from kivy.app import App
    from kivy.clock import Clock
    from kivy.core.window import Window
    from kivy.resources import resource_find
    from kivy.uix.boxlayout import BoxLayout
    from kivy.uix.button import Button
    from kivy.uix.checkbox import CheckBox
    from kivy.uix.filechooser import FileChooserListView
    from kivy.uix.label import Label
    from kivy.uix.popup import Popup
    from kivy.uix.progressbar import ProgressBar
    from kivy.uix.textinput import TextInput

    setup_logging(Path.cwd() / "logs")

    def schedule_interval(callback: Callable[[], None], seconds: float) -> object:
        return Clock.schedule_interval(lambda _dt: callback(), seconds)

    class ActividadToolApp(App):
        """Main Kivy app."""

        def __init__(self, **kwargs: object) -> None:
            super().__init__(**kwargs)
            self.store = SQLiteStore(Path.cwd() / "actividad_tool.sqlite3")
            self.app_config = self.store.load_config()
            self.clock = SystemClock(self.app_config.timezone)
            self.engine = DailyTrackingEngine(self.store, self.clock)
            self.motion = MotionHeuristicSource(
                self.engine, MotionConfig.from_app_config(self.app_config)
            )
            self.reminders = self._build_reminders()
            self.reminder_popup: Popup | None = None
            self._samples = pd.DataFrame()
            self._sample_pos = 0
            self._playback: Any = None

            self.steps_label: Label | None = None
            self.sensor_label: Label | None = None
            self.track_btn: Button | None = None
            self.water_label: Label | None = None
            self.water_bar: ProgressBar | None = None
            self.goal_input: TextInput | None = None
            self.reminder_check: CheckBox | None = None
            self.reminder_label: Label | None = None
            self.preview: TextInput | None = None
            self.status: Label | None = None
            self._preview_font = resource_find("data/fonts/RobotoMono-Regular.ttf")

        def build(self) -> BoxLayout:
            Window.bind(on_key_down=self._on_key_down)

            root = BoxLayout(orientation="vertical", spacing=8, padding=10)
            root.add_widget(
                Label(
                    text="Pasos y agua: registro diario con recordatorios.",
                    size_hint_y=None,
                    height=36,
                )
            )

            steps_row = BoxLayout(orientation="horizontal", size_hint_y=None, height=40)
            self.steps_label = Label(text="0 pasos hoy")
            self.sensor_label = Label(text=SensorStatus.IDLE.status_text())
            self.track_btn = Button(text="Iniciar registro", size_hint_x=0.35)
            self.track_btn.bind(on_press=self._on_toggle_tracking)
            steps_row.add_widget(self.steps_label)
            steps_row.add_widget(self.sensor_label)
            steps_row.add_widget(self.track_btn)
            root.add_widget(steps_row)

            self.water_label = Label(text="", size_hint_y=None, height=30)
            root.add_widget(self.water_label)
            self.water_bar = ProgressBar(max=100, value=0, size_hint_y=None, height=20)
            root.add_widget(self.water_bar)

            presets = BoxLayout(
                orientation="horizontal", spacing=8, size_hint_y=None, height=40
            )
            for amount in self.app_config.water_presets:
                btn = Button(text=f"+{amount} ml")
                btn.bind(on_press=lambda _btn, ml=amount: self.engine.add_water(ml))
                presets.add_widget(btn)
            root.add_widget(presets)

            goal_row = BoxLayout(orientation="horizontal", size_hint_y=None, height=36)
            goal_row.add_widget(Label(text="Meta (ml)", size_hint_x=0.3))
            self.goal_input = TextInput(multiline=False, input_filter="int")
            goal_row.add_widget(self.goal_input)
            goal_btn = Button(text="Guardar meta", size_hint_x=0.3)
            goal_btn.bind(on_press=self._on_save_goal)
            goal_row.add_widget(goal_btn)
            root.add_widget(goal_row)

            reminder_row = BoxLayout(
                orientation="horizontal", size_hint_y=None, height=36
            )
            self.reminder_check = CheckBox(
                active=self.app_config.reminders_enabled, size_hint_x=0.15
            )
            self.reminder_check.bind(active=self._on_reminder_toggle)
            self.reminder_label = Label(text=self.reminders.status_text())
            reminder_row.add_widget(self.reminder_check)
            reminder_row.add_widget(self.reminder_label)
            root.add_widget(reminder_row)

            actions = BoxLayout(
                orientation="horizontal", spacing=8, size_hint_y=None, height=40
            )
            settings_btn = Button(text="Configuracion")
            export_btn = Button(text="Exportar Excel")
            exit_btn = Button(text="Salir")
            settings_btn.bind(on_press=self._open_config_popup)
            export_btn.bind(on_press=self._on_export)
            exit_btn.bind(on_press=lambda *_args: self.stop())
            actions.add_widget(settings_btn)
            actions.add_widget(export_btn)
            actions.add_widget(exit_btn)
            root.add_widget(actions)

            self.status = Label(text="", size_hint_y=None, height=30)
            root.add_widget(self.status)

            self.preview = TextInput(
                readonly=True,
                text="",
                multiline=True,
                do_wrap=False,
            )
            if self._preview_font:
                self.preview.font_name = self._preview_font
            root.add_widget(self.preview)

            self.engine.subscribe(self._render)
            if self.app_config.reminders_enabled:
                self.reminders.enable()
                self._refresh_reminder_label()
            Clock.schedule_interval(self._on_day_poll, DAY_POLL_SECONDS)
            snap = self.engine.refresh()
            self._render(snap)
            if self.goal_input is not None:
                self.goal_input.text = str(snap.water_goal_ml)
            return root

        def on_stop(self) -> None:
            self._stop_tracking()
            self.reminders.disable()

        def _build_reminders(self) -> ReminderScheduler:
            config = self.app_config
            return ReminderScheduler(
                InAppOnlyNotifier(),
                schedule_interval,
                self._show_reminder_popup,
                interval_s=config.reminder_interval_minutes * 60,
                on_quick_log=self.engine.add_water,
                hide_prompt=self._hide_reminder_popup,
                clock=self.clock,
                active_hours=(config.reminder_start_hour, config.reminder_end_hour),
            )

        def _on_key_down(
            self,
            _window: object,
            keycode: int,
            _scancode: int,
            _text: str,
            _modifiers: list[str],
        ) -> bool:
            # Esc: salir de fullscreen o cerrar app.
            if keycode != 27:
                return False
            if Window.fullscreen:
                Window.fullscreen = False
            else:
                self.stop()
            return True

        def _on_day_poll(self, _dt: float) -> None:
            # The process can stay open across midnight.
            if not self.engine.ensure_rolled():
                return
            if self.status is not None:
                self.status.text = f"Nuevo día: {self.engine.current_date}"

        def _render(self, snap: Snapshot) -> None:
            if self.steps_label is not None:
                self.steps_label.text = f"{snap.steps_today} pasos hoy"
            if self.water_label is not None:
                self.water_label.text = (
                    f"{snap.water_today} ml / {snap.water_goal_ml} ml "
                    f"({snap.percent_of_goal}%)"
                )
            if self.water_bar is not None:
                self.water_bar.value = snap.percent_of_goal
            if self.preview is not None:
                frame = display_frame(history_frame(snap))
                self.preview.text = frame.to_string(index=False)

        def _on_save_goal(self, _: object) -> None:
            if self.goal_input is None or self.status is None:
                return
            try:
                self.engine.set_water_goal(int(self.goal_input.text or "0"))
            except (ValueError, WaterGoalError):
                self.status.text = (
                    f"Meta inválida: usa entre {WATER_GOAL_MIN_ML} y "
                    f"{WATER_GOAL_MAX_ML} ml."
                )
                self.goal_input.text = str(self.engine.snapshot().water_goal_ml)
                return
            self.status.text = "Meta guardada."

        def _on_toggle_tracking(self, _: object) -> None:
            if self.motion.running:
                self._stop_tracking()
                return
            path = Path(self.app_config.sensor_log_path).expanduser()
            available = bool(self.app_config.sensor_log_path) and path.exists()
            if available:
                try:
                    self._samples = load_motion_log(path)
                except (OSError, ValueError) as exc:
                    self._show_error("leer el sensor", exc)
                    available = False
            available = available and not self._samples.empty
            start_ms = (
                float(self._samples["timestamp_ms"].iloc[0])
                if available
                else time.monotonic() * 1000
            )
            status = self.motion.start(start_ms, available=available)
            if self.sensor_label is not None:
                self.sensor_label.text = status.status_text()
            if status is not SensorStatus.TRACKING:
                if self.status is not None:
                    self.status.text = (
                        "Este dispositivo no expone sensores de movimiento; "
                        "configura un registro CSV para reproducirlo."
                    )
                return
            self._sample_pos = 0
            self._playback = Clock.schedule_interval(
                self._on_sensor_tick, 1 / SENSOR_RATE_HZ
            )
            if self.track_btn is not None:
                self.track_btn.text = "Detener registro"

        def _on_sensor_tick(self, _dt: float) -> None:
            if self._sample_pos >= len(self._samples):
                self._stop_tracking()
                return
            row = self._samples.iloc[self._sample_pos]
            self._sample_pos += 1
            self.motion.on_sample(
                None if pd.isna(row["ax"]) else float(row["ax"]),
                None if pd.isna(row["ay"]) else float(row["ay"]),
                None if pd.isna(row["az"]) else float(row["az"]),
                float(row["timestamp_ms"]),
            )

        def _stop_tracking(self) -> None:
            if self._playback is not None:
                self._playback.cancel()
                self._playback = None
            self.motion.stop()
            if self.sensor_label is not None:
                self.sensor_label.text = self.motion.status.status_text()
            if self.track_btn is not None:
                self.track_btn.text = "Iniciar registro"

        def _on_reminder_toggle(self, _checkbox: object, active: bool) -> None:
            if active:
                self.reminders.enable()
            else:
                self.reminders.disable()
            self.app_config = replace(self.app_config, reminders_enabled=active)
            self.store.save_config(self.app_config)
            self._refresh_reminder_label()

        def _refresh_reminder_label(self) -> None:
            if self.reminder_label is not None:
                self.reminder_label.text = self.reminders.status_text()

        def _show_reminder_popup(self) -> None:
            if self.reminder_popup is not None:
                return
            content = BoxLayout(orientation="vertical", spacing=8, padding=8)
            content.add_widget(
                Label(text="Hora de tomar agua. ¿Registrás un vaso?")
            )
            buttons = BoxLayout(orientation="horizontal", size_hint_y=None, height=40)
            log_btn = Button(text=f"Registrar {QUICK_LOG_ML} ml")
            close_btn = Button(text="Cerrar")
            log_btn.bind(on_press=lambda *_args: self.reminders.accept_prompt())
            close_btn.bind(on_press=lambda *_args: self.reminders.dismiss_prompt())
            buttons.add_widget(log_btn)
            buttons.add_widget(close_btn)
            content.add_widget(buttons)
            self.reminder_popup = Popup(
                title="Recordatorio",
                content=content,
                size_hint=(0.8, 0.4),
                auto_dismiss=False,
            )
            self.reminder_popup.open()

        def _hide_reminder_popup(self) -> None:
            if self.reminder_popup is not None:
                self.reminder_popup.dismiss()
                self.reminder_popup = None

        def _open_config_popup(self, _: object) -> None:
            inputs: dict[str, TextInput] = {}

            def make_row(label: str, key: str, initial: str, browse: bool) -> BoxLayout:
                row = BoxLayout(orientation="horizontal", size_hint_y=None, height=36)
                row.add_widget(Label(text=label, size_hint_x=0.35))
                inp = TextInput(text=initial, multiline=False)
                row.add_widget(inp)
                if browse:
                    browse_btn = Button(text="Browse", size_hint_x=0.2)
                    browse_btn.bind(
                        on_press=lambda *_args: self._open_path_chooser(inp)
                    )
                    row.add_widget(browse_btn)
                inputs[key] = inp
                return row

            config = self.app_config
            box = BoxLayout(orientation="vertical", spacing=8, padding=8)
            box.add_widget(
                make_row(
                    "Registro CSV sensor",
                    "sensor_log_path",
                    config.sensor_log_path,
                    True,
                )
            )
            box.add_widget(
                make_row("Path salida", "export_dir", config.export_dir, True)
            )
            box.add_widget(make_row("Zona horaria", "timezone", config.timezone, False))
            box.add_widget(
                make_row(
                    "Intervalo (min)",
                    "reminder_interval_minutes",
                    str(config.reminder_interval_minutes),
                    False,
                )
            )

            footer = BoxLayout(orientation="horizontal", size_hint_y=None, height=42)
            cancel_btn = Button(text="Cancelar")
            save_btn = Button(text="Guardar")
            footer.add_widget(cancel_btn)
            footer.add_widget(save_btn)
            box.add_widget(footer)

            popup = Popup(title="Configuracion", content=box, size_hint=(0.92, 0.7))
            cancel_btn.bind(on_press=lambda *_args: popup.dismiss())
            save_btn.bind(
                on_press=lambda *_args: self._save_popup_config(popup, inputs)
            )
            popup.open()

        def _open_path_chooser(self, target_input: TextInput) -> None:
            start = (
                Path(target_input.text).expanduser()
                if target_input.text.strip()
                else Path.home()
            )
            if start.is_file():
                start = start.parent
            chooser = FileChooserListView(path=str(start))
            buttons = BoxLayout(orientation="horizontal", size_hint_y=None, height=40)
            cancel_btn = Button(text="Cancelar")
            use_btn = Button(text="Usar")
            buttons.add_widget(cancel_btn)
            buttons.add_widget(use_btn)

            content = BoxLayout(orientation="vertical")
            content.add_widget(chooser)
            content.add_widget(buttons)
            popup = Popup(title="Seleccionar", content=content, size_hint=(0.9, 0.9))
            cancel_btn.bind(on_press=lambda *_args: popup.dismiss())

            def apply_selection(*_: object) -> None:
                selected = chooser.selection[0] if chooser.selection else chooser.path
                target_input.text = selected
                popup.dismiss()

            use_btn.bind(on_press=apply_selection)
            chooser.bind(on_submit=lambda *_args: apply_selection())
            popup.open()

        def _save_popup_config(
            self, popup: Popup, inputs: dict[str, TextInput]
        ) -> None:
            try:
                interval = int(inputs["reminder_interval_minutes"].text)
            except ValueError:
                interval = self.app_config.reminder_interval_minutes
            old_timezone = self.app_config.timezone
            self.app_config = replace(
                self.app_config,
                sensor_log_path=inputs["sensor_log_path"].text.strip(),
                export_dir=inputs["export_dir"].text.strip(),
                timezone=inputs["timezone"].text.strip(),
                reminder_interval_minutes=max(1, interval),
            )
            self.store.save_config(self.app_config)
            popup.dismiss()
            if self.app_config.timezone != old_timezone:
                self._rebuild_tracking()
            # Rebuild the scheduler so a new interval or zone takes effect.
            was_enabled = self.reminders.enabled
            self.reminders.disable()
            self.reminders = self._build_reminders()
            if was_enabled:
                self.reminders.enable()
            self._refresh_reminder_label()
            if self.status is not None:
                self.status.text = "Configuracion guardada."

        def _rebuild_tracking(self) -> None:
            # Clock, engine and sensor all follow the configured zone.
            self._stop_tracking()
            self.engine.unsubscribe(self._render)
            self.clock = SystemClock(self.app_config.timezone)
            self.engine = DailyTrackingEngine(self.store, self.clock)
            self.motion = MotionHeuristicSource(
                self.engine, MotionConfig.from_app_config(self.app_config)
            )
            self.engine.subscribe(self._render)
            self._render(self.engine.refresh())
            logger.info("Time zone changed to %r", self.app_config.timezone)

        def _on_export(self, _: object) -> None:
            config = self.app_config
            frame = history_frame(self.engine.refresh())
            out_dir = (
                Path(config.export_dir).expanduser()
                if config.export_dir
                else Path.cwd() / "salidas"
            )
            timestamp = self.clock.now().strftime("%Y-%m-%d_%H-%M-%S")
            out_path = out_dir / f"historial_actividad_{timestamp}.xlsx"
            try:
                write_history_xlsx(frame, out_path, ExcelLayout())
            except Exception as exc:
                self._show_error("exportar", exc)
                return
            if self.status is not None:
                self.status.text = f"Excel generado: {out_path}"

        def _show_error(self, action: str, exc: Exception) -> None:
            logger.error("Error al %s: %s", action, exc)
            error_type = type(exc).__name__
            if self.status is not None:
                self.status.text = f"Error al {action} ({error_type}): {exc}"
            if self.preview is not None:
                self.preview.text = traceback.format_exc()

    ActividadToolApp().run()
    return 0
