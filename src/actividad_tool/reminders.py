"""Recordatorios periodicos de hidratacion con respaldo dentro de la app."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)

REMINDER_INTERVAL_S = 2 * 60 * 60
QUICK_LOG_ML = 150
NOTIFICATION_TITLE = "Hora de tomar agua"
NOTIFICATION_BODY = "Toma unos sorbos y registralos en la app."
NOTIFICATION_TAG = "water-reminder"


class Permission(Enum):
    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"
    UNSUPPORTED = "unsupported"


class ReminderState(Enum):
    DISABLED = "disabled"
    IDLE = "enabled-idle"
    PENDING = "enabled-pending"


@dataclass(frozen=True)
class NotificationRequest:
    """System notification; a new one with the same tag replaces the old."""

    title: str
    body: str
    tag: str
    on_tap: Callable[[], None] | None = None


class Notifier(ABC):
    """Platform notification channel."""

    @abstractmethod
    def permission(self) -> Permission:
        """Current permission without prompting the user."""

    @abstractmethod
    def request_permission(self, callback: Callable[[Permission], None]) -> None:
        """Prompt the user; ``callback`` may run later, after other events."""

    @abstractmethod
    def notify(self, request: NotificationRequest) -> None:
        """Deliver a notification.

        Raises:
            Exception: Any delivery failure.
        """


class InAppOnlyNotifier(Notifier):
    """Notifier for shells without a system notification channel."""

    def permission(self) -> Permission:
        return Permission.UNSUPPORTED

    def request_permission(self, callback: Callable[[Permission], None]) -> None:
        callback(Permission.UNSUPPORTED)

    def notify(self, request: NotificationRequest) -> None:
        raise RuntimeError("System notifications are not available")


class Cancellable(Protocol):
    def cancel(self) -> object: ...


class Clock(Protocol):
    def now(self) -> datetime: ...


ScheduleInterval = Callable[[Callable[[], None], float], Cancellable]


class ReminderScheduler:
    """Fire a hydration reminder every interval while enabled.

    States are DISABLED, IDLE and PENDING (a tick is waiting on a
    permission answer). Permission callbacks carry the generation they
    were issued in; ``disable()`` and newer ticks bump the generation so
    late answers are ignored.
    """

    def __init__(
        self,
        notifier: Notifier,
        schedule_interval: ScheduleInterval,
        show_prompt: Callable[[], None],
        *,
        interval_s: float = REMINDER_INTERVAL_S,
        on_quick_log: Callable[[int], None] | None = None,
        on_focus: Callable[[], None] | None = None,
        hide_prompt: Callable[[], None] | None = None,
        clock: Clock | None = None,
        active_hours: tuple[int, int] | None = None,
    ) -> None:
        self._notifier = notifier
        self._schedule_interval = schedule_interval
        self._show_prompt = show_prompt
        self._hide_prompt = hide_prompt
        self._interval_s = interval_s
        self._on_quick_log = on_quick_log
        self._on_focus = on_focus
        self._clock = clock
        self._active_hours = active_hours
        self._timer: Cancellable | None = None
        self._generation = 0
        self._permission_asked = False
        self._state = ReminderState.DISABLED
        self.prompt_visible = False

    @property
    def state(self) -> ReminderState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state is not ReminderState.DISABLED

    def enable(self) -> None:
        """Start (or restart) the interval timer; never stacks timers.

        The enable-time permission request is made at most once per
        scheduler; later ticks still ask just in time.
        """
        self._cancel_timer()
        self._generation += 1
        self._state = ReminderState.IDLE
        if (
            not self._permission_asked
            and self._notifier.permission() is Permission.DEFAULT
        ):
            self._permission_asked = True
            token = self._generation
            self._notifier.request_permission(
                lambda result: self._on_enable_permission(token, result)
            )
        self._timer = self._schedule_interval(self._on_tick, self._interval_s)
        logger.info("Reminders enabled every %s s", self._interval_s)

    def disable(self) -> None:
        self._cancel_timer()
        self._generation += 1
        self._state = ReminderState.DISABLED
        logger.info("Reminders disabled")

    def tick(self) -> None:
        """Handle one timer tick (also callable directly)."""
        self._on_tick()

    def accept_prompt(self) -> None:
        """Quick-log water from the in-app prompt and close it."""
        if self._on_quick_log is not None:
            self._on_quick_log(QUICK_LOG_ML)
        self.dismiss_prompt()

    def dismiss_prompt(self) -> None:
        self.prompt_visible = False
        if self._hide_prompt is not None:
            self._hide_prompt()

    def status_text(self) -> str:
        if not self.enabled:
            return "Recordatorios apagados"
        hours = self._interval_s / 3600
        every = f"Cada {hours:g} horas" if hours != 1 else "Cada hora"
        permission = self._notifier.permission()
        if permission is Permission.GRANTED:
            return f"{every} (notificacion + en la app)"
        if permission is Permission.DEFAULT:
            return f"{every} (acepta el permiso para notificaciones)"
        return f"{every} (solo en la app)"

    def _on_tick(self) -> None:
        if not self.enabled:
            return
        if not self._within_active_hours():
            logger.debug("Reminder tick outside active hours, skipped")
            return
        self._generation += 1
        token = self._generation
        self._state = ReminderState.PENDING

        permission = self._notifier.permission()
        if permission is Permission.GRANTED:
            self._deliver()
        elif permission is Permission.DEFAULT:
            self._notifier.request_permission(
                lambda result: self._on_tick_permission(token, result)
            )
        else:
            self._prompt()

    def _on_tick_permission(self, token: int, result: Permission) -> None:
        if token != self._generation or not self.enabled:
            logger.debug("Ignoring stale permission answer: %s", result.value)
            return
        logger.info("Notification permission: %s", result.value)
        if result is Permission.GRANTED:
            self._deliver()
        else:
            self._prompt()

    def _on_enable_permission(self, token: int, result: Permission) -> None:
        if token != self._generation or not self.enabled:
            return
        logger.info("Notification permission: %s", result.value)

    def _deliver(self) -> None:
        request = NotificationRequest(
            title=NOTIFICATION_TITLE,
            body=NOTIFICATION_BODY,
            tag=NOTIFICATION_TAG,
            on_tap=self._on_focus,
        )
        try:
            self._notifier.notify(request)
        except Exception as exc:
            logger.warning("Notification failed, using in-app prompt: %s", exc)
            self._prompt()
            return
        self._settle()

    def _prompt(self) -> None:
        self.prompt_visible = True
        self._show_prompt()
        self._settle()

    def _settle(self) -> None:
        if self.enabled:
            self._state = ReminderState.IDLE

    def _within_active_hours(self) -> bool:
        if self._active_hours is None or self._clock is None:
            return True
        start, end = self._active_hours
        return start <= self._clock.now().hour < end

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
