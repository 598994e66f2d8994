"""Reloj y clave de dia calendario (YYYY-MM-DD)."""

from __future__ import annotations

from datetime import date, datetime, tzinfo

from dateutil import tz

DATE_KEY_FORMAT = "%Y-%m-%d"


def date_key(moment: datetime | date) -> str:
    """Return the calendar-day key of a date or datetime.

    Datetimes are not converted: the key is the day as seen in the
    datetime's own zone.
    """
    if isinstance(moment, datetime):
        moment = moment.date()
    return moment.strftime(DATE_KEY_FORMAT)


def parse_date_key(text: str) -> date:
    """Parse a ``YYYY-MM-DD`` key.

    Raises:
        ValueError: If the text is not a valid day key.
    """
    return datetime.strptime(text.strip(), DATE_KEY_FORMAT).date()


def resolve_tz(tz_name: str) -> tzinfo:
    """Zona configurada o la zona local de la maquina."""
    if tz_name:
        zone = tz.gettz(tz_name)
        if zone is not None:
            return zone
    return tz.tzlocal()


class SystemClock:
    """Wall clock in a fixed time zone."""

    def __init__(self, tz_name: str = "") -> None:
        self._tz = resolve_tz(tz_name)

    def now(self) -> datetime:
        return datetime.now(tz=self._tz)

    def today_key(self) -> str:
        return date_key(self.now())
