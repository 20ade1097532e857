"""Calendar windows used by insight reports and weekly recaps.

All windows are computed in UTC. A window's ``end`` is one millisecond
before the next window's ``start`` so consecutive windows never overlap
and leave no gap.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple, Optional, Union

from ..utils.errors import ServiceError

TIME_FRAMES = ('daily', 'weekly', 'monthly')

_ONE_MS = timedelta(milliseconds=1)


class DateWindow(NamedTuple):
    start: datetime
    end: datetime

    def as_iso(self) -> dict:
        return {'start': iso_timestamp(self.start), 'end': iso_timestamp(self.end)}


def iso_timestamp(value: datetime) -> str:
    """Render ``value`` like a JavaScript ``toISOString()`` call."""

    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f'{value.microsecond // 1000:03d}Z'


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _anchor(value: Union[None, str, date, datetime], now: Optional[datetime]) -> date:
    if value is None:
        return (now or utcnow()).astimezone(timezone.utc).date()
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).date() if value.tzinfo else value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise ServiceError(f'Invalid date: {value}') from exc


def day_window(day: date) -> DateWindow:
    start = _midnight(day)
    return DateWindow(start, start + timedelta(days=1) - _ONE_MS)


def week_window(day: date) -> DateWindow:
    # Weeks start on Sunday; weekday() counts Monday as 0.
    sunday = day - timedelta(days=(day.weekday() + 1) % 7)
    start = _midnight(sunday)
    return DateWindow(start, start + timedelta(days=7) - _ONE_MS)


def month_window(day: date) -> DateWindow:
    first = day.replace(day=1)
    next_first = (first + timedelta(days=32)).replace(day=1)
    return DateWindow(_midnight(first), _midnight(next_first) - _ONE_MS)


def calculate_date_range(
    time_frame: str,
    target: Union[None, str, date, datetime] = None,
    now: Optional[datetime] = None,
) -> DateWindow:
    """Return the daily, weekly or monthly window containing ``target``.

    ``target`` defaults to today (taken from ``now`` when given).
    """

    day = _anchor(target, now)
    if time_frame == 'daily':
        return day_window(day)
    if time_frame == 'weekly':
        return week_window(day)
    if time_frame == 'monthly':
        return month_window(day)
    raise ServiceError('Invalid timeFrame. Must be daily, weekly, or monthly.')


def week_range(now: Optional[datetime] = None) -> DateWindow:
    """The Sunday to Saturday week containing ``now``."""

    return week_window(_anchor(None, now))
