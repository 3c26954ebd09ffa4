from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from schedule_call.domain.entities.calendar_event import CalendarEvent

DAYS_IN_WEEK = 7


class WeekDirection(str, Enum):
    next = "next"
    previous = "previous"


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def week_start(day: date | datetime) -> date:
    """Monday of the week containing day."""
    d = _as_date(day)
    return d - timedelta(days=d.weekday())


def shift_week(anchor: date, direction: WeekDirection | str) -> date:
    direction = WeekDirection(direction)
    if direction is WeekDirection.next:
        return anchor + timedelta(days=DAYS_IN_WEEK)
    return anchor - timedelta(days=DAYS_IN_WEEK)


def next_week(anchor: date) -> date:
    return shift_week(anchor, WeekDirection.next)


def previous_week(anchor: date) -> date:
    return shift_week(anchor, WeekDirection.previous)


def visible_days(anchor: date) -> list[date]:
    return [anchor + timedelta(days=i) for i in range(DAYS_IN_WEEK)]


def is_selectable(day: date | datetime, today: date | datetime) -> bool:
    """A day is selectable unless it is strictly before today. Time of day is ignored."""
    return _as_date(day) >= _as_date(today)


def build_day_slot_map(
    events: Iterable[CalendarEvent],
    anchor: date,
    timezone: ZoneInfo | None = None,
) -> dict[date, bool]:
    """Mark which of the seven visible days have at least one event."""
    markers = {day: False for day in visible_days(anchor)}
    for event in events:
        start = event.start
        if timezone is not None and start.tzinfo is not None:
            start = start.astimezone(timezone)
        if start.date() in markers:
            markers[start.date()] = True
    return markers
