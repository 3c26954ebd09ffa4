from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from zoneinfo import ZoneInfo

from schedule_call.domain.entities.calendar_event import CalendarEvent

ALL_WEEKDAYS = frozenset(range(7))

_SLOT_LABEL_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")


@dataclass(frozen=True)
class WorkingHours:
    start_hour: int = 9
    end_hour: int = 17  # exclusive
    slot_minutes: int = 60
    weekdays: frozenset[int] = field(default=ALL_WEEKDAYS)  # Monday == 0

    def __post_init__(self) -> None:
        if not (0 <= self.start_hour <= self.end_hour <= 24):
            raise ValueError(f"Invalid working hours: {self.start_hour}-{self.end_hour}")
        if self.slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        if any(d not in ALL_WEEKDAYS for d in self.weekdays):
            raise ValueError(f"Invalid weekdays: {sorted(self.weekdays)}")

    def is_working_day(self, day: date) -> bool:
        return day.weekday() in self.weekdays


def format_slot_label(hour: int, minute: int = 0) -> str:
    """Format an hour/minute pair as a 12-hour clock label, e.g. "1:00 PM"."""
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time: {hour}:{minute}")
    period = "AM" if hour < 12 else "PM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {period}"


def parse_slot_label(label: str) -> tuple[int, int]:
    """Parse a label such as "10:00 AM" back into (hour, minute) on a 24-hour clock."""
    match = _SLOT_LABEL_RE.match(label or "")
    if not match:
        raise ValueError(f"Unrecognized slot label: {label!r}")

    hours = int(match.group(1))
    minutes = int(match.group(2))
    period = match.group(3).upper()
    if not (1 <= hours <= 12) or minutes > 59:
        raise ValueError(f"Unrecognized slot label: {label!r}")

    if period == "PM" and hours < 12:
        hours += 12
    elif period == "AM" and hours == 12:
        hours = 0
    return hours, minutes


def booked_hours(
    events: Iterable[CalendarEvent],
    day: date | None = None,
    timezone: ZoneInfo | None = None,
) -> set[int]:
    hours: set[int] = set()
    for event in events:
        start = event.start
        if timezone is not None and start.tzinfo is not None:
            start = start.astimezone(timezone)
        if day is not None and start.date() != day:
            continue
        hours.add(start.hour)
    return hours


def available_slots(
    events: Iterable[CalendarEvent],
    hours: WorkingHours | None = None,
    *,
    day: date | None = None,
    timezone: ZoneInfo | None = None,
) -> list[str]:
    """
    Free slot labels for one day, ascending.

    An event blocks only the hour it starts in; partial-hour overlaps and
    multi-hour events are not modeled. An empty list means "no openings".
    """
    policy = hours or WorkingHours()
    if day is not None and not policy.is_working_day(day):
        return []

    taken = booked_hours(events, day=day, timezone=timezone)
    return [
        format_slot_label(hour)
        for hour in range(policy.start_hour, policy.end_hour)
        if hour not in taken
    ]
