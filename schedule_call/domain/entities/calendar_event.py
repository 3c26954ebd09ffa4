from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Attendee:
    email: str
    display_name: str | None = None
    response_status: str | None = None  # "needsAction", "accepted", "declined", "tentative"


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    summary: str
    description: str
    start: datetime
    end: datetime
    timezone: str
    attendees: tuple[Attendee, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"Event start must be before end: {self.start.isoformat()} >= {self.end.isoformat()}")
