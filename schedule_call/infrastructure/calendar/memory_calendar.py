from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from schedule_call.application.exceptions import InsertError
from schedule_call.application.ports.calendar import CalendarPort
from schedule_call.domain.entities.calendar_event import CalendarEvent


class InMemoryCalendar(CalendarPort):
    """Process-local event store for dev/local runs. Deterministic: no simulated failures."""

    def __init__(self, events: list[CalendarEvent] | None = None) -> None:
        self._events: dict[str, CalendarEvent] = {}
        self._counter = 0
        self._logger = logging.getLogger(__name__)
        for event in events or []:
            self._store(event)

    async def authenticate(self) -> bool:
        return True

    async def list_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        found = [event for event in self._events.values() if start <= event.start < end]
        return sorted(found, key=lambda event: event.start)

    async def insert_event(self, event: CalendarEvent) -> CalendarEvent:
        if not self.check_availability(event.start, event.end):
            self._logger.warning(
                "Calendar conflict",
                extra={"start": event.start.isoformat(), "end": event.end.isoformat()},
            )
            raise InsertError("The selected time is no longer available. Please pick another slot.")

        stored = self._store(
            replace(event, id="", attendees=tuple(replace(a, response_status="needsAction") for a in event.attendees))
        )
        self._logger.info(
            "Memory calendar event created",
            extra={"event_id": stored.id, "start": stored.start.isoformat(), "summary": stored.summary},
        )
        return stored

    def check_availability(self, start: datetime, end: datetime) -> bool:
        for existing in self._events.values():
            if not (end <= existing.start or start >= existing.end):
                return False
        return True

    def _store(self, event: CalendarEvent) -> CalendarEvent:
        self._counter += 1
        stored = replace(event, id=event.id or f"evt_{self._counter}")
        self._events[stored.id] = stored
        return stored
