from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from schedule_call.domain.entities.calendar_event import CalendarEvent


class CalendarPort(ABC):
    @abstractmethod
    async def authenticate(self) -> bool:
        """Establish a calendar session. Returns False on failure, never raises."""
        raise NotImplementedError

    @abstractmethod
    async def list_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """
        Return events whose start falls within [start, end), ordered by start.
        Raises RetrievalError on failure, AuthenticationError if no session can be established.
        """
        raise NotImplementedError

    @abstractmethod
    async def insert_event(self, event: CalendarEvent) -> CalendarEvent:
        """
        Persist a new event and return the stored representation.
        Not idempotent: callers must not retry without user confirmation.
        Raises InsertError on failure, AuthenticationError if no session can be established.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release transport resources. Adapters without any keep this no-op."""
        return None
