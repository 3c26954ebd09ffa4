from __future__ import annotations

import uuid

from schedule_call.application.ports.session_store import SessionStorePort
from schedule_call.application.use_cases.booking import BookingStateMachine


class MemorySessionStore(SessionStorePort):
    def __init__(self, max_sessions: int = 500) -> None:
        self._sessions: dict[str, BookingStateMachine] = {}
        self._max_sessions = max_sessions

    def add(self, machine: BookingStateMachine) -> str:
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = machine
        if len(self._sessions) > self._max_sessions:
            # dicts keep insertion order; drop the oldest widgets first
            oldest = next(iter(self._sessions))
            self._sessions.pop(oldest).close()
        return session_id

    def get(self, session_id: str) -> BookingStateMachine | None:
        return self._sessions.get(session_id)

    def discard(self, session_id: str) -> bool:
        machine = self._sessions.pop(session_id, None)
        if machine is None:
            return False
        machine.close()
        return True

    def __len__(self) -> int:
        return len(self._sessions)
