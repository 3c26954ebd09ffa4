from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from schedule_call.application.use_cases.booking import BookingStateMachine


class SessionStorePort(ABC):
    @abstractmethod
    def add(self, machine: "BookingStateMachine") -> str:
        """Register an open booking flow. Returns its session id."""
        raise NotImplementedError

    @abstractmethod
    def get(self, session_id: str) -> "BookingStateMachine | None":
        raise NotImplementedError

    @abstractmethod
    def discard(self, session_id: str) -> bool:
        """Forget a booking flow. Returns True if it existed."""
        raise NotImplementedError
