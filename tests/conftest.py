from __future__ import annotations

import pytest

from calendar_doubles import TODAY, TZ, FakeCalendar
from schedule_call.application.use_cases.booking import BookingStateMachine


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def scheduled() -> list[tuple]:
    """Collects on_scheduled callback invocations."""
    return []


@pytest.fixture
def machine(calendar: FakeCalendar, scheduled: list[tuple]) -> BookingStateMachine:
    return BookingStateMachine(
        calendar=calendar,
        timezone=TZ,
        today=lambda: TODAY,
        on_scheduled=lambda day, slot, details: scheduled.append((day, slot, details)),
    )
