from __future__ import annotations

import asyncio
import logging
import random
from datetime import date, datetime, time, timedelta

import pytest

from calendar_doubles import TODAY, TOMORROW, TZ, FakeCalendar, make_event, random_day_events
from schedule_call.application.exceptions import (
    BookingClosedError,
    InsertError,
    InvalidTransitionError,
    RetrievalError,
    ValidationError,
)
from schedule_call.application.use_cases.booking import (
    AVAILABILITY_ERROR_MESSAGE,
    CALENDAR_AUTH_MESSAGE,
    BookingStateMachine,
)
from schedule_call.application.utils.availability import WorkingHours
from schedule_call.domain.entities.booking_details import BookingDetails
from schedule_call.domain.entities.booking_session import BookingStep

DETAILS = BookingDetails(name="Ada Lovelace", email="ada@example.com", purpose="Discuss a data pipeline")


async def _reach_details(machine: BookingStateMachine, day: date = TOMORROW, slot: str = "10:00 AM") -> None:
    await machine.open()
    await machine.pick_date(day)
    machine.pick_slot(slot)


@pytest.mark.asyncio
async def test_open_starts_at_date_step_on_current_week(machine, calendar):
    calendar.events = [make_event(TOMORROW, 11)]

    session = await machine.open()

    assert session.step is BookingStep.selecting_date
    assert session.week_start == date(2025, 3, 10)
    assert len(session.day_markers) == 7
    assert session.day_markers[TOMORROW] is True
    assert session.day_markers[TODAY] is False
    assert session.selected_day is None
    assert session.selected_slot is None


@pytest.mark.asyncio
async def test_week_paging_rebuilds_markers(machine, calendar):
    next_monday = date(2025, 3, 17)
    calendar.events = [make_event(next_monday + timedelta(days=2), 15)]
    await machine.open()

    session = await machine.next_week()
    assert session.week_start == next_monday
    assert session.day_markers[next_monday + timedelta(days=2)] is True

    session = await machine.previous_week()
    assert session.week_start == date(2025, 3, 10)
    assert not any(session.day_markers.values())


@pytest.mark.asyncio
async def test_week_marker_failure_leaves_empty_map(machine, calendar):
    calendar.list_error = RetrievalError("boom")
    session = await machine.open()
    assert session.day_markers == {}
    assert session.step is BookingStep.selecting_date


@pytest.mark.asyncio
async def test_pick_date_computes_slots(machine, calendar):
    calendar.events = [make_event(TOMORROW, 9), make_event(TOMORROW, 10), make_event(TOMORROW, 11)]
    await machine.open()

    session = await machine.pick_date(TOMORROW)

    assert session.step is BookingStep.selecting_time
    assert session.selected_day == TOMORROW
    assert session.availability_loading is False
    assert session.availability_error is False
    assert session.available_slots == ["12:00 PM", "1:00 PM", "2:00 PM", "3:00 PM", "4:00 PM"]
    start, end = calendar.list_calls[-1]
    assert start == datetime.combine(TOMORROW, time.min, tzinfo=TZ)
    assert end == datetime.combine(TOMORROW + timedelta(days=1), time.min, tzinfo=TZ)


@pytest.mark.asyncio
async def test_past_day_is_rejected(machine, calendar):
    await machine.open()
    with pytest.raises(InvalidTransitionError):
        await machine.pick_date(TODAY - timedelta(days=1))
    assert machine.session.step is BookingStep.selecting_date
    assert machine.session.selected_day is None


@pytest.mark.asyncio
async def test_today_is_selectable(machine):
    await machine.open()
    session = await machine.pick_date(TODAY)
    assert session.selected_day == TODAY


@pytest.mark.asyncio
async def test_retrieval_failure_is_not_a_fully_booked_day(machine, calendar):
    await machine.open()
    calendar.list_error = RetrievalError("Failed to retrieve calendar events. Please try again.")

    session = await machine.pick_date(TOMORROW)

    assert session.available_slots == []
    assert session.availability_error is True
    assert session.error_message == AVAILABILITY_ERROR_MESSAGE
    with pytest.raises(InvalidTransitionError):
        machine.pick_slot("10:00 AM")


@pytest.mark.asyncio
async def test_authentication_failure_surfaces_on_availability(machine, calendar):
    calendar.can_authenticate = False
    await machine.open()

    session = await machine.pick_date(TOMORROW)

    assert session.availability_error is True
    assert session.error_message == CALENDAR_AUTH_MESSAGE
    assert calendar.list_calls == []


@pytest.mark.asyncio
async def test_fully_booked_day_is_empty_without_error(machine, calendar):
    calendar.events = [make_event(TOMORROW, hour) for hour in range(9, 17)]
    await machine.open()

    session = await machine.pick_date(TOMORROW)

    assert session.available_slots == []
    assert session.availability_error is False
    with pytest.raises(InvalidTransitionError):
        machine.pick_slot("9:00 AM")


@pytest.mark.asyncio
async def test_pick_slot_requires_listed_slot(machine, calendar):
    calendar.events = [make_event(TOMORROW, 10)]
    await machine.open()
    await machine.pick_date(TOMORROW)

    with pytest.raises(InvalidTransitionError):
        machine.pick_slot("10:00 AM")

    session = machine.pick_slot("11:00 AM")
    assert session.step is BookingStep.entering_details
    assert session.selected_slot == "11:00 AM"


@pytest.mark.asyncio
async def test_pick_slot_not_allowed_while_loading(machine, calendar):
    gate = asyncio.Event()
    calendar.list_gates[TOMORROW] = gate
    await machine.open()

    task = asyncio.create_task(machine.pick_date(TOMORROW))
    await asyncio.sleep(0)

    assert machine.session.availability_loading is True
    with pytest.raises(InvalidTransitionError):
        machine.pick_slot("10:00 AM")

    gate.set()
    await task
    assert machine.pick_slot("10:00 AM").step is BookingStep.entering_details


@pytest.mark.asyncio
async def test_stale_availability_response_is_discarded(machine, calendar):
    day_a = TOMORROW
    day_b = TOMORROW + timedelta(days=1)
    calendar.events = [make_event(day_a, hour) for hour in range(9, 16)]
    gate = asyncio.Event()
    calendar.list_gates[day_a] = gate
    await machine.open()

    slow = asyncio.create_task(machine.pick_date(day_a))
    await asyncio.sleep(0)
    await machine.pick_date(day_b)
    slots_for_b = list(machine.session.available_slots)

    gate.set()
    await slow

    assert machine.session.selected_day == day_b
    assert machine.session.available_slots == slots_for_b
    assert len(slots_for_b) == 8
    assert machine.session.availability_loading is False


@pytest.mark.asyncio
async def test_booking_confirmed_echoes_selection(machine, calendar, scheduled):
    """Tomorrow at 10:00 AM with valid details ends confirmed with the same day, time and details."""
    await _reach_details(machine)

    session = await machine.submit(DETAILS)

    assert session.step is BookingStep.confirmed
    assert session.selected_day == TOMORROW
    assert session.selected_slot == "10:00 AM"
    assert session.details == DETAILS
    assert session.confirmed_event_id == "event-1"
    assert scheduled == [(TOMORROW, "10:00 AM", DETAILS)]

    stored = calendar.inserted[0]
    assert stored.summary == "Meeting with Ada Lovelace"
    assert stored.description == "Discuss a data pipeline"
    assert stored.start == datetime.combine(TOMORROW, time(10, 0), tzinfo=TZ)
    assert stored.end == stored.start + timedelta(minutes=60)
    assert stored.timezone == "America/Los_Angeles"
    assert [(a.email, a.display_name, a.response_status) for a in stored.attendees] == [
        ("ada@example.com", "Ada Lovelace", "needsAction")
    ]


@pytest.mark.asyncio
async def test_booking_failure_then_retry_keeps_details(machine, calendar, scheduled):
    await _reach_details(machine)
    calendar.insert_error = InsertError("Failed to create event due to server error")

    session = await machine.submit(DETAILS)

    assert session.step is BookingStep.failed
    assert session.error_message == "Failed to create event due to server error"
    assert scheduled == []

    session = machine.retry()
    assert session.step is BookingStep.entering_details
    assert session.error_message is None
    assert session.details == DETAILS
    assert session.selected_slot == "10:00 AM"

    calendar.insert_error = None
    session = await machine.submit()
    assert session.step is BookingStep.confirmed
    assert len(calendar.inserted) == 1


@pytest.mark.asyncio
async def test_authentication_failure_on_submit_fails_booking(machine, calendar):
    await _reach_details(machine)
    calendar.authenticated = False
    calendar.can_authenticate = False

    session = await machine.submit(DETAILS)

    assert session.step is BookingStep.failed
    assert session.error_message
    assert calendar.insert_calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "details,field",
    [
        (BookingDetails(name="", email="ada@example.com", purpose="Chat"), "name"),
        (BookingDetails(name="Ada", email="ada.example.com", purpose="Chat"), "email"),
        (BookingDetails(name="Ada", email="ada@example.com", purpose="  "), "purpose"),
    ],
)
async def test_invalid_details_never_reach_calendar(machine, calendar, details, field):
    await _reach_details(machine)

    with pytest.raises(ValidationError) as exc_info:
        await machine.submit(details)

    assert exc_info.value.field == field
    assert calendar.insert_calls == 0
    assert machine.session.step is BookingStep.entering_details
    assert machine.session.field_error.field == field


@pytest.mark.asyncio
async def test_update_details_builds_draft(machine, calendar):
    await _reach_details(machine)

    machine.update_details(name="Ada Lovelace")
    machine.update_details(email="ada@example.com")
    session = machine.update_details(purpose="Discuss a data pipeline")

    assert session.details == DETAILS
    session = await machine.submit()
    assert session.step is BookingStep.confirmed


@pytest.mark.asyncio
async def test_double_submit_is_ignored_while_in_flight(machine, calendar):
    await _reach_details(machine)
    calendar.insert_gate = asyncio.Event()

    first = asyncio.create_task(machine.submit(DETAILS))
    await asyncio.sleep(0)
    assert machine.session.is_submitting is True

    session = await machine.submit(DETAILS)
    assert session.step is BookingStep.entering_details
    assert calendar.insert_calls == 1

    calendar.insert_gate.set()
    await first
    assert machine.session.step is BookingStep.confirmed
    assert machine.session.is_submitting is False
    assert len(calendar.inserted) == 1


@pytest.mark.asyncio
async def test_selection_is_frozen_while_submitting(machine, calendar, scheduled):
    """Navigation and edits during a pending insert must not change what gets confirmed."""
    await _reach_details(machine)
    calendar.insert_gate = asyncio.Event()

    pending = asyncio.create_task(machine.submit(DETAILS))
    await asyncio.sleep(0)
    assert machine.session.is_submitting is True

    with pytest.raises(InvalidTransitionError):
        machine.back()
    with pytest.raises(InvalidTransitionError):
        machine.pick_slot("2:00 PM")
    with pytest.raises(InvalidTransitionError):
        await machine.pick_date(TOMORROW + timedelta(days=1))
    with pytest.raises(InvalidTransitionError):
        machine.update_details(name="Someone Else")

    calendar.insert_gate.set()
    session = await pending

    assert session.step is BookingStep.confirmed
    assert session.selected_day == TOMORROW
    assert session.selected_slot == "10:00 AM"
    assert session.details == DETAILS
    assert scheduled == [(TOMORROW, "10:00 AM", DETAILS)]
    assert calendar.inserted[0].start == datetime.combine(TOMORROW, time(10, 0), tzinfo=TZ)


@pytest.mark.asyncio
async def test_slot_length_follows_working_hours(calendar):
    machine = BookingStateMachine(
        calendar=calendar,
        timezone=TZ,
        hours=WorkingHours(slot_minutes=30),
        today=lambda: TODAY,
    )
    await _reach_details(machine)

    session = await machine.submit(DETAILS)

    assert session.step is BookingStep.confirmed
    stored = calendar.inserted[0]
    assert stored.end - stored.start == timedelta(minutes=30)


@pytest.mark.asyncio
async def test_rejected_details_are_logged_at_debug(machine, calendar, caplog):
    await _reach_details(machine)
    bad = BookingDetails(name="Ada", email="not-an-email", purpose="Chat")

    with caplog.at_level(logging.DEBUG, logger="schedule_call.application.utils.booking_validator"):
        with pytest.raises(ValidationError):
            await machine.submit(bad)

    assert "Booking details rejected" in caplog.text
    assert machine.session.field_error.field == "email"


@pytest.mark.asyncio
async def test_back_navigation(machine):
    await machine.open()
    assert machine.back().step is BookingStep.selecting_date

    await machine.pick_date(TOMORROW)
    assert machine.back().step is BookingStep.selecting_date

    await machine.pick_date(TOMORROW)
    machine.pick_slot("10:00 AM")
    assert machine.back().step is BookingStep.selecting_time


@pytest.mark.asyncio
async def test_back_from_failure_returns_to_details(machine, calendar):
    await _reach_details(machine)
    calendar.insert_error = InsertError("quota exceeded")
    await machine.submit(DETAILS)

    session = machine.back()

    assert session.step is BookingStep.entering_details
    assert session.details == DETAILS


@pytest.mark.asyncio
async def test_retry_only_from_failure(machine):
    await machine.open()
    with pytest.raises(InvalidTransitionError):
        machine.retry()


@pytest.mark.asyncio
async def test_reopen_resets_everything(machine, calendar):
    await _reach_details(machine)
    calendar.insert_error = InsertError("nope")
    await machine.submit(DETAILS)
    await machine.next_week()

    session = await machine.open()

    assert session.step is BookingStep.selecting_date
    assert session.week_start == date(2025, 3, 10)
    assert session.selected_day is None
    assert session.selected_slot is None
    assert session.available_slots == []
    assert session.details == BookingDetails()
    assert session.error_message is None


@pytest.mark.asyncio
async def test_closed_machine_rejects_actions(machine):
    await machine.open()
    machine.close()

    assert machine.is_open is False
    with pytest.raises(BookingClosedError):
        await machine.pick_date(TOMORROW)
    with pytest.raises(BookingClosedError):
        machine.session


@pytest.mark.asyncio
async def test_response_after_reopen_does_not_leak(machine, calendar):
    gate = asyncio.Event()
    calendar.list_gates[TOMORROW] = gate
    await machine.open()

    slow = asyncio.create_task(machine.pick_date(TOMORROW))
    await asyncio.sleep(0)
    await machine.open()
    gate.set()
    await slow

    assert machine.session.selected_day is None
    assert machine.session.available_slots == []


@pytest.mark.asyncio
async def test_injected_failures_follow_configured_rate():
    """The random simulator from the old frontend is a fixture: failure_rate=1.0 always fails."""
    calendar = FakeCalendar(failure_rate=1.0)
    machine = BookingStateMachine(calendar=calendar, timezone=TZ, today=lambda: TODAY)
    await _reach_details(machine)

    session = await machine.submit(DETAILS)

    assert session.step is BookingStep.failed
    assert session.error_message == "Failed to create event due to server error"


@pytest.mark.asyncio
async def test_random_calendar_always_leaves_consistent_slots():
    rng = random.Random(42)
    for offset in range(1, 15):
        day = TODAY + timedelta(days=offset)
        events = random_day_events(day, rng)
        calendar = FakeCalendar(events=events)
        machine = BookingStateMachine(calendar=calendar, timezone=TZ, today=lambda: TODAY)
        await machine.open()

        session = await machine.pick_date(day)

        booked = {event.start.hour for event in events}
        assert len(session.available_slots) == 8 - len(booked)
