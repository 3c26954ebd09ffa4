from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from schedule_call.application.exceptions import (
    AuthenticationError,
    BookingClosedError,
    InsertError,
    InvalidTransitionError,
    RetrievalError,
)
from schedule_call.application.ports.calendar import CalendarPort
from schedule_call.application.utils.availability import WorkingHours, available_slots, parse_slot_label
from schedule_call.application.utils.booking_validator import ensure_valid, validate_booking_details
from schedule_call.application.utils.week_navigator import (
    DAYS_IN_WEEK,
    WeekDirection,
    build_day_slot_map,
    is_selectable,
    shift_week,
    week_start,
)
from schedule_call.domain.entities.booking_details import BookingDetails
from schedule_call.domain.entities.booking_session import BookingSession, BookingStep
from schedule_call.domain.entities.calendar_event import Attendee, CalendarEvent

AVAILABILITY_ERROR_MESSAGE = "Failed to retrieve available time slots. Please try again."
CALENDAR_AUTH_MESSAGE = "Could not connect to the calendar. Please try again."
BOOKING_ERROR_MESSAGE = "Failed to schedule call. Please try again."

OnScheduled = Callable[[date, str, BookingDetails], None]


class BookingStateMachine:
    """
    Drives one open scheduling widget: date -> time -> details -> confirmed | failed.

    Holds the BookingSession and is the only writer of it. Calendar calls are the
    only suspension points; responses that arrive for a selection that is no
    longer current are dropped.
    """

    def __init__(
        self,
        calendar: CalendarPort,
        timezone: ZoneInfo,
        hours: WorkingHours | None = None,
        today: Callable[[], date] | None = None,
        on_scheduled: OnScheduled | None = None,
    ) -> None:
        self._calendar = calendar
        self._timezone = timezone
        self._hours = hours or WorkingHours()
        self._today = today or (lambda: datetime.now(timezone).date())
        self._on_scheduled = on_scheduled
        self._session: BookingSession | None = None
        self._availability_request = 0
        self._logger = logging.getLogger(__name__)

    @property
    def is_open(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> BookingSession:
        return self._require_session()

    def today(self) -> date:
        return self._today()

    async def open(self) -> BookingSession:
        """Start a fresh session. Nothing from a previous opening survives."""
        self._session = BookingSession(week_start=week_start(self._today()))
        await self._refresh_week_markers()
        return self._session

    def close(self) -> None:
        self._session = None

    async def next_week(self) -> BookingSession:
        return await self._page_week(WeekDirection.next)

    async def previous_week(self) -> BookingSession:
        return await self._page_week(WeekDirection.previous)

    async def pick_date(self, day: date) -> BookingSession:
        session = self._require_session()
        self._require_idle(session, "pick a date")
        if session.step not in (BookingStep.selecting_date, BookingStep.selecting_time):
            raise InvalidTransitionError(f"Cannot pick a date while {session.step.value}")
        if not is_selectable(day, self._today()):
            raise InvalidTransitionError(f"{day.isoformat()} is in the past and cannot be selected")

        session.selected_day = day
        session.selected_slot = None
        session.available_slots = []
        session.availability_loading = True
        session.availability_error = False
        session.error_message = None
        session.step = BookingStep.selecting_time

        self._availability_request += 1
        request_id = self._availability_request

        slots: list[str] = []
        error_message: str | None = None
        try:
            events = await self._calendar.list_events(self._start_of(day), self._start_of(day + timedelta(days=1)))
            slots = available_slots(events, self._hours, day=day, timezone=self._timezone)
        except AuthenticationError as e:
            self._logger.error("Calendar authentication failed", extra={"day": day.isoformat(), "error": str(e)})
            error_message = CALENDAR_AUTH_MESSAGE
        except RetrievalError as e:
            self._logger.error("Error fetching available slots", extra={"day": day.isoformat(), "error": str(e)})
            error_message = AVAILABILITY_ERROR_MESSAGE

        if (
            self._session is not session
            or request_id != self._availability_request
            or session.selected_day != day
        ):
            self._logger.info("Discarding stale availability response", extra={"day": day.isoformat()})
            return session

        session.availability_loading = False
        if error_message is not None:
            session.available_slots = []
            session.availability_error = True
            session.error_message = error_message
        else:
            session.available_slots = slots
        return session

    def pick_slot(self, slot: str) -> BookingSession:
        session = self._require_session()
        self._require_idle(session, "pick a time")
        if session.step is not BookingStep.selecting_time:
            raise InvalidTransitionError(f"Cannot pick a time while {session.step.value}")
        if session.availability_loading:
            raise InvalidTransitionError("Availability is still loading")
        if session.availability_error:
            raise InvalidTransitionError("Availability could not be loaded for this day")
        if slot not in session.available_slots:
            raise InvalidTransitionError(f"{slot} is not an available time")

        session.selected_slot = slot
        session.field_error = None
        session.step = BookingStep.entering_details
        return session

    def update_details(
        self,
        name: str | None = None,
        email: str | None = None,
        purpose: str | None = None,
    ) -> BookingSession:
        session = self._require_session()
        self._require_idle(session, "edit details")
        if session.step is not BookingStep.entering_details:
            raise InvalidTransitionError(f"Cannot edit details while {session.step.value}")

        current = session.details
        session.details = BookingDetails(
            name=current.name if name is None else name,
            email=current.email if email is None else email,
            purpose=current.purpose if purpose is None else purpose,
        )
        return session

    async def submit(self, details: BookingDetails | None = None) -> BookingSession:
        session = self._require_session()
        if session.is_submitting:
            self._logger.info("Ignoring submit while a booking is in flight")
            return session
        if session.step is not BookingStep.entering_details:
            raise InvalidTransitionError(f"Cannot submit while {session.step.value}")
        if session.selected_day is None or session.selected_slot is None:
            raise InvalidTransitionError("A day and a time must be selected before submitting")

        if details is not None:
            session.details = details
        session.field_error = validate_booking_details(session.details)
        ensure_valid(session.details)

        day, slot, submitted = session.selected_day, session.selected_slot, session.details
        candidate = self._build_candidate(day, slot, submitted)

        session.is_submitting = True
        session.error_message = None
        try:
            stored = await self._calendar.insert_event(candidate)
        except (InsertError, AuthenticationError) as e:
            self._logger.error(
                "Error scheduling call",
                extra={"day": day.isoformat(), "slot": slot, "error": str(e)},
            )
            if self._session is session:
                session.step = BookingStep.failed
                session.error_message = str(e) or BOOKING_ERROR_MESSAGE
            return session
        finally:
            session.is_submitting = False

        if self._session is not session:
            self._logger.warning("Booking stored after the session was closed", extra={"event_id": stored.id})
            return session

        session.step = BookingStep.confirmed
        session.confirmed_event_id = stored.id
        self._logger.info(
            "Call scheduled",
            extra={"day": day.isoformat(), "slot": slot, "event_id": stored.id},
        )
        if self._on_scheduled is not None:
            self._on_scheduled(day, slot, submitted)
        return session

    def retry(self) -> BookingSession:
        """Return from the failure screen to the details form, keeping what was typed."""
        session = self._require_session()
        self._require_idle(session, "retry")
        if session.step is not BookingStep.failed:
            raise InvalidTransitionError(f"Nothing to retry while {session.step.value}")
        session.error_message = None
        session.step = BookingStep.entering_details
        return session

    def back(self) -> BookingSession:
        session = self._require_session()
        self._require_idle(session, "go back")
        if session.step is BookingStep.selecting_time:
            session.step = BookingStep.selecting_date
        elif session.step is BookingStep.entering_details:
            session.field_error = None
            session.step = BookingStep.selecting_time
        elif session.step is BookingStep.failed:
            session.error_message = None
            session.step = BookingStep.entering_details
        return session

    async def _page_week(self, direction: WeekDirection) -> BookingSession:
        session = self._require_session()
        session.week_start = shift_week(session.week_start or week_start(self._today()), direction)
        await self._refresh_week_markers()
        return session

    async def _refresh_week_markers(self) -> None:
        session = self._require_session()
        anchor = session.week_start
        if anchor is None:
            return

        markers: dict[date, bool] = {}
        try:
            events = await self._calendar.list_events(
                self._start_of(anchor),
                self._start_of(anchor + timedelta(days=DAYS_IN_WEEK)),
            )
            markers = build_day_slot_map(events, anchor, self._timezone)
        except (RetrievalError, AuthenticationError) as e:
            self._logger.warning("Error fetching events", extra={"day": anchor.isoformat(), "error": str(e)})

        if self._session is not session or session.week_start != anchor:
            return
        session.day_markers = markers

    def _build_candidate(self, day: date, slot: str, details: BookingDetails) -> CalendarEvent:
        hour, minute = parse_slot_label(slot)
        start = datetime.combine(day, time(hour, minute), tzinfo=self._timezone)
        end = start + timedelta(minutes=self._hours.slot_minutes)
        name = details.name.strip()
        return CalendarEvent(
            id="",
            summary=f"Meeting with {name}",
            description=details.purpose.strip(),
            start=start,
            end=end,
            timezone=self._timezone.key,
            attendees=(Attendee(email=details.email.strip(), display_name=name),),
        )

    def _start_of(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self._timezone)

    def _require_idle(self, session: BookingSession, action: str) -> None:
        # The selection must not move while an insert for it is pending.
        if session.is_submitting:
            raise InvalidTransitionError(f"Cannot {action} while a booking is being submitted")

    def _require_session(self) -> BookingSession:
        if self._session is None:
            raise BookingClosedError("The booking flow is not open")
        return self._session
