from datetime import date
from functools import lru_cache
import logging
from zoneinfo import ZoneInfo

from schedule_call.core.config import settings
from schedule_call.application.ports.calendar import CalendarPort
from schedule_call.application.use_cases.booking import BookingStateMachine
from schedule_call.application.utils.availability import WorkingHours
from schedule_call.domain.entities.booking_details import BookingDetails
from schedule_call.infrastructure.calendar.google_calendar import GoogleCalendar
from schedule_call.infrastructure.calendar.memory_calendar import InMemoryCalendar
from schedule_call.infrastructure.store.memory_store import MemorySessionStore


_session_store: MemorySessionStore | None = None


@lru_cache
def get_calendar() -> CalendarPort:
    logger = logging.getLogger(__name__)
    provider = settings.CALENDAR_PROVIDER.lower()
    if provider == "google" and settings.GOOGLE_CALENDAR_ACCESS_TOKEN:
        logger.info("Using GoogleCalendar", extra={"calendar_id": settings.GOOGLE_CALENDAR_ID})
        return GoogleCalendar()

    if provider == "google":
        if settings.ENV.lower() not in {"dev", "local"}:
            raise ValueError("GOOGLE_CALENDAR_ACCESS_TOKEN is required for the Google calendar provider.")
        logger.info("Using InMemoryCalendar (token missing, ENV=dev/local)")
    return InMemoryCalendar()


async def close_calendar() -> None:
    if get_calendar.cache_info().currsize:
        await get_calendar().aclose()
        get_calendar.cache_clear()


def get_session_store() -> MemorySessionStore:
    global _session_store
    if _session_store is None:
        _session_store = MemorySessionStore()
    return _session_store


def get_working_hours() -> WorkingHours:
    return WorkingHours(
        start_hour=settings.WORK_START_HOUR,
        end_hour=settings.WORK_END_HOUR,
        slot_minutes=settings.SLOT_DURATION_MINUTES,
    )


def _log_scheduled(day: date, slot: str, details: BookingDetails) -> None:
    logging.getLogger(__name__).info(
        "Booking confirmed",
        extra={"day": day.isoformat(), "slot": slot},
    )


def get_booking_machine() -> BookingStateMachine:
    return BookingStateMachine(
        calendar=get_calendar(),
        timezone=ZoneInfo(settings.BUSINESS_TIMEZONE),
        hours=get_working_hours(),
        on_scheduled=_log_scheduled,
    )
