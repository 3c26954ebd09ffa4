from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from schedule_call.application.exceptions import AuthenticationError, InsertError, RetrievalError
from schedule_call.application.ports.calendar import CalendarPort
from schedule_call.core.config import settings
from schedule_call.domain.entities.calendar_event import Attendee, CalendarEvent


class GoogleCalendar(CalendarPort):
    def __init__(
        self,
        access_token: str | None = None,
        calendar_id: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._access_token = access_token or settings.GOOGLE_CALENDAR_ACCESS_TOKEN
        self._calendar_id = calendar_id or settings.GOOGLE_CALENDAR_ID
        self._base_url = (base_url or settings.GOOGLE_CALENDAR_BASE_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout or settings.CALENDAR_TIMEOUT_SECONDS)
        self._authenticated = False
        self._auth_lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    async def authenticate(self) -> bool:
        # Serialized so concurrent callers share one sign-in check.
        async with self._auth_lock:
            if self._authenticated:
                return True
            if not self._access_token:
                self._logger.warning("GOOGLE_CALENDAR_ACCESS_TOKEN is not configured")
                return False

            try:
                response = await self._client.get(self._calendar_url(), headers=self._headers())
            except httpx.HTTPError as e:
                self._logger.error("Calendar authentication error", extra={"error": str(e)})
                return False

            if response.status_code != 200:
                self._logger.error("Calendar authentication rejected", extra={"status": response.status_code})
                return False

            self._authenticated = True
            self._logger.info("Calendar session established")
            return True

    async def list_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        await self._ensure_authenticated()

        params: dict[str, Any] = {
            "timeMin": start.isoformat(),
            "timeMax": end.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        events: list[CalendarEvent] = []
        while True:
            try:
                response = await self._client.get(
                    f"{self._calendar_url()}/events",
                    params=params,
                    headers=self._headers(),
                )
            except httpx.TimeoutException as e:
                self._logger.error("Timed out listing calendar events", extra={"error": str(e)})
                raise RetrievalError("Timed out while loading calendar events.") from e
            except httpx.HTTPError as e:
                self._logger.error("Error getting events", extra={"error": str(e)})
                raise RetrievalError("Failed to retrieve calendar events. Please try again.") from e

            self._raise_for_auth(response)
            if response.status_code >= 400:
                self._logger.error(
                    "Calendar list failed",
                    extra={"status": response.status_code, "error": response.text[:200]},
                )
                raise RetrievalError("Failed to retrieve calendar events. Please try again.")

            try:
                data = response.json()
                for item in data.get("items", []):
                    event = _event_from_api(item)
                    # timeMin filters on event end; keep only events starting in range.
                    if event is not None and start <= event.start < end:
                        events.append(event)
            except (ValueError, KeyError, TypeError) as e:
                self._logger.error("Malformed calendar response", extra={"error": str(e)})
                raise RetrievalError("Received an invalid response from the calendar.") from e

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

        return sorted(events, key=lambda event: event.start)

    async def insert_event(self, event: CalendarEvent) -> CalendarEvent:
        await self._ensure_authenticated()

        try:
            response = await self._client.post(
                f"{self._calendar_url()}/events",
                json=_event_to_api(event),
                headers=self._headers(),
            )
        except httpx.TimeoutException as e:
            # The write may still have landed; callers must not retry blindly.
            self._logger.error("Timed out creating calendar event", extra={"error": str(e)})
            raise InsertError("The calendar did not respond in time. Please try again.") from e
        except httpx.HTTPError as e:
            self._logger.error("Error creating event", extra={"error": str(e)})
            raise InsertError("Failed to create calendar event. Please try again.") from e

        self._raise_for_auth(response)
        if response.status_code == 409:
            raise InsertError("The selected time is no longer available. Please pick another slot.")
        if response.status_code >= 400:
            self._logger.error(
                "Calendar insert failed",
                extra={"status": response.status_code, "error": response.text[:200]},
            )
            raise InsertError("Failed to create calendar event. Please try again.")

        try:
            stored = _event_from_api(response.json())
        except (ValueError, KeyError, TypeError) as e:
            self._logger.error("Malformed calendar response", extra={"error": str(e)})
            raise InsertError("Received an invalid response from the calendar.") from e
        if stored is None or not stored.id:
            raise InsertError("No event ID returned from the calendar.")

        self._logger.info("Calendar event created", extra={"event_id": stored.id, "summary": stored.summary})
        return stored

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _ensure_authenticated(self) -> None:
        if self._authenticated:
            return
        self._logger.warning("Not authenticated, authenticating now...")
        if not await self.authenticate():
            raise AuthenticationError("Could not authenticate with the calendar.")

    def _raise_for_auth(self, response: httpx.Response) -> None:
        if response.status_code == 401:
            self._authenticated = False
            self._logger.error("Calendar session rejected", extra={"status": response.status_code})
            raise AuthenticationError("The calendar session has expired.")

    def _calendar_url(self) -> str:
        return f"{self._base_url}/calendars/{quote(self._calendar_id, safe='')}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _event_from_api(data: dict[str, Any]) -> CalendarEvent | None:
    """Convert a Google Calendar event resource. All-day events (no dateTime) yield None."""
    start = data.get("start") or {}
    end = data.get("end") or {}
    if "dateTime" not in start or "dateTime" not in end:
        return None

    attendees = tuple(
        Attendee(
            email=a["email"],
            display_name=a.get("displayName"),
            response_status=a.get("responseStatus") or "needsAction",
        )
        for a in data.get("attendees", [])
    )
    return CalendarEvent(
        id=str(data.get("id") or ""),
        summary=data.get("summary", ""),
        description=data.get("description", ""),
        start=_parse_datetime(start["dateTime"]),
        end=_parse_datetime(end["dateTime"]),
        timezone=start.get("timeZone") or "UTC",
        attendees=attendees,
    )


def _event_to_api(event: CalendarEvent) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "summary": event.summary,
        "description": event.description,
        "start": {"dateTime": event.start.isoformat(), "timeZone": event.timezone},
        "end": {"dateTime": event.end.isoformat(), "timeZone": event.timezone},
        "attendees": [],
    }
    for attendee in event.attendees:
        entry = {"email": attendee.email}
        if attendee.display_name:
            entry["displayName"] = attendee.display_name
        payload["attendees"].append(entry)
    return payload
