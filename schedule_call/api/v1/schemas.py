from datetime import date

from pydantic import BaseModel, Field

from schedule_call.application.utils.week_navigator import is_selectable
from schedule_call.domain.entities.booking_session import BookingSession, BookingStep


class BookingDetailsSchema(BaseModel):
    name: str = ""
    email: str = ""
    purpose: str = ""


class FieldErrorSchema(BaseModel):
    field: str
    message: str


class DayMarkerSchema(BaseModel):
    day: date
    has_events: bool
    selectable: bool


class PickDateRequestSchema(BaseModel):
    day: date


class PickTimeRequestSchema(BaseModel):
    slot: str = Field(min_length=1)


class SessionResponseSchema(BaseModel):
    session_id: str
    step: BookingStep
    week_start: date | None = None
    days: list[DayMarkerSchema] = Field(default_factory=list)
    selected_day: date | None = None
    selected_slot: str | None = None
    available_slots: list[str] = Field(default_factory=list)
    availability_loading: bool = False
    availability_error: bool = False
    details: BookingDetailsSchema = Field(default_factory=BookingDetailsSchema)
    field_error: FieldErrorSchema | None = None
    error_message: str | None = None
    is_submitting: bool = False
    confirmed_event_id: str | None = None

    @classmethod
    def from_session(cls, session_id: str, session: BookingSession, today: date) -> "SessionResponseSchema":
        return cls(
            session_id=session_id,
            step=session.step,
            week_start=session.week_start,
            days=[
                DayMarkerSchema(day=day, has_events=has_events, selectable=is_selectable(day, today))
                for day, has_events in sorted(session.day_markers.items())
            ],
            selected_day=session.selected_day,
            selected_slot=session.selected_slot,
            available_slots=list(session.available_slots),
            availability_loading=session.availability_loading,
            availability_error=session.availability_error,
            details=BookingDetailsSchema(
                name=session.details.name,
                email=session.details.email,
                purpose=session.details.purpose,
            ),
            field_error=(
                FieldErrorSchema(field=session.field_error.field, message=session.field_error.message)
                if session.field_error else None
            ),
            error_message=session.error_message,
            is_submitting=session.is_submitting,
            confirmed_event_id=session.confirmed_event_id,
        )
