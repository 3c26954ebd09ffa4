from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from schedule_call.domain.entities.booking_details import BookingDetails, FieldError


class BookingStep(str, Enum):
    selecting_date = "selecting_date"
    selecting_time = "selecting_time"
    entering_details = "entering_details"
    confirmed = "confirmed"
    failed = "failed"


@dataclass
class BookingSession:
    step: BookingStep = BookingStep.selecting_date
    week_start: date | None = None
    day_markers: dict[date, bool] = field(default_factory=dict)
    selected_day: date | None = None
    selected_slot: str | None = None
    available_slots: list[str] = field(default_factory=list)
    availability_loading: bool = False
    availability_error: bool = False  # distinguishes "could not load" from "fully booked"
    details: BookingDetails = BookingDetails()
    field_error: FieldError | None = None
    error_message: str | None = None
    is_submitting: bool = False
    confirmed_event_id: str | None = None
