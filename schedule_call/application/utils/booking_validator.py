from __future__ import annotations

import logging

from schedule_call.application.exceptions import ValidationError
from schedule_call.domain.entities.booking_details import BookingDetails, FieldError

logger = logging.getLogger(__name__)


def is_valid_email(value: str) -> bool:
    """Basic local@domain shape check, not RFC validation."""
    candidate = (value or "").strip()
    if candidate.count("@") != 1:
        return False
    local, domain = candidate.split("@")
    return bool(local) and bool(domain)


def validate_booking_details(details: BookingDetails) -> FieldError | None:
    """Return the first invalid field (name, email, purpose order), or None."""
    if not (details.name or "").strip():
        return FieldError(field="name", message="Please enter your name.")

    if not (details.email or "").strip():
        return FieldError(field="email", message="Please enter your email address.")
    if not is_valid_email(details.email):
        return FieldError(field="email", message="Please enter a valid email address.")

    if not (details.purpose or "").strip():
        return FieldError(field="purpose", message="Please tell me what you would like to discuss.")

    return None


def ensure_valid(details: BookingDetails) -> None:
    error = validate_booking_details(details)
    if error is not None:
        logger.debug("Booking details rejected", extra={"field": error.field})
        raise ValidationError(error.field, error.message)
