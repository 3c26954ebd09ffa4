from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BookingDetails:
    name: str = ""
    email: str = ""
    purpose: str = ""


@dataclass(frozen=True)
class FieldError:
    field: str  # "name", "email", "purpose"
    message: str
