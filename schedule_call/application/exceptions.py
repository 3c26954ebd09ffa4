class SchedulingError(RuntimeError):
    """Base class for call-scheduling failures."""
    pass


class AuthenticationError(SchedulingError):
    """Raised when no usable calendar session can be established."""
    pass


class RetrievalError(SchedulingError):
    """Raised when listing calendar events fails (transport, timeout, upstream error)."""
    pass


class InsertError(SchedulingError):
    """Raised when the calendar rejects or fails to store a new event."""
    pass


class ValidationError(SchedulingError):
    """Raised when booking details fail local validation. Never reaches the calendar."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class InvalidTransitionError(SchedulingError):
    """Raised when an action is not allowed in the current booking step."""
    pass


class BookingClosedError(SchedulingError):
    """Raised when a closed booking session is used."""
    pass
