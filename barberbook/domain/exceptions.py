"""
Domain-specific exception hierarchy for the booking backend.
"""


class BarberBookError(Exception):
    """Base class for all application-level errors."""


class ValidationError(BarberBookError):
    """Raised when a request references unknown data or is malformed."""


class ConflictError(BarberBookError):
    """Raised when a requested interval overlaps an existing busy interval."""

    def __init__(self, message: str, interval=None):
        super().__init__(message)
        self.interval = interval


class UpstreamError(BarberBookError):
    """Raised when the calendar source cannot complete an operation."""


class CalendarAPIError(UpstreamError):
    """Raised when calendar data cannot be fetched, written or parsed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(UpstreamError):
    """Raised when authentication or token handling fails."""
