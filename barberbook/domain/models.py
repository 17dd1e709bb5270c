"""
Domain models for busy intervals, working hours and bookings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from pendulum import DateTime


def overlaps(a_start: DateTime, a_end: DateTime, b_start: DateTime, b_end: DateTime) -> bool:
    """
    Check whether two half-open intervals [a_start, a_end) and [b_start, b_end) overlap.

    Intervals that only touch at an endpoint do not overlap.
    """
    return a_start < b_end and b_start < a_end


@dataclass(frozen=True)
class BusyInterval:
    """
    A half-open period during which a barber cannot take a booking.

    Invariant: start must not be after end.
    """
    start: DateTime
    end: DateTime
    summary: str = ""

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Start time {self.start} must not be after end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        """Check if this interval overlaps [start, end)."""
        return overlaps(start, end, self.start, self.end)

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class WorkingHours:
    """
    Opening hours of the shop.
    """
    open_weekdays: FrozenSet[int]  # 0=Monday, 6=Sunday
    start_hour: int
    end_hour: int
    step_minutes: int = 15
    timezone: str = "Europe/Madrid"

    def is_open_day(self, dt: DateTime) -> bool:
        """Check if a given datetime falls on an opening day."""
        return dt.weekday() in self.open_weekdays

    def opening_time(self, day: DateTime) -> DateTime:
        return day.in_timezone(self.timezone).set(
            hour=self.start_hour, minute=0, second=0, microsecond=0
        )

    def closing_time(self, day: DateTime) -> DateTime:
        """Closing instant of the day; end_hour 24 is midnight at the end of the day."""
        local = day.in_timezone(self.timezone)
        if self.end_hour == 24:
            return local.start_of("day").add(days=1)
        return local.set(hour=self.end_hour, minute=0, second=0, microsecond=0)


class BookingStatus(str, Enum):
    ACCEPTED = "accepted"
    CONFLICT = "conflict"
    REJECTED = "rejected"


@dataclass
class BookingRequest:
    """
    Raw booking request as received from a client.

    All fields are kept as strings; validation happens in the booking service.
    """
    date: str
    time: str
    barber_id: str
    service_id: str
    customer_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class BookingOutcome:
    """Result of a booking attempt."""
    status: BookingStatus
    message: str = ""
    event_id: Optional[str] = None
    start: Optional[DateTime] = field(default=None)
    end: Optional[DateTime] = field(default=None)

    @property
    def accepted(self) -> bool:
        return self.status is BookingStatus.ACCEPTED

    def format_display(self) -> str:
        """
        Format the outcome for display.
        Format: YYYY-MM-DD | HH:MM - HH:MM (status)
        """
        if self.start is None or self.end is None:
            return f"{self.status.value}: {self.message}"

        date_str = self.start.format("YYYY-MM-DD")
        time_str = f"{self.start.format('HH:mm')} - {self.end.format('HH:mm')}"
        return f"{date_str} | {time_str} ({self.status.value})"
