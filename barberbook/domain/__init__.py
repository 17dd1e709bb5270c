"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    BookingOutcome,
    BookingRequest,
    BookingStatus,
    BusyInterval,
    WorkingHours,
    overlaps,
)
from .slot_calculator import SlotCalculator, format_slot

__all__ = [
    "BookingOutcome",
    "BookingRequest",
    "BookingStatus",
    "BusyInterval",
    "WorkingHours",
    "overlaps",
    "SlotCalculator",
    "format_slot",
]
