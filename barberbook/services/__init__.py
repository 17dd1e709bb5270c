"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingService, CalendarSourceProtocol, ensure_free

__all__ = ["BookingService", "CalendarSourceProtocol", "ensure_free"]
