"""
Adapters layer - External integrations (Google Calendar API).
"""

from .google_authenticator import GoogleAuthenticator
from .google_calendar_client import GoogleCalendarClient
from .memory_calendar import InMemoryCalendarSource

__all__ = ["GoogleAuthenticator", "GoogleCalendarClient", "InMemoryCalendarSource"]
