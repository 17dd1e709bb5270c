"""
Google Calendar API client for reading busy intervals and creating appointments.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyInterval
from .google_authenticator import GoogleAuthenticator

logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """
    Client for Google Calendar v3 event operations.

    Uses the /calendars/{id}/events endpoint both for reading busy
    intervals and for inserting booked appointments.
    """

    CALENDAR_API_ENDPOINT = "https://www.googleapis.com/calendar/v3"

    # Upper bound of the API for one page of events
    PAGE_SIZE = 250

    def __init__(
        self,
        authenticator: GoogleAuthenticator,
        timezone: str = "Europe/Madrid",
        timeout: float = 30
    ):
        """
        Initialize the Calendar API client.

        Args:
            authenticator: Source of OAuth access tokens
            timezone: IANA timezone all instants are interpreted in
            timeout: Timeout in seconds for each HTTP request
        """
        self.authenticator = authenticator
        self.timezone = timezone
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.authenticator.get_access_token()}",
            "Content-Type": "application/json"
        }

    def _events_url(self, calendar_id: str) -> str:
        return f"{self.CALENDAR_API_ENDPOINT}/calendars/{quote(calendar_id, safe='')}/events"

    def list_busy(
        self,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime
    ) -> List[BusyInterval]:
        """
        Get all confirmed events of a calendar overlapping a time window.

        Follows pagination until every page has been read.

        Args:
            calendar_id: Google calendar identifier
            range_start: Start of the time window
            range_end: End of the time window

        Returns:
            List of busy intervals ordered as returned by the API

        Raises:
            CalendarAPIError: If an API call fails or returns an unexpected shape
        """
        url = self._events_url(calendar_id)
        params: Dict[str, Any] = {
            "timeMin": range_start.in_timezone("UTC").to_iso8601_string(),
            "timeMax": range_end.in_timezone("UTC").to_iso8601_string(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "timeZone": self.timezone,
            "maxResults": self.PAGE_SIZE,
        }

        busy: List[BusyInterval] = []
        page_token: Optional[str] = None
        pages = 0

        while True:
            if page_token:
                params["pageToken"] = page_token

            data = self._request("GET", url, params=params)
            items = data.get("items", [])
            if not isinstance(items, list):
                raise CalendarAPIError("Unexpected events payload: 'items' is not a list")

            busy.extend(self._parse_events(items))
            pages += 1

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.debug(
            "Fetched %d busy interval(s) from %s in %d page(s)", len(busy), calendar_id, pages
        )
        return busy

    def insert_event(
        self,
        calendar_id: str,
        title: str,
        description: str,
        start: DateTime,
        end: DateTime
    ) -> str:
        """
        Create one event in a calendar.

        Args:
            calendar_id: Google calendar identifier
            title: Event summary
            description: Event description
            start: Event start
            end: Event end

        Returns:
            Identifier of the created event

        Raises:
            CalendarAPIError: If the event could not be created
        """
        payload = {
            "summary": title,
            "description": description,
            "start": {
                "dateTime": start.in_timezone(self.timezone).to_iso8601_string(),
                "timeZone": self.timezone
            },
            "end": {
                "dateTime": end.in_timezone(self.timezone).to_iso8601_string(),
                "timeZone": self.timezone
            },
        }

        data = self._request(
            "POST",
            self._events_url(calendar_id),
            params={"sendUpdates": "none"},
            json=payload
        )

        event_id = data.get("id")
        if not event_id:
            raise CalendarAPIError("Calendar API did not return an event id")

        return event_id

    def test_connection(self, calendar_id: str) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching calendar metadata.

        Returns:
            Calendar resource data

        Raises:
            CalendarAPIError: If connection test fails
        """
        url = f"{self.CALENDAR_API_ENDPOINT}/calendars/{quote(calendar_id, safe='')}"
        return self._request("GET", url)

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        headers = self._headers()

        try:
            if method == "GET":
                response = requests.get(url, headers=headers, timeout=self.timeout, **kwargs)
            else:
                response = requests.post(url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Calendar API request failed: {e}") from e

        if not response.ok:
            raise CalendarAPIError(
                f"Calendar API returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CalendarAPIError("Calendar API returned invalid JSON") from e

        if not isinstance(data, dict):
            raise CalendarAPIError("Calendar API returned an unexpected payload")

        return data

    def _parse_events(self, items: List[Dict[str, Any]]) -> List[BusyInterval]:
        """
        Parse event resources into busy intervals.

        Cancelled events are skipped. Any other event that cannot be parsed
        fails the whole read, since its time would otherwise look free.

        Event format:
        {
            "status": "confirmed",
            "summary": "...",
            "start": {"dateTime": "2024-11-25T10:00:00+01:00"} | {"date": "2024-11-25"},
            "end": {"dateTime": "2024-11-25T10:30:00+01:00"} | {"date": "2024-11-26"}
        }
        """
        busy: List[BusyInterval] = []

        for item in items:
            if item.get("status", "confirmed") == "cancelled":
                continue

            try:
                start, end = self._parse_event_bounds(item["start"], item["end"])
                busy.append(BusyInterval(start=start, end=end, summary=item.get("summary", "")))

            except (KeyError, TypeError, ValueError) as e:
                raise CalendarAPIError(
                    f"Could not parse calendar event {item.get('id', '?')}: {e}"
                ) from e

        return busy

    def _parse_event_bounds(self, start: Dict[str, str], end: Dict[str, str]):
        if "dateTime" in start and "dateTime" in end:
            return (
                self._parse_datetime(start["dateTime"]),
                self._parse_datetime(end["dateTime"])
            )

        # All-day event: the end date is exclusive, so it already names the
        # day after the last blocked one.
        first_day = self._parse_date(start["date"])
        end_day = self._parse_date(end["date"])
        if end_day <= first_day:
            end_day = first_day.add(days=1)

        return first_day, end_day

    def _parse_date(self, date_str: str) -> DateTime:
        return pendulum.from_format(date_str, "YYYY-MM-DD", tz=self.timezone).start_of("day")

    def _parse_datetime(self, datetime_str: str) -> DateTime:
        """
        Parse a datetime string to a pendulum DateTime in the configured timezone.
        """
        dt = pendulum.parse(datetime_str, tz=self.timezone)

        if isinstance(dt, DateTime):
            return dt.in_timezone(self.timezone)

        raise ValueError(f"Could not parse datetime: {datetime_str}")


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message", str(error))
    return str(error or data)
