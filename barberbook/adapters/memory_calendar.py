"""
In-memory calendar source for tests and for running without Google credentials.
"""

import json
import uuid
from pathlib import Path
from typing import Dict, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.models import BusyInterval

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class InMemoryCalendarSource:
    """
    Calendar source that keeps events in a dictionary keyed by calendar id.

    Every call is recorded in ``list_calls`` and ``insert_calls`` so tests
    can assert how often (and whether) the calendar was consulted. Setting
    ``fail_with`` makes every subsequent call raise that exception.
    """

    def __init__(
        self,
        events: Optional[Dict[str, List[BusyInterval]]] = None,
        fail_with: Optional[Exception] = None
    ):
        self.events: Dict[str, List[BusyInterval]] = {
            calendar_id: list(intervals) for calendar_id, intervals in (events or {}).items()
        }
        self.fail_with = fail_with
        self.list_calls: List[Dict[str, object]] = []
        self.insert_calls: List[Dict[str, object]] = []

    @classmethod
    def from_json(cls, data_file: Path = DEFAULT_DATA_FILE, timezone: str = "Europe/Madrid"):
        """
        Load events from a JSON file.

        Format: [{"calendarId": "...", "start": "...", "end": "...", "summary": "..."}]
        Entries that cannot be parsed are skipped.
        """
        events: Dict[str, List[BusyInterval]] = {}

        if data_file.exists():
            with open(data_file, "r", encoding="utf-8") as f:
                raw_events = json.load(f)
        else:
            raw_events = []

        for event in raw_events:
            try:
                interval = BusyInterval(
                    start=pendulum.parse(event["start"], tz=timezone),
                    end=pendulum.parse(event["end"], tz=timezone),
                    summary=event.get("summary", "")
                )
            except (KeyError, ValueError):
                continue
            events.setdefault(event.get("calendarId", ""), []).append(interval)

        return cls(events=events)

    def list_busy(
        self,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime
    ) -> List[BusyInterval]:
        """Return the stored intervals of a calendar that overlap the window."""
        self.list_calls.append(
            {"calendar_id": calendar_id, "start": range_start, "end": range_end}
        )
        if self.fail_with is not None:
            raise self.fail_with

        return [
            interval for interval in self.events.get(calendar_id, [])
            if interval.overlaps(range_start, range_end)
        ]

    def insert_event(
        self,
        calendar_id: str,
        title: str,
        description: str,
        start: DateTime,
        end: DateTime
    ) -> str:
        """Store a new event and return its generated identifier."""
        self.insert_calls.append(
            {
                "calendar_id": calendar_id,
                "title": title,
                "description": description,
                "start": start,
                "end": end,
            }
        )
        if self.fail_with is not None:
            raise self.fail_with

        self.events.setdefault(calendar_id, []).append(
            BusyInterval(start=start, end=end, summary=title)
        )
        return f"mock-{uuid.uuid4().hex[:12]}"

    @property
    def call_count(self) -> int:
        return len(self.list_calls) + len(self.insert_calls)
