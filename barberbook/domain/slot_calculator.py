"""
Core business logic for calculating bookable start times.

Pure domain logic without any external dependencies (no API calls,
no database, no I/O).
"""

from typing import Iterable, List, Optional, Sequence

from pendulum import DateTime

from .models import BusyInterval, WorkingHours


SLOT_FORMAT = "HH:mm"


def format_slot(start: DateTime) -> str:
    """Render a slot start as a zero-padded 24h 'HH:MM' string."""
    return start.format(SLOT_FORMAT)


class SlotCalculator:
    """
    Calculates free booking start times from working hours and busy intervals.

    Algorithm:
    1. Return nothing if the shop is closed on the requested day
    2. Step from opening time in ``step_minutes`` increments
    3. Drop candidates whose service would run past closing time
    4. Drop candidates overlapping any busy interval
    5. Optionally drop candidates that already started today
    """

    def __init__(self, working_hours: WorkingHours, exclude_past_slots: bool = True):
        self.working_hours = working_hours
        self.exclude_past_slots = exclude_past_slots

    def generate_candidates(self, day: DateTime, duration_minutes: int) -> List[DateTime]:
        """
        Generate all candidate start times for a day.

        Args:
            day: Any datetime on the requested day
            duration_minutes: Length of the service

        Returns:
            Ascending list of start times whose service ends by closing time
        """
        if duration_minutes <= 0:
            raise ValueError(f"Service duration must be positive, got {duration_minutes}")

        if not self.working_hours.is_open_day(day):
            return []

        opening = self.working_hours.opening_time(day)
        closing = self.working_hours.closing_time(day)

        candidates: List[DateTime] = []
        current = opening

        while current < closing:
            if current.add(minutes=duration_minutes) <= closing:
                candidates.append(current)
            current = current.add(minutes=self.working_hours.step_minutes)

        return candidates

    def compute_free_slots(
        self,
        candidates: Sequence[DateTime],
        busy_intervals: Iterable[BusyInterval],
        duration_minutes: int,
        now: Optional[DateTime] = None
    ) -> List[DateTime]:
        """
        Filter candidates down to the ones that do not collide with busy time.

        Args:
            candidates: Start times as produced by ``generate_candidates``
            busy_intervals: Busy intervals of the barber
            duration_minutes: Length of the service
            now: Current instant, used to drop elapsed slots on today's date

        Returns:
            Candidates in their original order, minus the blocked ones
        """
        busy = list(busy_intervals)
        free: List[DateTime] = []

        for start in candidates:
            if self._has_started(start, now):
                continue

            end = start.add(minutes=duration_minutes)
            if any(interval.overlaps(start, end) for interval in busy):
                continue

            free.append(start)

        return free

    def find_available_slots(
        self,
        day: DateTime,
        busy_intervals: Iterable[BusyInterval],
        duration_minutes: int,
        now: Optional[DateTime] = None
    ) -> List[str]:
        """Return the free start times of a day as 'HH:MM' strings."""
        candidates = self.generate_candidates(day, duration_minutes)
        free = self.compute_free_slots(candidates, busy_intervals, duration_minutes, now=now)
        return [format_slot(start) for start in free]

    def fits_working_hours(self, start: DateTime, duration_minutes: int) -> bool:
        """Check that [start, start + duration) lies inside the opening hours of its day."""
        if not self.working_hours.is_open_day(start):
            return False

        end = start.add(minutes=duration_minutes)
        return (
            start >= self.working_hours.opening_time(start)
            and end <= self.working_hours.closing_time(start)
        )

    def _has_started(self, start: DateTime, now: Optional[DateTime]) -> bool:
        if not self.exclude_past_slots or now is None:
            return False

        local_now = now.in_timezone(self.working_hours.timezone)
        if start.in_timezone(self.working_hours.timezone).date() != local_now.date():
            return False

        return start <= local_now
