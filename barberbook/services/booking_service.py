"""
Application service for checking availability and booking appointments.

The service resolves catalog identifiers through the configuration, reads
busy intervals through a calendar source and delegates the slot arithmetic
to the domain-level ``SlotCalculator``. The calendar dependency is a simple
protocol so the Google adapter and the in-memory source are interchangeable.

There is no reservation hold and no in-process lock: a booking re-reads the
calendar right before writing. Two concurrent bookings for the same slot can
both see it free and both be written; the calendar stays the single source
of truth and that window is accepted.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional, Protocol

import pendulum
from pendulum import DateTime

from ..config import AppConfig, BarberConfig, ServiceConfig
from ..domain.exceptions import ConflictError, ValidationError
from ..domain.models import BookingOutcome, BookingRequest, BookingStatus, BusyInterval
from ..domain.slot_calculator import SlotCalculator, format_slot

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class CalendarSourceProtocol(Protocol):
    """Protocol describing the calendar operations needed by the service."""

    def list_busy(
        self,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[BusyInterval]:
        """Return every confirmed busy interval overlapping the range."""

    def insert_event(
        self,
        calendar_id: str,
        title: str,
        description: str,
        start: DateTime,
        end: DateTime,
    ) -> str:
        """Create one event and return its identifier."""


class BookingService:
    """
    Answers availability queries and books appointments for one shop.
    """

    def __init__(
        self,
        config: AppConfig,
        calendar_source: CalendarSourceProtocol,
        slot_calculator: Optional[SlotCalculator] = None,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._config = config
        self._calendar_source = calendar_source
        self._slot_calculator = slot_calculator or SlotCalculator(
            working_hours=config.to_working_hours(),
            exclude_past_slots=config.booking.exclude_past_slots,
        )
        self._clock = clock or (lambda: pendulum.now(config.timezone))

    def availability(self, date: str, barber_id: str, service_id: str) -> List[str]:
        """
        Return the free start times of a barber for a service on a date.

        Raises:
            ValidationError: For unknown identifiers or a malformed date
            UpstreamError: If the calendar cannot be read
        """
        barber = self._require_barber(barber_id)
        service = self._require_service(service_id)
        day = self._parse_date(date)

        candidates = self._slot_calculator.generate_candidates(day, service.duration_minutes)
        if not candidates:
            # Closed day: nothing to look up
            return []

        busy = self._calendar_source.list_busy(
            barber.calendar_id,
            day.start_of("day"),
            day.start_of("day").add(days=1),
        )

        free = self._slot_calculator.compute_free_slots(
            candidates,
            busy,
            service.duration_minutes,
            now=self._clock(),
        )
        return [format_slot(start) for start in free]

    def try_book(
        self,
        *,
        barber_id: str,
        service_id: str,
        date: str,
        time: str,
        customer_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> BookingOutcome:
        """
        Re-check the calendar and book the slot if it is still free.

        Returns:
            An ACCEPTED outcome carrying the created event id, or a CONFLICT
            outcome when the slot overlaps a busy interval (nothing is written)

        Raises:
            ValidationError: Before any calendar call, for invalid input
            UpstreamError: If the calendar cannot be read or written
        """
        barber = self._require_barber(barber_id)
        service = self._require_service(service_id)
        day = self._parse_date(date)
        start = self._parse_time(day, time)
        end = start.add(minutes=service.duration_minutes)

        name = (customer_name or "").strip()
        if not name:
            raise ValidationError("Customer name is required.")

        self._check_booking_window(start, service)

        busy = self._calendar_source.list_busy(barber.calendar_id, start, end)

        try:
            ensure_free(busy, start, end)
        except ConflictError as exc:
            logger.info(
                "Booking conflict for %s on %s %s: %s", barber.id, date, time, exc.interval
            )
            return BookingOutcome(
                status=BookingStatus.CONFLICT,
                message=str(exc),
                start=start,
                end=end,
            )

        event_id = self._calendar_source.insert_event(
            barber.calendar_id,
            title=f"Appointment: {name}",
            description=_describe_booking(service, barber, name, email, phone, notes),
            start=start,
            end=end,
        )

        logger.info(
            "Booked %s with %s on %s %s (event %s)", service.id, barber.id, date, time, event_id
        )
        return BookingOutcome(
            status=BookingStatus.ACCEPTED,
            message="Booking confirmed.",
            event_id=event_id,
            start=start,
            end=end,
        )

    def book(self, request: BookingRequest) -> BookingOutcome:
        """
        Book from a raw request, reporting validation problems as a REJECTED outcome.

        Upstream failures are not caught here; callers report them generically.
        """
        try:
            return self.try_book(
                barber_id=request.barber_id,
                service_id=request.service_id,
                date=request.date,
                time=request.time,
                customer_name=request.customer_name,
                email=request.email,
                phone=request.phone,
                notes=request.notes,
            )
        except ValidationError as exc:
            return BookingOutcome(status=BookingStatus.REJECTED, message=str(exc))

    def _require_barber(self, barber_id: str) -> BarberConfig:
        if not barber_id:
            raise ValidationError("Missing barber.")
        barber = self._config.find_barber(barber_id)
        if barber is None:
            raise ValidationError(f"Unknown barber: '{barber_id}'.")
        return barber

    def _require_service(self, service_id: str) -> ServiceConfig:
        if not service_id:
            raise ValidationError("Missing service.")
        service = self._config.find_service(service_id)
        if service is None:
            raise ValidationError(f"Unknown service: '{service_id}'.")
        return service

    def _parse_date(self, date: str) -> DateTime:
        if not date or not DATE_PATTERN.match(date):
            raise ValidationError(f"Invalid date '{date}', expected YYYY-MM-DD.")
        try:
            return pendulum.from_format(date, "YYYY-MM-DD", tz=self._config.timezone).start_of("day")
        except ValueError as exc:
            raise ValidationError(f"Invalid date '{date}': {exc}") from exc

    def _parse_time(self, day: DateTime, time: str) -> DateTime:
        match = TIME_PATTERN.match(time or "")
        if not match:
            raise ValidationError(f"Invalid time '{time}', expected HH:MM.")
        return day.set(hour=int(match.group(1)), minute=int(match.group(2)))

    def _check_booking_window(self, start: DateTime, service: ServiceConfig) -> None:
        if self._config.booking.enforce_business_hours and not self._slot_calculator.fits_working_hours(
            start, service.duration_minutes
        ):
            raise ValidationError(
                f"{start.format('YYYY-MM-DD HH:mm')} is outside business hours "
                f"for a {service.duration_minutes} minute service."
            )

        if self._config.booking.exclude_past_slots and start <= self._clock():
            raise ValidationError(f"{start.format('YYYY-MM-DD HH:mm')} has already passed.")


def ensure_free(busy: Iterable[BusyInterval], start: DateTime, end: DateTime) -> None:
    """
    Raise ConflictError if any busy interval overlaps [start, end).
    """
    for interval in busy:
        if interval.overlaps(start, end):
            raise ConflictError("That time slot is already taken.", interval=interval)


def _describe_booking(
    service: ServiceConfig,
    barber: BarberConfig,
    customer_name: str,
    email: Optional[str],
    phone: Optional[str],
    notes: Optional[str],
) -> str:
    return "\n".join(
        [
            f"Service: {service.display_name()} ({service.id})",
            f"Barber: {barber.display_name()}",
            f"Customer: {customer_name}",
            f"Email: {email or ''}",
            f"Phone: {phone or ''}",
            f"Notes: {notes or ''}",
        ]
    )
