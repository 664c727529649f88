"""
Booking submission: validate a requested slot, re-check it against the live
calendar and create the event.
"""

from __future__ import annotations

import logging
import re
from datetime import time
from typing import Any, Callable, Dict, Protocol

import pendulum
from pendulum import DateTime

from ..domain.exceptions import (
    BookingConflictError,
    CalendarUnavailableError,
    InvalidBookingError,
    NotificationError,
)
from ..domain.models import (
    AppointmentRequest,
    BookingOutcome,
    BookingResult,
    BusinessHours,
    TimeRange,
)
from ..domain.slot_grid import SlotGridGenerator
from .availability import BusyIntervalFetcher, TokenProviderProtocol, overlaps_any
from .notifications import GraphMailNotifier

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class EventClientProtocol(Protocol):
    def create_event(
        self,
        calendar_email: str,
        event: Dict[str, Any],
        access_token: str,
    ) -> Dict[str, Any]:
        """Create an event and return the provider's representation."""


class BookingService:
    """
    Books appointment slots in the business calendar.

    Availability shown to a visitor can be stale by the time they submit,
    so the slot is checked against fresh busy intervals right before the
    event is created. When the calendar cannot be reached the request is
    forwarded by email instead of being lost.
    """

    def __init__(
        self,
        business_hours: BusinessHours,
        fetcher: BusyIntervalFetcher,
        token_provider: TokenProviderProtocol,
        event_client: EventClientProtocol,
        calendar_id: str,
        notifier: GraphMailNotifier | None = None,
        grid_generator: SlotGridGenerator | None = None,
        clock: Callable[[], DateTime] | None = None,
    ) -> None:
        self.business_hours = business_hours
        self.calendar_id = calendar_id
        self._fetcher = fetcher
        self._token_provider = token_provider
        self._event_client = event_client
        self._notifier = notifier
        self._grid_generator = grid_generator or SlotGridGenerator()
        self._clock = clock or pendulum.now

    def book(self, request: AppointmentRequest) -> BookingResult:
        """
        Book the requested slot.

        Raises:
            InvalidBookingError: If the request is not a bookable grid slot
            BookingConflictError: If the slot is already taken in the calendar
        """
        slot = self.build_slot(request)
        self.validate_slot(slot)

        try:
            busy_slots = self._fetcher.fetch(self.calendar_id, slot.start, slot.end)
            if overlaps_any(slot, busy_slots):
                logger.info("Slot %s was taken before submission", slot)
                raise BookingConflictError(
                    "This time slot is no longer available. Please pick another time."
                )

            access_token = self._token_provider.get_access_token()
        except CalendarUnavailableError as exc:
            logger.warning("Calendar unavailable while booking %s: %s", slot, exc)
            return self._email_fallback(request, slot)

        try:
            created = self._event_client.create_event(
                self.calendar_id,
                self.build_event(request, slot),
                access_token,
            )
        except CalendarUnavailableError as exc:
            # The POST may have reached Graph before failing
            logger.warning(
                "Event creation for %s failed, event state unknown (%s); forwarding by email",
                slot, exc
            )
            return self._email_fallback(request, slot, event_may_exist=True)

        event_id = created.get("id")
        self._confirm(request, slot, event_id)

        return BookingResult(
            success=True,
            type=BookingOutcome.APPOINTMENT,
            message="Your appointment has been booked. A confirmation email is on its way.",
            event_id=event_id,
            slot=slot,
        )

    def build_slot(self, request: AppointmentRequest) -> TimeRange:
        """Turn the requested day and HH:MM into a slot in the business timezone."""
        match = _TIME_RE.match(request.time.strip()) if request.time else None
        if match is None:
            raise InvalidBookingError(f"Invalid appointment time: {request.time!r}")

        start = self.business_hours.at(
            request.day,
            time(int(match.group(1)), int(match.group(2))),
        )
        end = start.add(minutes=self.business_hours.slot_duration_minutes)
        return TimeRange(start=start, end=end)

    def validate_slot(self, slot: TimeRange) -> None:
        """
        Check that the slot is in the future and on the business-hour grid.

        Raises:
            InvalidBookingError: If the slot cannot be booked under the policy
        """
        if slot.start <= self._clock():
            raise InvalidBookingError("Appointments cannot be booked in the past")

        day = slot.start.in_timezone(self.business_hours.timezone).date()
        if not self.business_hours.is_working_day(day):
            raise InvalidBookingError("Appointments are not offered on this day")

        grid = self._grid_generator.generate(self.business_hours, day, day)
        if slot not in list(grid):
            raise InvalidBookingError(
                "The selected time is outside business hours. "
                f"Please choose a time between {self.business_hours.start_time:%H:%M} "
                f"and {self.business_hours.end_time:%H:%M}."
            )

    def build_event(self, request: AppointmentRequest, slot: TimeRange) -> Dict[str, Any]:
        """Build the Graph event resource for a booking."""
        tz = self.business_hours.timezone
        contact = request.contact

        lines = [
            "Appointment booked via the website",
            "",
            f"Name: {contact.full_name}",
            f"Email: {contact.email}",
            f"Phone: {contact.phone}",
        ]
        if contact.company:
            lines.append(f"Company: {contact.company}")
        if contact.message:
            lines.extend(["", "Message:", contact.message])

        return {
            "subject": f"Appointment via website - {contact.full_name}",
            "start": {
                "dateTime": slot.start.in_timezone(tz).format("YYYY-MM-DDTHH:mm:ss"),
                "timeZone": tz,
            },
            "end": {
                "dateTime": slot.end.in_timezone(tz).format("YYYY-MM-DDTHH:mm:ss"),
                "timeZone": tz,
            },
            "body": {"contentType": "Text", "content": "\n".join(lines)},
            "attendees": [
                {
                    "emailAddress": {"address": contact.email, "name": contact.full_name},
                    "type": "required",
                }
            ],
            "showAs": "busy",
        }

    def _confirm(self, request: AppointmentRequest, slot: TimeRange, event_id: str | None) -> None:
        # The calendar event is authoritative; a lost email never undoes it
        if self._notifier is None:
            return
        try:
            self._notifier.send_booking_confirmation(request, slot, event_id)
        except NotificationError as exc:
            logger.warning("Booking %s created but confirmation email failed: %s", event_id, exc)

    def _email_fallback(
        self,
        request: AppointmentRequest,
        slot: TimeRange,
        event_may_exist: bool = False,
    ) -> BookingResult:
        if self._notifier is not None:
            try:
                self._notifier.send_appointment_request(request, slot, event_may_exist=event_may_exist)
            except NotificationError as exc:
                logger.error("Email fallback for %s failed as well: %s", request.contact.email, exc)
            else:
                return BookingResult(
                    success=True,
                    type=BookingOutcome.EMAIL_FALLBACK,
                    message=(
                        "The calendar service is temporarily unavailable. Your request has been "
                        "sent by email and we will contact you to confirm the appointment."
                    ),
                    slot=slot,
                )

        return BookingResult(
            success=False,
            type=BookingOutcome.EMAIL_FALLBACK,
            message="Something went wrong. Please contact us directly by phone.",
            slot=slot,
        )
