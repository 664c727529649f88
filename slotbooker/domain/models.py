"""
Domain models for business hours, time ranges and bookable slots.
"""

from dataclasses import dataclass, field
from datetime import date, time
from typing import List, Optional

import pendulum
from pendulum import DateTime


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Ranges are half-open, so ranges that only touch (one ends exactly
        where the other starts) do not overlap.
        """
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass
class BusinessHours:
    """
    Business-hour policy used to build the candidate slot grid.

    Wall-clock times are interpreted in ``timezone``.
    """
    start_time: time
    end_time: time
    slot_duration_minutes: int = 30
    timezone: str = "Europe/Paris"
    exclude_weekdays: List[int] = field(default_factory=lambda: [5, 6])  # 0=Monday, 6=Sunday

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Business start time {self.start_time} must be before end time {self.end_time}"
            )
        if self.slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be greater than zero")

    def is_working_day(self, day: date) -> bool:
        """Check if a given calendar day is open for appointments."""
        return day.weekday() not in self.exclude_weekdays

    def at(self, day: date, wall_clock: time) -> DateTime:
        """Build the instant for a wall-clock time on ``day`` in the policy timezone."""
        return pendulum.datetime(
            day.year,
            day.month,
            day.day,
            wall_clock.hour,
            wall_clock.minute,
            tz=self.timezone,
        )

    def get_window_for_day(self, day: date) -> TimeRange | None:
        """
        Get the bookable window for a specific day.
        Returns None if it's not a working day.
        """
        if not self.is_working_day(day):
            return None

        return TimeRange(
            start=self.at(day, self.start_time),
            end=self.at(day, self.end_time),
        )


class BusyStatus:
    """Calendar free/busy states that block a slot."""
    BUSY = "busy"
    TENTATIVE = "tentative"

    BLOCKING = frozenset({BUSY, TENTATIVE})


@dataclass(frozen=True)
class BusySlot:
    """A busy interval reported by the remote calendar."""
    time_range: TimeRange
    status: str = BusyStatus.BUSY
    subject: Optional[str] = None

    def blocks(self, candidate: TimeRange) -> bool:
        """Return True when this busy interval overlaps ``candidate``."""
        return self.time_range.overlaps(candidate)


@dataclass(frozen=True)
class AvailableSlot:
    """
    A candidate slot that survived filtering against the calendar.

    ``date`` and ``time`` are display fields in the business timezone.
    """
    time_range: TimeRange
    timezone: str

    @property
    def local_start(self) -> DateTime:
        return self.time_range.start.in_timezone(self.timezone)

    @property
    def date(self) -> str:
        return self.local_start.to_date_string()

    @property
    def time(self) -> str:
        return self.local_start.format("HH:mm")

    def to_dict(self) -> dict:
        """Serialize to the public JSON shape."""
        return {
            "start": self.time_range.start.in_timezone("UTC").to_iso8601_string(),
            "end": self.time_range.end.in_timezone("UTC").to_iso8601_string(),
            "date": self.date,
            "time": self.time,
            "available": True,
        }

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Wochentag, DD.MM.YYYY | HH:MM – HH:MM Uhr
        """
        weekday_names = {
            0: "Montag",
            1: "Dienstag",
            2: "Mittwoch",
            3: "Donnerstag",
            4: "Freitag",
            5: "Samstag",
            6: "Sonntag"
        }

        start = self.local_start
        end = self.time_range.end.in_timezone(self.timezone)
        weekday = weekday_names[start.weekday()]

        return (
            f"{weekday}, {start.format('DD.MM.YYYY')} | "
            f"{start.format('HH:mm')} – {end.format('HH:mm')} Uhr"
        )


@dataclass
class AvailabilityResult:
    """Outcome of one availability resolution."""
    slots: List[AvailableSlot]
    degraded: bool
    busy_count: int = 0

    @property
    def calendar_integration(self) -> str:
        return "fallback" if self.degraded else "active"


@dataclass(frozen=True)
class ContactDetails:
    """Visitor details captured by the appointment form."""
    first_name: str
    last_name: str
    email: str
    phone: str
    message: str = ""
    company: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class AppointmentRequest:
    """A booking request for one slot, given as business-local day and HH:MM."""
    contact: ContactDetails
    day: date
    time: str


class BookingOutcome:
    APPOINTMENT = "appointment"
    EMAIL_FALLBACK = "email_fallback"


@dataclass
class BookingResult:
    """Result of a booking submission."""
    success: bool
    type: str
    message: str
    event_id: Optional[str] = None
    slot: Optional[TimeRange] = None
