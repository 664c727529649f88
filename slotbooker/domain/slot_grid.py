"""
Candidate slot grid generation.

Pure domain logic: the grid depends only on the business-hour policy and the
requested calendar days, never on calendar state.
"""

from datetime import date
from typing import Iterator, Tuple

import pendulum
from pendulum.parsing.exceptions import ParserError

from .exceptions import InvalidRangeError
from .models import BusinessHours, TimeRange

MIN_YEAR = 1900
MAX_YEAR = 9998


class SlotGrid:
    """
    Lazy, restartable sequence of fixed-duration candidate slots.

    Every call to ``iter()`` walks the range again from the first day, so the
    same grid can be consumed any number of times with identical results.
    """

    def __init__(self, business_hours: BusinessHours, range_start: date, range_end: date):
        self.business_hours = business_hours
        self.range_start = range_start
        self.range_end = range_end

    def __iter__(self) -> Iterator[TimeRange]:
        step = pendulum.duration(minutes=self.business_hours.slot_duration_minutes)

        for day in self.days():
            window = self.business_hours.get_window_for_day(day)
            if window is None:
                continue

            slot_start = window.start
            while slot_start < window.end:
                slot_end = slot_start + step
                # Slots that would run past closing time are dropped, never clipped
                if slot_end > window.end:
                    break
                yield TimeRange(start=slot_start, end=slot_end)
                slot_start = slot_end

    def days(self) -> Iterator[date]:
        """Iterate the calendar days of the range, inclusive."""
        current = pendulum.date(self.range_start.year, self.range_start.month, self.range_start.day)
        last = pendulum.date(self.range_end.year, self.range_end.month, self.range_end.day)

        while current <= last:
            yield current
            current = current.add(days=1)

    def window(self) -> TimeRange | None:
        """
        Return the instant range covering every queried day in the policy timezone.

        Returns None for an inverted range.
        """
        if self.range_end < self.range_start:
            return None

        tz = self.business_hours.timezone
        start = pendulum.datetime(
            self.range_start.year, self.range_start.month, self.range_start.day, tz=tz
        )
        end = pendulum.datetime(
            self.range_end.year, self.range_end.month, self.range_end.day, tz=tz
        ).add(days=1)
        return TimeRange(start=start, end=end)


class SlotGridGenerator:
    """Builds candidate slot grids from a business-hour policy."""

    def generate(
        self,
        business_hours: BusinessHours,
        range_start: date,
        range_end: date
    ) -> SlotGrid:
        """
        Generate all candidate slots between two calendar days, inclusive.

        An inverted or fully excluded range yields an empty grid.
        """
        return SlotGrid(business_hours, range_start, range_end)


def parse_day(value: str | None, timezone: str, field_name: str = "date") -> date:
    """
    Parse an ISO-8601 date (or datetime) string into a calendar day.

    Datetimes are converted to ``timezone`` before taking their date.

    Raises:
        InvalidRangeError: If the value is missing or cannot be parsed
    """
    if value is None or not str(value).strip():
        raise InvalidRangeError(f"{field_name} is required")

    try:
        parsed = pendulum.parse(str(value).strip(), tz=timezone)
        if isinstance(parsed, pendulum.DateTime):
            parsed = parsed.in_timezone(timezone).date()
    except (ParserError, ValueError, OverflowError) as exc:
        raise InvalidRangeError(f"Invalid {field_name}: {value!r}") from exc

    if not isinstance(parsed, pendulum.Date):
        raise InvalidRangeError(f"Invalid {field_name}: {value!r}")

    # Windows reach one day past the range in the policy timezone
    if not MIN_YEAR <= parsed.year <= MAX_YEAR:
        raise InvalidRangeError(
            f"{field_name} must be between the years {MIN_YEAR} and {MAX_YEAR}"
        )

    return parsed


def parse_date_range(
    start_text: str | None,
    end_text: str | None,
    timezone: str,
    max_days: int | None = None
) -> Tuple[date, date]:
    """
    Parse and validate a caller supplied date range.

    Raises:
        InvalidRangeError: If either bound is missing or malformed, or the
            range spans more than ``max_days`` days
    """
    if not start_text or not end_text:
        raise InvalidRangeError("startDate and endDate parameters are required")

    range_start = parse_day(start_text, timezone, "startDate")
    range_end = parse_day(end_text, timezone, "endDate")

    if max_days is not None and range_end.toordinal() - range_start.toordinal() + 1 > max_days:
        raise InvalidRangeError(f"Date range must not exceed {max_days} days")

    return range_start, range_end
