"""
Tests for domain models.
"""

import pendulum
import pytest
from datetime import time

from slotbooker.domain.models import (
    AvailabilityResult,
    AvailableSlot,
    BusinessHours,
    BusySlot,
    BusyStatus,
    ContactDetails,
    TimeRange,
)


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        start = pendulum.parse("2024-11-26 14:00", tz="Europe/Paris")
        end = pendulum.parse("2024-11-26 16:30", tz="Europe/Paris")

        tr = TimeRange(start=start, end=end)

        assert tr.start == start
        assert tr.end == end
        assert tr.duration_minutes() == 150

    def test_invalid_time_range_raises_error(self):
        """Test that creating an invalid time range raises ValueError."""
        start = pendulum.parse("2024-11-26 16:00", tz="Europe/Paris")
        end = pendulum.parse("2024-11-26 14:00", tz="Europe/Paris")

        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            TimeRange(start=start, end=end)

    def test_zero_length_range_is_rejected(self):
        """A range must have a non-zero duration."""
        instant = pendulum.parse("2024-11-26 14:00", tz="Europe/Paris")

        with pytest.raises(ValueError):
            TimeRange(start=instant, end=instant)

    def test_overlaps(self):
        """Test overlap detection."""
        tr1 = TimeRange(
            start=pendulum.parse("2024-11-26 14:00", tz="Europe/Paris"),
            end=pendulum.parse("2024-11-26 15:00", tz="Europe/Paris")
        )
        tr2 = TimeRange(
            start=pendulum.parse("2024-11-26 14:30", tz="Europe/Paris"),
            end=pendulum.parse("2024-11-26 15:30", tz="Europe/Paris")
        )
        tr3 = TimeRange(
            start=pendulum.parse("2024-11-26 15:00", tz="Europe/Paris"),
            end=pendulum.parse("2024-11-26 16:00", tz="Europe/Paris")
        )

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert not tr1.overlaps(tr3)
        assert not tr3.overlaps(tr1)

    def test_overlap_across_timezones(self):
        """Instants are compared, not wall-clock values."""
        paris = TimeRange(
            start=pendulum.parse("2024-11-26 15:00", tz="Europe/Paris"),
            end=pendulum.parse("2024-11-26 15:30", tz="Europe/Paris")
        )
        utc = TimeRange(
            start=pendulum.parse("2024-11-26T14:00:00Z"),
            end=pendulum.parse("2024-11-26T14:30:00Z")
        )

        assert paris == utc
        assert paris.overlaps(utc)


class TestBusinessHours:
    """Tests for BusinessHours model."""

    def test_is_working_day(self):
        """Test working day detection."""
        business_hours = BusinessHours(
            start_time=time(14, 0),
            end_time=time(16, 30),
            exclude_weekdays=[5, 6]  # Saturday, Sunday
        )

        assert business_hours.is_working_day(pendulum.date(2024, 11, 25))  # Monday
        assert not business_hours.is_working_day(pendulum.date(2024, 11, 23))  # Saturday
        assert not business_hours.is_working_day(pendulum.date(2024, 11, 24))  # Sunday

    def test_get_window_for_day(self):
        """Test getting the bookable window for a specific day."""
        business_hours = BusinessHours(
            start_time=time(14, 0),
            end_time=time(16, 30),
            timezone="Europe/Paris"
        )

        window = business_hours.get_window_for_day(pendulum.date(2024, 11, 26))

        assert window is not None
        assert window.start == pendulum.parse("2024-11-26T13:00:00Z")
        assert window.end == pendulum.parse("2024-11-26T15:30:00Z")
        assert window.start.timezone_name == "Europe/Paris"

    def test_get_window_for_weekend(self):
        """Test getting the window for an excluded day returns None."""
        business_hours = BusinessHours(start_time=time(14, 0), end_time=time(16, 30))

        assert business_hours.get_window_for_day(pendulum.date(2024, 11, 23)) is None

    def test_invalid_policy(self):
        """Start must precede end and duration must be positive."""
        with pytest.raises(ValueError):
            BusinessHours(start_time=time(16, 0), end_time=time(14, 0))

        with pytest.raises(ValueError):
            BusinessHours(start_time=time(14, 0), end_time=time(16, 0), slot_duration_minutes=0)


class TestAvailableSlot:
    """Tests for AvailableSlot serialisation."""

    def test_to_dict_uses_utc_instants_and_local_display_fields(self):
        slot = AvailableSlot(
            time_range=TimeRange(
                start=pendulum.parse("2024-11-26 14:00", tz="Europe/Paris"),
                end=pendulum.parse("2024-11-26 14:30", tz="Europe/Paris"),
            ),
            timezone="Europe/Paris",
        )

        assert slot.to_dict() == {
            "start": "2024-11-26T13:00:00Z",
            "end": "2024-11-26T13:30:00Z",
            "date": "2024-11-26",
            "time": "14:00",
            "available": True,
        }

    def test_display_fields_follow_business_timezone(self):
        """A slot just after local midnight belongs to the local calendar day."""
        slot = AvailableSlot(
            time_range=TimeRange(
                start=pendulum.parse("2024-11-25T23:30:00Z"),
                end=pendulum.parse("2024-11-26T00:00:00Z"),
            ),
            timezone="Europe/Paris",
        )

        assert slot.date == "2024-11-26"
        assert slot.time == "00:30"

    def test_format_display(self):
        slot = AvailableSlot(
            time_range=TimeRange(
                start=pendulum.parse("2024-11-26 14:00", tz="Europe/Paris"),
                end=pendulum.parse("2024-11-26 14:30", tz="Europe/Paris"),
            ),
            timezone="Europe/Paris",
        )

        assert slot.format_display() == "Dienstag, 26.11.2024 | 14:00 – 14:30 Uhr"


class TestBusySlotAndResult:
    """Tests for BusySlot and AvailabilityResult."""

    def test_busy_slot_blocks_overlapping_candidate(self):
        busy = BusySlot(
            time_range=TimeRange(
                start=pendulum.parse("2024-11-26 14:00", tz="Europe/Paris"),
                end=pendulum.parse("2024-11-26 14:10", tz="Europe/Paris"),
            ),
            status=BusyStatus.TENTATIVE,
        )
        candidate = TimeRange(
            start=pendulum.parse("2024-11-26 14:00", tz="Europe/Paris"),
            end=pendulum.parse("2024-11-26 14:30", tz="Europe/Paris"),
        )

        assert busy.blocks(candidate)

    def test_calendar_integration_flag(self):
        assert AvailabilityResult(slots=[], degraded=False).calendar_integration == "active"
        assert AvailabilityResult(slots=[], degraded=True).calendar_integration == "fallback"

    def test_contact_full_name(self):
        contact = ContactDetails(first_name="Ada", last_name="Lovelace", email="a@b.c", phone="1")

        assert contact.full_name == "Ada Lovelace"
