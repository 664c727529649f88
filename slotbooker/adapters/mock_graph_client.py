"""
Mock Microsoft Graph API client for testing without Azure authentication.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import AuthenticationError, CalendarUnavailableError
from ..domain.models import BusySlot, BusyStatus, TimeRange

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockGraphClient:
    """
    Mock client that simulates Microsoft Graph API responses.

    Busy intervals come from a list of event dicts (by default loaded from
    mock_calendar_data.json). Events created through ``create_event`` are
    added to that list, so a booked slot shows up as busy afterwards.
    Setting ``unavailable`` makes every call raise ``CalendarUnavailableError``.
    """

    def __init__(
        self,
        events: Optional[List[Dict[str, Any]]] = None,
        data_file: Optional[Path] = None,
        unavailable: bool = False
    ):
        """
        Initialize the mock client.

        Args:
            events: Calendar events (``calendarId``, ``start``, ``end``, ``status``, ``subject``)
            data_file: JSON file to load events from when ``events`` is not given
            unavailable: Simulate an unreachable calendar
        """
        self.calendar_events = list(events) if events is not None else self._load_calendar_data(
            data_file or DEFAULT_DATA_FILE
        )
        self.unavailable = unavailable
        self.created_events: List[Dict[str, Any]] = []
        self.sent_mail: List[Dict[str, Any]] = []
        self.schedule_calls = 0

    @staticmethod
    def _load_calendar_data(data_file: Path) -> List[Dict[str, Any]]:
        """Load mock calendar data from JSON file."""
        if not data_file.exists():
            # Fallback to empty if file doesn't exist
            return []

        with open(data_file, "r", encoding="utf-8") as f:
            return json.load(f)

    def _check_available(self) -> None:
        if self.unavailable:
            raise CalendarUnavailableError("Mock calendar is unavailable")

    def get_schedule(
        self,
        calendar_email: str,
        start_time: DateTime,
        end_time: DateTime,
        access_token: str
    ) -> List[BusySlot]:
        """
        Load busy times from the mock calendar data.

        Only events of ``calendar_email`` that overlap the window and whose
        status is busy or tentative are returned.
        """
        self.schedule_calls += 1
        self._check_available()

        window = TimeRange(start=start_time, end=end_time)
        busy_slots: List[BusySlot] = []

        for event in self.calendar_events:
            calendar_id = event.get("calendarId")
            if calendar_id and calendar_id.lower() != calendar_email.lower():
                continue

            status = str(event.get("status", BusyStatus.BUSY)).lower()
            if status not in BusyStatus.BLOCKING:
                continue

            try:
                time_range = TimeRange(
                    start=pendulum.parse(event["start"], tz="UTC"),
                    end=pendulum.parse(event["end"], tz="UTC"),
                )
            except (KeyError, ValueError) as e:
                logger.warning("Skipping invalid mock event %r: %s", event, e)
                continue

            # Check if event overlaps with requested time window
            if time_range.overlaps(window):
                busy_slots.append(
                    BusySlot(time_range=time_range, status=status, subject=event.get("subject"))
                )

        return busy_slots

    def create_event(
        self,
        calendar_email: str,
        event: Dict[str, Any],
        access_token: str
    ) -> Dict[str, Any]:
        """Record the event and mark its time as busy."""
        self._check_available()

        event_id = f"mock-event-{len(self.created_events) + 1}"
        created = dict(event, id=event_id)
        self.created_events.append(created)

        tz = event["start"].get("timeZone", "UTC")
        self.calendar_events.append({
            "calendarId": calendar_email,
            "start": pendulum.parse(event["start"]["dateTime"], tz=tz).to_iso8601_string(),
            "end": pendulum.parse(event["end"]["dateTime"], tz=tz).to_iso8601_string(),
            "status": BusyStatus.BUSY,
            "subject": event.get("subject"),
        })
        return created

    def send_mail(self, sender: str, message: Dict[str, Any], access_token: str) -> None:
        """Record the message instead of sending it."""
        self._check_available()
        self.sent_mail.append({"sender": sender, "message": message})

    def test_connection(self, calendar_email: str, access_token: str) -> Dict[str, Any]:
        """
        Mock connection test.

        Returns:
            Mock calendar metadata
        """
        self._check_available()
        return {
            "name": "Calendar",
            "owner": {"name": "Mock Mailbox", "address": calendar_email},
        }


class MockGraphAuthenticator:
    """
    Mock authenticator that bypasses actual Microsoft authentication.

    This is useful for testing the application without requiring
    Azure AD setup or credentials.
    """

    def __init__(self, fail: bool = False, **kwargs):
        """
        Initialize the mock authenticator.

        Args:
            fail: Raise AuthenticationError instead of returning a token
            **kwargs: Additional arguments (ignored for compatibility)
        """
        self.fail = fail
        self.calls = 0

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Return a mock access token.

        Args:
            force_refresh: Ignored in mock mode

        Returns:
            Mock token string
        """
        self.calls += 1
        if self.fail:
            raise AuthenticationError("Mock authentication failure")
        return "mock_access_token_12345"

    def clear_cache(self) -> None:
        """Mock cache clear (does nothing)."""
        pass
