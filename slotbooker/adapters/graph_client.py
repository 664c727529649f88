"""
Microsoft Graph API client for calendar and mail operations.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import pendulum
import requests
from pendulum import DateTime
from pendulum.parsing.exceptions import ParserError

from ..domain.exceptions import CalendarUnavailableError
from ..domain.models import BusySlot, BusyStatus, TimeRange

logger = logging.getLogger(__name__)

# Graph returns seven fractional digits ("2024-11-26T14:00:00.0000000")
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class GraphClient:
    """
    Client for Microsoft Graph API operations on a single mailbox.

    Uses the /calendar/getSchedule endpoint to fetch free/busy information,
    /calendar/events to book appointments and /sendMail for notifications.
    Every request is bounded by ``timeout`` seconds; timeouts surface as
    ``CalendarUnavailableError`` like any other transport failure.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        """
        Initialize the Graph API client.

        Args:
            timeout: Per-request timeout in seconds
            session: Optional requests session (connection pooling, tests)
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    @staticmethod
    def _headers(access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    def _request(
        self,
        method: str,
        path: str,
        access_token: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> requests.Response:
        url = f"{self.GRAPH_API_ENDPOINT}{path}"

        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(access_token),
                json=payload,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            logger.warning("Graph request %s %s timed out after %ss", method, path, self.timeout)
            raise CalendarUnavailableError(f"Microsoft Graph request timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.warning("Graph request %s %s failed: %s", method, path, e)
            raise CalendarUnavailableError(f"Microsoft Graph request failed: {e}") from e

        if not response.ok:
            logger.warning(
                "Graph request %s %s returned %s: %s",
                method, path, response.status_code, response.text[:500]
            )
            raise CalendarUnavailableError(
                f"Microsoft Graph returned HTTP {response.status_code} for {path}"
            )

        return response

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise CalendarUnavailableError(f"Invalid JSON from Microsoft Graph: {e}") from e

        if not isinstance(data, dict):
            raise CalendarUnavailableError("Unexpected response shape from Microsoft Graph")
        return data

    def get_schedule(
        self,
        calendar_email: str,
        start_time: DateTime,
        end_time: DateTime,
        access_token: str
    ) -> List[BusySlot]:
        """
        Get busy and tentative intervals for one mailbox.

        Uses the Microsoft Graph getSchedule API which returns free/busy information.

        Args:
            calendar_email: Mailbox whose calendar is queried
            start_time: Start of the time window
            end_time: End of the time window
            access_token: Bearer token for Microsoft Graph

        Returns:
            List of busy BusySlot objects, possibly empty

        Raises:
            CalendarUnavailableError: If the calendar cannot be queried
        """
        path = f"/users/{calendar_email}/calendar/getSchedule"

        # Prepare request body
        payload = {
            "schedules": [calendar_email],
            "startTime": {
                "dateTime": _graph_datetime(start_time),
                "timeZone": "UTC"
            },
            "endTime": {
                "dateTime": _graph_datetime(end_time),
                "timeZone": "UTC"
            },
            "availabilityViewInterval": 30
        }

        response = self._request("POST", path, access_token, payload)
        busy_slots = self._parse_schedule_response(self._json(response), calendar_email)

        logger.debug(
            "getSchedule %s %s..%s returned %d busy slot(s)",
            calendar_email, payload["startTime"]["dateTime"], payload["endTime"]["dateTime"],
            len(busy_slots)
        )
        return busy_slots

    def _parse_schedule_response(
        self,
        response_data: Dict[str, Any],
        calendar_email: str
    ) -> List[BusySlot]:
        """
        Parse the getSchedule API response into our domain model.

        Response format:
        {
            "value": [
                {
                    "scheduleId": "contact@example.com",
                    "availabilityView": "0020",
                    "scheduleItems": [
                        {
                            "status": "busy",
                            "subject": "...",
                            "start": {"dateTime": "...", "timeZone": "UTC"},
                            "end": {"dateTime": "...", "timeZone": "UTC"}
                        }
                    ]
                }
            ]
        }

        Anything that leaves the mailbox's busy times unknown is reported as
        unavailable, never as an empty calendar: an ``error`` entry, a missing
        schedule, a malformed entry or a blocking item that cannot be parsed.
        """
        schedule = self._select_schedule(response_data.get("value"), calendar_email)

        error = schedule.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise CalendarUnavailableError(
                f"Microsoft Graph could not read schedule for {calendar_email}: {message}"
            )

        items = schedule.get("scheduleItems")
        if not isinstance(items, list):
            raise CalendarUnavailableError(f"Schedule for {calendar_email} has no 'scheduleItems' array")

        busy_slots: List[BusySlot] = []

        for item in items:
            if not isinstance(item, dict):
                raise CalendarUnavailableError(f"Malformed schedule item for {calendar_email}: {item!r}")

            status = str(item.get("status", "")).lower()

            # Only busy and tentative block a slot; free, oof,
            # workingElsewhere and unknown never count as conflicts
            if status not in BusyStatus.BLOCKING:
                continue

            try:
                start = _parse_graph_datetime(item["start"])
                end = _parse_graph_datetime(item["end"])
                busy_slots.append(
                    BusySlot(
                        time_range=TimeRange(start=start, end=end),
                        status=status,
                        subject=item.get("subject"),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Could not parse %s schedule item %r: %s", status, item, e)
                raise CalendarUnavailableError(
                    f"Unreadable {status} entry in schedule for {calendar_email}"
                ) from e

        return busy_slots

    @staticmethod
    def _select_schedule(schedules: Any, calendar_email: str) -> Dict[str, Any]:
        """
        Pick the requested mailbox's entry from the ``value`` array.

        Only one mailbox is requested, so a single entry is accepted even
        when Graph reports it under another address (alias, proxy address).
        """
        if not isinstance(schedules, list):
            raise CalendarUnavailableError("getSchedule response has no 'value' array")
        if not schedules:
            raise CalendarUnavailableError(f"getSchedule returned no schedule for {calendar_email}")
        if not all(isinstance(schedule, dict) for schedule in schedules):
            raise CalendarUnavailableError("Malformed schedule entry in getSchedule response")

        for schedule in schedules:
            if str(schedule.get("scheduleId", "")).lower() == calendar_email.lower():
                return schedule

        if len(schedules) == 1:
            logger.debug(
                "getSchedule answered %s for %s; using the only schedule returned",
                schedules[0].get("scheduleId"), calendar_email
            )
            return schedules[0]

        raise CalendarUnavailableError(f"getSchedule response has no schedule for {calendar_email}")

    def create_event(
        self,
        calendar_email: str,
        event: Dict[str, Any],
        access_token: str
    ) -> Dict[str, Any]:
        """
        Create a calendar event in the mailbox's default calendar.

        Returns:
            The created event as returned by Graph (includes ``id``)

        Raises:
            CalendarUnavailableError: If the event could not be created
        """
        response = self._request("POST", f"/users/{calendar_email}/calendar/events", access_token, event)
        created = self._json(response)
        logger.info("Created calendar event %s for %s", created.get("id"), calendar_email)
        return created

    def send_mail(
        self,
        sender: str,
        message: Dict[str, Any],
        access_token: str
    ) -> None:
        """
        Send a mail message from ``sender``'s mailbox.

        Raises:
            CalendarUnavailableError: If Graph rejects or cannot receive the request
        """
        self._request(
            "POST",
            f"/users/{sender}/sendMail",
            access_token,
            {"message": message, "saveToSentItems": True}
        )

    def test_connection(self, calendar_email: str, access_token: str) -> Dict[str, Any]:
        """
        Test the connection and authentication by reading the calendar resource.

        Returns:
            Calendar metadata

        Raises:
            CalendarUnavailableError: If connection test fails
        """
        response = self._request("GET", f"/users/{calendar_email}/calendar", access_token)
        return self._json(response)


def _graph_datetime(value: DateTime) -> str:
    """Format an instant as the zone-less UTC wall clock Graph expects."""
    return value.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss")


def _parse_graph_datetime(value: Dict[str, Any]) -> DateTime:
    """
    Parse a Graph dateTimeTimeZone object to a pendulum DateTime.

    Args:
        value: Mapping with ``dateTime`` and optional ``timeZone``

    Returns:
        Pendulum DateTime object
    """
    text = _FRACTION_RE.sub(r"\1", value["dateTime"])
    try:
        # Requests carry Prefer: outlook.timezone="UTC"
        dt = pendulum.parse(text, tz="UTC")
    except ParserError as e:
        raise ValueError(f"Could not parse datetime: {value['dateTime']}") from e

    if isinstance(dt, DateTime):
        return dt

    # If parsing failed, raise error
    raise ValueError(f"Could not parse datetime: {value['dateTime']}")
