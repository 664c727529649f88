"""
Tests for the Microsoft Graph client, using a fake requests session.
"""

from datetime import date, time
from typing import Any, Dict, List

import pendulum
import pytest
import requests

from slotbooker.adapters.graph_client import GraphClient
from slotbooker.adapters.mock_graph_client import MockGraphAuthenticator
from slotbooker.domain.exceptions import CalendarUnavailableError
from slotbooker.domain.models import BusinessHours
from slotbooker.services.availability import AvailabilityResolver, BusyIntervalFetcher

MAILBOX = "contact@example.com"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Records requests and replays a canned response or error."""

    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None):
        self.response = response or FakeResponse(payload={})
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.requests.append(
            {"method": method, "url": url, "headers": headers, "json": json, "timeout": timeout}
        )
        if self.error is not None:
            raise self.error
        return self.response


def _item(status: str, start: str, end: str, subject: str = "Meeting") -> Dict[str, Any]:
    return {
        "status": status,
        "subject": subject,
        "start": {"dateTime": start, "timeZone": "UTC"},
        "end": {"dateTime": end, "timeZone": "UTC"},
    }


def _schedule(*items, schedule_id: str = MAILBOX, **extra) -> Dict[str, Any]:
    return {"value": [{"scheduleId": schedule_id, "scheduleItems": list(items), **extra}]}


def _fetch(session: FakeSession):
    client = GraphClient(timeout=3.5, session=session)
    return client.get_schedule(
        MAILBOX,
        pendulum.parse("2024-11-26 00:00", tz="Europe/Paris"),
        pendulum.parse("2024-11-27 00:00", tz="Europe/Paris"),
        "token-abc",
    )


class TestGetSchedule:
    """Tests for the getSchedule query."""

    def test_request_shape(self):
        session = FakeSession(FakeResponse(payload=_schedule()))

        _fetch(session)

        sent = session.requests[0]
        assert sent["method"] == "POST"
        assert sent["url"] == f"https://graph.microsoft.com/v1.0/users/{MAILBOX}/calendar/getSchedule"
        assert sent["timeout"] == 3.5
        assert sent["headers"]["Authorization"] == "Bearer token-abc"
        assert sent["headers"]["Prefer"] == 'outlook.timezone="UTC"'
        assert sent["json"] == {
            "schedules": [MAILBOX],
            "startTime": {"dateTime": "2024-11-25T23:00:00", "timeZone": "UTC"},
            "endTime": {"dateTime": "2024-11-26T23:00:00", "timeZone": "UTC"},
            "availabilityViewInterval": 30,
        }

    def test_only_busy_and_tentative_are_returned(self):
        session = FakeSession(FakeResponse(payload=_schedule(
            _item("busy", "2024-11-26T14:00:00.0000000", "2024-11-26T14:30:00.0000000"),
            _item("Tentative", "2024-11-26T15:00:00.0000000", "2024-11-26T15:30:00.0000000"),
            _item("free", "2024-11-26T09:00:00.0000000", "2024-11-26T10:00:00.0000000"),
            _item("oof", "2024-11-26T10:00:00.0000000", "2024-11-26T11:00:00.0000000"),
            _item("workingElsewhere", "2024-11-26T11:00:00.0000000", "2024-11-26T12:00:00.0000000"),
        )))

        busy = _fetch(session)

        assert [slot.status for slot in busy] == ["busy", "tentative"]
        assert busy[0].time_range.start == pendulum.parse("2024-11-26T14:00:00Z")
        assert busy[0].time_range.end == pendulum.parse("2024-11-26T14:30:00Z")
        assert busy[0].subject == "Meeting"

    def test_empty_schedule_is_an_empty_list(self):
        assert _fetch(FakeSession(FakeResponse(payload=_schedule()))) == []

    def test_single_schedule_under_alias_is_used(self):
        """Graph may answer with a canonical address instead of the one requested."""
        payload = _schedule(
            _item("busy", "2024-11-26T13:00:00", "2024-11-26T15:30:00"),
            schedule_id="alias@example.com",
        )

        busy = _fetch(FakeSession(FakeResponse(payload=payload)))

        assert len(busy) == 1
        assert busy[0].time_range.start == pendulum.parse("2024-11-26T13:00:00Z")

    def test_matching_schedule_is_picked_among_several(self):
        payload = {"value": [
            {"scheduleId": "other@example.com", "scheduleItems": [
                _item("busy", "2024-11-26T09:00:00", "2024-11-26T10:00:00"),
            ]},
            {"scheduleId": MAILBOX.upper(), "scheduleItems": [
                _item("busy", "2024-11-26T14:00:00", "2024-11-26T14:30:00"),
            ]},
        ]}

        busy = _fetch(FakeSession(FakeResponse(payload=payload)))

        assert [slot.time_range.start for slot in busy] == [pendulum.parse("2024-11-26T14:00:00Z")]

    def test_no_schedule_for_mailbox_is_unavailable(self):
        payload = {"value": [
            {"scheduleId": "a@example.com", "scheduleItems": []},
            {"scheduleId": "b@example.com", "scheduleItems": []},
        ]}

        with pytest.raises(CalendarUnavailableError):
            _fetch(FakeSession(FakeResponse(payload=payload)))

    def test_empty_value_array_is_unavailable(self):
        """No schedule at all means unknown busy times, not a free calendar."""
        with pytest.raises(CalendarUnavailableError):
            _fetch(FakeSession(FakeResponse(payload={"value": []})))

    @pytest.mark.parametrize("payload", [
        {"value": [None]},
        {"value": ["contact@example.com"]},
        {"value": [{"scheduleId": MAILBOX, "scheduleItems": [None]}]},
        {"value": [{"scheduleId": MAILBOX, "scheduleItems": "busy"}]},
        {"value": [{"scheduleId": MAILBOX}]},
    ])
    def test_malformed_entries_are_unavailable(self, payload):
        with pytest.raises(CalendarUnavailableError):
            _fetch(FakeSession(FakeResponse(payload=payload)))

    @pytest.mark.parametrize("item", [
        _item("busy", "garbage", "2024-11-26T14:30:00"),
        {"status": "busy"},
        {"status": "tentative", "start": "2024-11-26T14:00:00", "end": "2024-11-26T14:30:00"},
        _item("busy", "2024-11-26T15:00:00", "2024-11-26T14:00:00"),
    ])
    def test_unreadable_blocking_item_is_unavailable(self, item):
        session = FakeSession(FakeResponse(payload=_schedule(
            item,
            _item("busy", "2024-11-26T15:00:00", "2024-11-26T15:30:00"),
        )))

        with pytest.raises(CalendarUnavailableError):
            _fetch(session)

    def test_unreadable_free_item_is_ignored(self):
        session = FakeSession(FakeResponse(payload=_schedule(
            _item("free", "garbage", "garbage"),
            _item("busy", "2024-11-26T15:00:00", "2024-11-26T15:30:00"),
        )))

        assert len(_fetch(session)) == 1

    def test_schedule_error_is_unavailable(self):
        payload = _schedule(error={"message": "Mailbox not found", "responseCode": "Error"})

        with pytest.raises(CalendarUnavailableError, match="Mailbox not found"):
            _fetch(FakeSession(FakeResponse(payload=payload)))

    def test_missing_value_array_is_unavailable(self):
        with pytest.raises(CalendarUnavailableError):
            _fetch(FakeSession(FakeResponse(payload={"unexpected": True})))

    @pytest.mark.parametrize("status_code", [401, 403, 429, 500, 503])
    def test_error_status_is_unavailable(self, status_code):
        session = FakeSession(FakeResponse(status_code=status_code, text="nope"))

        with pytest.raises(CalendarUnavailableError, match=f"HTTP {status_code}"):
            _fetch(session)

    def test_timeout_is_unavailable(self):
        session = FakeSession(error=requests.exceptions.Timeout("read timed out"))

        with pytest.raises(CalendarUnavailableError, match="timed out"):
            _fetch(session)

    def test_connection_error_is_unavailable(self):
        session = FakeSession(error=requests.exceptions.ConnectionError("refused"))

        with pytest.raises(CalendarUnavailableError):
            _fetch(session)

    def test_invalid_json_is_unavailable(self):
        session = FakeSession(FakeResponse(payload=ValueError("Expecting value")))

        with pytest.raises(CalendarUnavailableError, match="Invalid JSON"):
            _fetch(session)


class TestEventsAndMail:
    """Tests for booking and notification requests."""

    def test_create_event_posts_to_calendar(self):
        session = FakeSession(FakeResponse(status_code=201, payload={"id": "AAMk123"}))
        client = GraphClient(session=session)

        created = client.create_event(MAILBOX, {"subject": "Termin"}, "token-abc")

        assert created["id"] == "AAMk123"
        assert session.requests[0]["url"].endswith(f"/users/{MAILBOX}/calendar/events")
        assert session.requests[0]["json"] == {"subject": "Termin"}

    def test_create_event_failure_raises(self):
        client = GraphClient(session=FakeSession(FakeResponse(status_code=403)))

        with pytest.raises(CalendarUnavailableError):
            client.create_event(MAILBOX, {"subject": "Termin"}, "token-abc")

    def test_send_mail_saves_to_sent_items(self):
        session = FakeSession(FakeResponse(status_code=202))
        client = GraphClient(session=session)

        client.send_mail(MAILBOX, {"subject": "Hallo"}, "token-abc")

        sent = session.requests[0]
        assert sent["url"].endswith(f"/users/{MAILBOX}/sendMail")
        assert sent["json"] == {"message": {"subject": "Hallo"}, "saveToSentItems": True}

    def test_connection_reads_calendar(self):
        session = FakeSession(FakeResponse(payload={"name": "Calendar"}))
        client = GraphClient(session=session)

        assert client.test_connection(MAILBOX, "token-abc") == {"name": "Calendar"}
        assert session.requests[0]["method"] == "GET"


class TestResolverOverGraphClient:
    """Unknown busy times from Graph degrade availability instead of failing it."""

    @staticmethod
    def _resolve(payload):
        client = GraphClient(session=FakeSession(FakeResponse(payload=payload)))
        resolver = AvailabilityResolver(
            business_hours=BusinessHours(start_time=time(14, 0), end_time=time(16, 30)),
            fetcher=BusyIntervalFetcher(token_provider=MockGraphAuthenticator(), calendar_client=client),
            calendar_id=MAILBOX,
        )
        return resolver.resolve(date(2024, 11, 26), date(2024, 11, 26))

    @pytest.mark.parametrize("payload", [
        {"value": [{"scheduleId": MAILBOX, "scheduleItems": [None]}]},
        {"value": []},
        {"value": [{"scheduleId": MAILBOX, "scheduleItems": [{"status": "busy"}]}]},
    ])
    def test_unknown_busy_times_are_degraded(self, payload):
        result = self._resolve(payload)

        assert result.degraded is True
        assert len(result.slots) == 5

    def test_alias_schedule_still_blocks_slots(self):
        result = self._resolve(_schedule(
            _item("busy", "2024-11-26T13:00:00", "2024-11-26T15:30:00"),
            schedule_id="alias@example.com",
        ))

        assert result.degraded is False
        assert result.slots == []
