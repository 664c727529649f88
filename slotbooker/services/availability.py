"""
Application services for computing bookable appointment slots.

The resolver coordinates fetching busy times via a calendar client adapter
and filters the policy's candidate grid against them. Calendar outages are
recovered here: the grid is served unfiltered and flagged as degraded, so a
broken calendar integration never takes availability offline.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Protocol, Sequence

from pendulum import DateTime

from ..domain.exceptions import CalendarUnavailableError
from ..domain.models import (
    AvailabilityResult,
    AvailableSlot,
    BusinessHours,
    BusySlot,
    TimeRange,
)
from ..domain.slot_grid import SlotGridGenerator, parse_date_range

logger = logging.getLogger(__name__)


class TokenProviderProtocol(Protocol):
    """Anything that can hand out a bearer token for the calendar API."""

    def get_access_token(self, force_refresh: bool = False) -> str:
        """Return a valid access token."""


class CalendarClientProtocol(Protocol):
    """Protocol describing the calendar client behaviour needed by the services."""

    def get_schedule(
        self,
        calendar_email: str,
        start_time: DateTime,
        end_time: DateTime,
        access_token: str,
    ) -> List[BusySlot]:
        """Return busy time ranges for one mailbox."""


class BusyIntervalFetcher:
    """
    Fetches busy intervals for a calendar.

    The token is acquired first and the calendar queried second. An empty
    list means the calendar is genuinely free; any failure to reach or
    authenticate against the calendar raises ``CalendarUnavailableError``.
    """

    def __init__(
        self,
        token_provider: TokenProviderProtocol,
        calendar_client: CalendarClientProtocol,
    ) -> None:
        self._token_provider = token_provider
        self._calendar_client = calendar_client

    def fetch(
        self,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[BusySlot]:
        """Fetch busy and tentative intervals overlapping the window."""
        access_token = self._token_provider.get_access_token()

        return list(
            self._calendar_client.get_schedule(
                calendar_email=calendar_id,
                start_time=range_start,
                end_time=range_end,
                access_token=access_token,
            )
        )


def overlaps_any(candidate: TimeRange, busy_slots: Sequence[BusySlot]) -> bool:
    """Return True when ``candidate`` overlaps at least one busy interval."""
    return any(busy.blocks(candidate) for busy in busy_slots)


class AvailabilityResolver:
    """
    Orchestrates slot-grid generation, busy-time retrieval and filtering.

    Collaborators are injected once at process start; the resolver keeps no
    state between calls, so identical inputs against an unchanged calendar
    give identical results.
    """

    def __init__(
        self,
        business_hours: BusinessHours,
        fetcher: BusyIntervalFetcher,
        calendar_id: str,
        grid_generator: SlotGridGenerator | None = None,
        max_range_days: int | None = None,
    ) -> None:
        self.business_hours = business_hours
        self.calendar_id = calendar_id
        self.max_range_days = max_range_days
        self._fetcher = fetcher
        self._grid_generator = grid_generator or SlotGridGenerator()

    def resolve(
        self,
        range_start: date,
        range_end: date,
        calendar_id: str | None = None,
    ) -> AvailabilityResult:
        """
        Compute bookable slots between two calendar days, inclusive.

        Falls back to the full candidate grid with ``degraded=True`` when the
        calendar cannot be read.
        """
        calendar_id = calendar_id or self.calendar_id
        grid = self._grid_generator.generate(self.business_hours, range_start, range_end)
        candidates = list(grid)

        window = grid.window()
        if not candidates or window is None:
            # Nothing to filter; an empty grid needs no calendar round trip
            return AvailabilityResult(slots=[], degraded=False, busy_count=0)

        try:
            busy_slots = self._fetcher.fetch(calendar_id, window.start, window.end)
        except CalendarUnavailableError as exc:
            logger.warning(
                "Calendar %s unavailable (%s); serving %d unfiltered slot(s) in fallback mode",
                calendar_id, exc, len(candidates)
            )
            return AvailabilityResult(
                slots=self._to_available(candidates),
                degraded=True,
                busy_count=0,
            )

        available = [
            candidate for candidate in candidates
            if not overlaps_any(candidate, busy_slots)
        ]

        logger.info(
            "Resolved %d of %d candidate slot(s) for %s..%s (%d busy interval(s))",
            len(available), len(candidates), range_start, range_end, len(busy_slots)
        )
        return AvailabilityResult(
            slots=self._to_available(available),
            degraded=False,
            busy_count=len(busy_slots),
        )

    def resolve_strings(
        self,
        start_text: str | None,
        end_text: str | None,
        calendar_id: str | None = None,
    ) -> AvailabilityResult:
        """
        Parse caller-supplied ISO dates, then resolve.

        Raises:
            InvalidRangeError: If either date is missing or malformed
        """
        range_start, range_end = parse_date_range(
            start_text,
            end_text,
            self.business_hours.timezone,
            self.max_range_days,
        )
        return self.resolve(range_start, range_end, calendar_id)

    def _to_available(self, candidates: Sequence[TimeRange]) -> List[AvailableSlot]:
        return [
            AvailableSlot(time_range=candidate, timezone=self.business_hours.timezone)
            for candidate in candidates
        ]
