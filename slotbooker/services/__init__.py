"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import (
    AvailabilityResolver,
    BusyIntervalFetcher,
    CalendarClientProtocol,
    TokenProviderProtocol,
)
from .booking import BookingService
from .notifications import GraphMailNotifier

__all__ = [
    "AvailabilityResolver",
    "BusyIntervalFetcher",
    "CalendarClientProtocol",
    "TokenProviderProtocol",
    "BookingService",
    "GraphMailNotifier",
]
