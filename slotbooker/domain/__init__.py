"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    AvailabilityResult,
    AvailableSlot,
    BusinessHours,
    BusySlot,
    BusyStatus,
    TimeRange,
)
from .slot_grid import SlotGrid, SlotGridGenerator, parse_date_range

__all__ = [
    "AvailabilityResult",
    "AvailableSlot",
    "BusinessHours",
    "BusySlot",
    "BusyStatus",
    "TimeRange",
    "SlotGrid",
    "SlotGridGenerator",
    "parse_date_range",
]
