"""
Domain-specific exception hierarchy for the slotbooker application.
"""


class SlotBookerError(Exception):
    """Base class for all application-level errors."""


class InvalidRangeError(SlotBookerError):
    """Raised when a requested date range is missing or malformed."""


class InvalidBookingError(SlotBookerError):
    """Raised when a booking request does not describe a bookable slot."""


class CalendarUnavailableError(SlotBookerError):
    """Raised when calendar data cannot be fetched, created or parsed."""


class AuthenticationError(CalendarUnavailableError):
    """Raised when authentication or token handling fails."""


class BookingConflictError(SlotBookerError):
    """Raised when the requested slot was taken after it was displayed."""


class NotificationError(SlotBookerError):
    """Raised when a notification email could not be sent."""
