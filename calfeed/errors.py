class CalendarFeedError(Exception):
    """Base error for calendar feed integration issues."""


class EventNotFoundError(CalendarFeedError):
    """Raised when a calendar event or feed entry does not exist."""


class ServiceUnavailableError(CalendarFeedError):
    """Raised when an optional host service is required but not installed."""
