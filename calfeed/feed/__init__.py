"""Calendar to activity-feed bridge."""

from .livefeed import CalendarLiveFeed
from .memory import build_memory_services
from .models import (
    CalendarEvent,
    CommentData,
    CommentFields,
    CommentResult,
    EditParams,
    FormatParams,
    FormattedEntry,
    LogComment,
    LogEntry,
    NotifyComment,
    SubscribeEvent,
)
from .services import FeedServices

__all__ = [
    "CalendarEvent",
    "CalendarLiveFeed",
    "CommentData",
    "CommentFields",
    "CommentResult",
    "EditParams",
    "FeedServices",
    "FormatParams",
    "FormattedEntry",
    "LogComment",
    "LogEntry",
    "NotifyComment",
    "SubscribeEvent",
    "build_memory_services",
]
