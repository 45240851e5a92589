from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

CALENDAR_LOG_EVENT = "calendar"
CALENDAR_COMMENT_EVENT = "calendar_comment"
FORUM_COMMENT_ENTITY = "EV"
ENTITY_USER = "U"
NOTIFY_FROM = "from"
ALL_USERS_CODE = "UA"
AUTHORIZED_USERS_CODE = "G2"


@dataclass(slots=True)
class UserRef:
    """Name fields of the user that created a feed entry."""

    name: str = ""
    last_name: str = ""
    second_name: str = ""
    login: str = ""


@dataclass(slots=True)
class RecurrenceRule:
    freq: str
    interval: int = 1
    by_day: list[str] | str | None = None
    count: int | None = None
    until: date | None = None


@dataclass(slots=True)
class MeetingInfo:
    host_name: str
    text: str = ""
    open: bool = False
    notify: bool = True
    reinvite: bool = False


@dataclass(slots=True)
class CalendarEvent:
    """Calendar event record as stored by the calendar host."""

    id: int = 0
    owner_id: int = 0
    name: str = ""
    cal_type: str = "user"
    section: int | None = None
    sections: list[int] = field(default_factory=list)
    description: str = ""
    date_from: datetime | None = None
    date_to: datetime | None = None
    rrule: RecurrenceRule | None = None
    attendees: list[int] | None = None
    attendee_codes: list[str] = field(default_factory=list)
    is_meeting: bool = False
    meeting_host: int | None = None
    meeting: MeetingInfo | None = None


@dataclass(slots=True)
class LogEntry:
    """Activity-feed log entry."""

    id: int = 0
    event_id: str = CALENDAR_LOG_EVENT
    source_id: int = 0
    entity_type: str = ENTITY_USER
    entity_id: int = 0
    user_id: int = 0
    site_id: str = ""
    title: str = ""
    title_template: str = "#TITLE#"
    message: str = ""
    text_message: str = ""
    log_date: datetime | None = None
    enable_comments: bool = True
    callback_func: str | None = None
    created_by: UserRef = field(default_factory=UserRef)


@dataclass(slots=True)
class LogComment:
    """Comment attached to a feed log entry."""

    log_id: int
    user_id: int
    message: str
    event_id: str = CALENDAR_COMMENT_EVENT
    url: str | None = None
    id: int = 0


@dataclass(slots=True)
class CommentFields:
    """Input of the comment-creation callback."""

    log_id: int
    user_id: int
    text_message: str
    form: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CommentResult:
    """Outcome of posting a feed comment to the forum.

    A failed post has no ``source_id`` and a human-readable ``error``.
    """

    source_id: int | None = None
    message: str | None = None
    error: str = ""
    notes: str = ""
    uf_files: list[int] = field(default_factory=list)
    uf_docs: list[Any] = field(default_factory=list)
    url: str | None = None
    rating_type_id: str = "FORUM_POST"

    @property
    def rating_entity_id(self) -> int | None:
        return self.source_id

    @property
    def ok(self) -> bool:
        return bool(self.source_id)


@dataclass(slots=True)
class ForumMessageFields:
    post_message: str
    permission: str
    use_smiles: bool = True
    permission_external: str = "Q"
    approved: bool = True
    title: str | None = None
    topic_xml_id: str | None = None
    files: list[int] = field(default_factory=list)
    doc_ids: list[Any] | None = None


@dataclass(slots=True)
class ForumPostResult:
    message_id: int | None
    error: str = ""
    note: str = ""


@dataclass(slots=True)
class CommentData:
    """Forum comment payload passed to the after-add and after-update hooks."""

    message_id: int
    action: str = "ADD"
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class NotifyComment:
    user_id: int
    message: str
    url: str | None = None


@dataclass(slots=True)
class NotifyMessage:
    """Instant-message notification."""

    to_user_id: int
    from_user_id: int
    notify_module: str
    notify_event: str
    notify_message: str
    notify_message_out: str = ""
    notify_type: str = NOTIFY_FROM


@dataclass(slots=True)
class EventView:
    """Rendered body of a calendar event inside the feed."""

    message: str = ""
    footer_message: str = ""
    cached_js_path: str | None = None


@dataclass(slots=True)
class FormatParams:
    path_to_user: str = "/company/personal/user/#user_id#/"
    mobile: bool = False
    name_template: str = "#NAME# #LAST_NAME#"


@dataclass(slots=True)
class Destination:
    code: str
    name: str
    url: str | None = None


@dataclass(slots=True)
class FormattedEvent:
    title: str
    title_24: str
    url: str
    message: str
    footer_message: str
    is_important: bool = False
    style: str = "calendar-confirm"
    destination: list[Destination] = field(default_factory=list)


@dataclass(slots=True)
class EntityLink:
    name: str
    url: str


@dataclass(slots=True)
class FormattedEntry:
    """Display fields of a calendar feed entry."""

    event: LogEntry
    event_formatted: FormattedEvent
    entity: EntityLink
    avatar_src: str | None = None
    tooltip_fields: dict[str, Any] = field(default_factory=dict)
    cached_js_path: str | None = None


@dataclass(slots=True)
class MenuItem:
    text: str
    href: str | None = None
    onclick: str | None = None


@dataclass(slots=True)
class EditParams:
    user_id: int
    cal_type: str = "user"


@dataclass(slots=True)
class SearchIndexData:
    module_id: str
    title: str
    body: str = ""


@dataclass(slots=True)
class SearchIndexOverride:
    title: str = ""
    body: str = ""


@dataclass(slots=True)
class CommentEvent:
    module_id: str
    event_id: str
    operation: str
    operation_add: str
    add_callback: Callable[[CommentFields], CommentResult]
    formatter: str


@dataclass(slots=True)
class SubscribeEvent:
    """Registration record handed to the activity-feed host."""

    entities: tuple[str, ...]
    forum_comment_entity: str
    operation: str
    formatter: Callable[..., FormattedEntry]
    has_callback: bool
    full_set: tuple[str, ...]
    comment_event: CommentEvent
