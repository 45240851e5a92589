"""Dictionary-backed host services.

These stand in for the platform's social log, forum, user-field manager and
calendar so the feed adapter can run outside the platform.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping

from ..config import Settings
from ..errors import EventNotFoundError
from .models import (
    ALL_USERS_CODE,
    AUTHORIZED_USERS_CODE,
    CalendarEvent,
    Destination,
    EventView,
    FormatParams,
    ForumMessageFields,
    ForumPostResult,
    LogEntry,
    NotifyMessage,
    UserRef,
)
from .services import FeedServices

logger = logging.getLogger(__name__)

_USER_CODE = re.compile(r"^U([0-9]+)$")
_GROUP_CODE = re.compile(r"^SG([0-9]+)(?:_K)?$")


class InMemorySocialLog:
    def __init__(self) -> None:
        self._entries: dict[int, LogEntry] = {}
        self._next_id = 1

    def find(self, *, event_id: str | None = None, source_id: int | None = None) -> list[LogEntry]:
        return [
            entry
            for entry in self.all()
            if (event_id is None or entry.event_id == event_id)
            and (source_id is None or entry.source_id == source_id)
        ]

    def all(self) -> list[LogEntry]:
        return [self._entries[log_id] for log_id in sorted(self._entries, reverse=True)]

    def get(self, log_id: int) -> LogEntry | None:
        return self._entries.get(log_id)

    def add(self, entry: LogEntry) -> int:
        log_id = self._next_id
        self._next_id += 1
        self._entries[log_id] = replace(entry, id=log_id)
        return log_id

    def update(self, log_id: int, changes: Mapping[str, Any]) -> None:
        entry = self._entries.get(log_id)
        if entry is None:
            raise EventNotFoundError(f"Log entry {log_id} does not exist")
        for name, value in changes.items():
            setattr(entry, name, value)

    def delete(self, log_id: int) -> None:
        self._entries.pop(log_id, None)


class InMemoryLogRights:
    def __init__(self) -> None:
        self._codes: dict[int, list[str]] = {}

    def list_codes(self, log_id: int) -> list[str]:
        return list(self._codes.get(log_id, []))

    def add(self, log_id: int, codes: Iterable[str]) -> None:
        current = self._codes.setdefault(log_id, [])
        current.extend(code for code in codes if code not in current)

    def delete_by_log(self, log_id: int) -> None:
        self._codes.pop(log_id, None)


class InMemoryUserFields:
    """User-field values keyed by entity and value id.

    ``registered`` lists the field names each entity accepts from forms.
    """

    def __init__(self, registered: Mapping[str, Iterable[str]] | None = None) -> None:
        self._registered = {entity: tuple(names) for entity, names in (registered or {}).items()}
        self._values: dict[tuple[str, int], dict[str, Any]] = {}

    def edit_form_fields(self, entity_id: str, form: Mapping[str, Any]) -> dict[str, Any]:
        return {name: form[name] for name in self._registered.get(entity_id, ()) if name in form}

    def get_user_field_value(self, entity_id: str, field_name: str, value_id: int, language_id: str) -> Any:
        return self._values.get((entity_id, value_id), {}).get(field_name)

    def get_user_fields(self, entity_id: str, value_id: int, language_id: str) -> dict[str, Any]:
        return dict(self._values.get((entity_id, value_id), {}))

    def update_user_fields(self, entity_id: str, value_id: int, values: Mapping[str, Any]) -> None:
        self._values.setdefault((entity_id, value_id), {}).update(values)


@dataclass(slots=True)
class ForumTopic:
    id: int
    forum_id: int
    title: str
    xml_id: str


@dataclass(slots=True)
class ForumMessage:
    id: int
    topic_id: int
    author_id: int
    fields: ForumMessageFields
    files: list[int] = field(default_factory=list)


class InMemoryForum:
    def __init__(self, user_fields: InMemoryUserFields | None = None) -> None:
        self.topics: dict[int, ForumTopic] = {}
        self.messages: dict[int, ForumMessage] = {}
        self._user_fields = user_fields
        self._next_topic_id = 1
        self._next_message_id = 1

    def find_topic(self, forum_id: int, xml_id: str) -> int | None:
        for topic in self.topics.values():
            if topic.forum_id == forum_id and topic.xml_id == xml_id:
                return topic.id
        return None

    def add_message(
        self,
        mode: str,
        forum_id: int,
        topic_id: int,
        fields: ForumMessageFields,
        *,
        author_id: int,
    ) -> ForumPostResult:
        if not fields.post_message.strip():
            return ForumPostResult(message_id=None, error="Message text is empty.")

        if mode == "NEW":
            topic_id = self._next_topic_id
            self._next_topic_id += 1
            self.topics[topic_id] = ForumTopic(
                id=topic_id,
                forum_id=forum_id,
                title=fields.title or "",
                xml_id=fields.topic_xml_id or "",
            )
        elif topic_id not in self.topics:
            return ForumPostResult(message_id=None, error=f"Topic {topic_id} not found.")

        message_id = self._next_message_id
        self._next_message_id += 1
        self.messages[message_id] = ForumMessage(
            id=message_id,
            topic_id=topic_id,
            author_id=author_id,
            fields=copy.deepcopy(fields),
            files=list(fields.files),
        )
        if fields.doc_ids and self._user_fields is not None:
            self._user_fields.update_user_fields(
                "FORUM_MESSAGE", message_id, {"UF_FORUM_MESSAGE_DOC": list(fields.doc_ids)}
            )
        return ForumPostResult(message_id=message_id, note="Message added.")

    def list_message_files(self, message_id: int) -> list[int]:
        message = self.messages.get(message_id)
        return sorted(message.files) if message is not None else []


class InMemoryCalendar:
    """Calendar host with a user directory and social groups."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        users: Mapping[int, str] | None = None,
        groups: Mapping[int, Iterable[int]] | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self.users: dict[int, str] = dict(users or {})
        self.groups: dict[int, list[int]] = {group_id: list(members) for group_id, members in (groups or {}).items()}
        self.events: dict[int, CalendarEvent] = {}
        self.file_rights: dict[Any, list[str]] = {}
        self._next_id = 1

    def get_event(self, event_id: int) -> CalendarEvent | None:
        event = self.events.get(event_id)
        return copy.deepcopy(event) if event is not None else None

    def save_event(self, event: CalendarEvent, *, auto_detect_section: bool = False) -> int:
        event = copy.deepcopy(event)
        if not event.id:
            event.id = self._next_id
            self._next_id += 1
        elif event.id not in self.events:
            logger.warning("Cannot update unknown event %s", event.id)
            return 0
        if auto_detect_section and not event.sections:
            event.sections = [event.owner_id]
        self.events[event.id] = event
        return event.id

    def delete_event(self, event_id: int) -> bool:
        return self.events.pop(event_id, None) is not None

    def get_path(self, cal_type: str, owner_id: int) -> str:
        return self._settings.calendar_path.replace("#user_id#", str(owner_id))

    def get_destination_users(self, codes: Iterable[str]) -> list[int]:
        user_ids: list[int] = []
        for code in codes:
            if code in (ALL_USERS_CODE, AUTHORIZED_USERS_CODE):
                user_ids.extend(self.users)
                continue
            user_match = _USER_CODE.match(code)
            group_match = _GROUP_CODE.match(code)
            if user_match:
                user_ids.append(int(user_match.group(1)))
            elif group_match:
                user_ids.extend(self.groups.get(int(group_match.group(1)), []))
        return list(dict.fromkeys(user_ids))

    def get_user_name(self, user_id: int) -> str:
        return self.users.get(user_id, "")

    def update_uf_rights(self, file_ids: Iterable[Any], access_codes: Iterable[str], user_field: Any) -> None:
        codes = list(access_codes)
        for file_id in file_ids or []:
            self.file_rights[file_id] = list(codes)


class InMemoryNotifier:
    def __init__(self) -> None:
        self.messages: list[NotifyMessage] = []

    def add(self, message: NotifyMessage) -> int:
        self.messages.append(message)
        return len(self.messages)


class InMemoryTagCache:
    def __init__(self) -> None:
        self.tags: set[str] = set()

    def register_tag(self, tag: str) -> None:
        self.tags.add(tag)


class PlainViewRenderer:
    """Renders an event as plain text: name and description, dates in the footer."""

    def __init__(self, calendar: InMemoryCalendar) -> None:
        self._calendar = calendar

    def render(self, *, event_id: int, user_id: int, path_to_user: str, mobile: bool) -> EventView:
        event = self._calendar.get_event(event_id)
        if event is None:
            return EventView()
        message = event.name if not event.description else f"{event.name}\n{event.description}"
        footer = ""
        if event.date_from is not None:
            footer = event.date_from.isoformat()
            if event.date_to is not None:
                footer = f"{footer} - {event.date_to.isoformat()}"
        return EventView(message=message, footer_message=footer)


class SimpleLogTools:
    def __init__(self, calendar: InMemoryCalendar) -> None:
        self._calendar = calendar

    def format_destination(self, codes: Iterable[str], params: FormatParams, *, created_by: int) -> list[Destination]:
        destinations: list[Destination] = []
        for code in codes:
            if code in (ALL_USERS_CODE, AUTHORIZED_USERS_CODE):
                destinations.append(Destination(code=code, name="All employees"))
                continue
            user_match = _USER_CODE.match(code)
            if user_match:
                user_id = int(user_match.group(1))
                if user_id == created_by:
                    continue
                destinations.append(
                    Destination(
                        code=code,
                        name=self._calendar.get_user_name(user_id),
                        url=params.path_to_user.replace("#user_id#", str(user_id)),
                    )
                )
            elif code.startswith("SG") and not code.endswith("_K"):
                destinations.append(Destination(code=code, name=f"Group {code[2:]}"))
        return destinations

    def create_avatar(self, entry: LogEntry, params: FormatParams) -> str | None:
        return None

    def fill_tooltip(self, user_id: int, user: UserRef, params: FormatParams) -> dict[str, Any]:
        return {
            "ID": user_id,
            "NAME": user.name,
            "LAST_NAME": user.last_name,
            "SECOND_NAME": user.second_name,
            "LOGIN": user.login,
            "PATH_TO_USER": params.path_to_user.replace("#user_id#", str(user_id)),
        }


def build_memory_services(
    settings: Settings | None = None,
    *,
    users: Mapping[int, str] | None = None,
    groups: Mapping[int, Iterable[int]] | None = None,
    with_forum: bool = True,
    with_notifier: bool = True,
) -> FeedServices:
    calendar = InMemoryCalendar(settings, users=users, groups=groups)
    user_fields = InMemoryUserFields(
        {
            "SONET_COMMENT": ("UF_SONET_COM_DOC", "UF_SONET_COM_FILE"),
            "CALENDAR_EVENT": ("UF_WEBDAV_CAL_EVENT",),
        }
    )
    return FeedServices(
        calendar=calendar,
        log_rights=InMemoryLogRights(),
        user_fields=user_fields,
        log_tools=SimpleLogTools(calendar),
        renderer=PlainViewRenderer(calendar),
        social_log=InMemorySocialLog(),
        cache=InMemoryTagCache(),
        forum=InMemoryForum(user_fields) if with_forum else None,
        notifier=InMemoryNotifier() if with_notifier else None,
    )
