"""Interfaces of the host services the calendar feed adapter calls into."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol

from .models import (
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


class SocialLog(Protocol):
    def find(self, *, event_id: str | None = None, source_id: int | None = None) -> list[LogEntry]:
        """Return matching entries, newest first."""

    def get(self, log_id: int) -> LogEntry | None:
        ...

    def add(self, entry: LogEntry) -> int:
        ...

    def update(self, log_id: int, changes: Mapping[str, Any]) -> None:
        ...

    def delete(self, log_id: int) -> None:
        ...


class LogRights(Protocol):
    def list_codes(self, log_id: int) -> list[str]:
        ...

    def add(self, log_id: int, codes: Iterable[str]) -> None:
        ...

    def delete_by_log(self, log_id: int) -> None:
        ...


class Forum(Protocol):
    def find_topic(self, forum_id: int, xml_id: str) -> int | None:
        ...

    def add_message(
        self,
        mode: str,
        forum_id: int,
        topic_id: int,
        fields: ForumMessageFields,
        *,
        author_id: int,
    ) -> ForumPostResult:
        ...

    def list_message_files(self, message_id: int) -> list[int]:
        ...


class UserFieldManager(Protocol):
    def edit_form_fields(self, entity_id: str, form: Mapping[str, Any]) -> dict[str, Any]:
        """Pick the user-field values of ``entity_id`` out of a submitted form."""

    def get_user_field_value(self, entity_id: str, field_name: str, value_id: int, language_id: str) -> Any:
        ...

    def get_user_fields(self, entity_id: str, value_id: int, language_id: str) -> dict[str, Any]:
        ...

    def update_user_fields(self, entity_id: str, value_id: int, values: Mapping[str, Any]) -> None:
        ...


class CalendarHost(Protocol):
    def get_event(self, event_id: int) -> CalendarEvent | None:
        ...

    def save_event(self, event: CalendarEvent, *, auto_detect_section: bool = False) -> int:
        ...

    def get_path(self, cal_type: str, owner_id: int) -> str:
        ...

    def get_destination_users(self, codes: Iterable[str]) -> list[int]:
        ...

    def delete_event(self, event_id: int) -> bool:
        ...

    def get_user_name(self, user_id: int) -> str:
        ...

    def update_uf_rights(self, file_ids: Iterable[Any], access_codes: Iterable[str], user_field: Any) -> None:
        ...


class Notifier(Protocol):
    def add(self, message: NotifyMessage) -> int:
        ...


class CacheTags(Protocol):
    def register_tag(self, tag: str) -> None:
        ...


class ViewRenderer(Protocol):
    def render(self, *, event_id: int, user_id: int, path_to_user: str, mobile: bool) -> EventView:
        ...


class LogTools(Protocol):
    def format_destination(self, codes: Iterable[str], params: FormatParams, *, created_by: int) -> list[Destination]:
        ...

    def create_avatar(self, entry: LogEntry, params: FormatParams) -> str | None:
        ...

    def fill_tooltip(self, user_id: int, user: UserRef, params: FormatParams) -> dict[str, Any]:
        ...


@dataclass(slots=True)
class FeedServices:
    """Host services used by the calendar feed adapter.

    ``social_log``, ``forum`` and ``notifier`` may be ``None`` when the
    corresponding host module is not installed.
    """

    calendar: CalendarHost
    log_rights: LogRights
    user_fields: UserFieldManager
    log_tools: LogTools
    renderer: ViewRenderer
    social_log: SocialLog | None = None
    cache: CacheTags | None = None
    forum: Forum | None = None
    notifier: Notifier | None = None
