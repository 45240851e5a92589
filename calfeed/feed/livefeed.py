from __future__ import annotations

import copy
import html
import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from ..config import Settings
from .messages import get_message
from .models import (
    CALENDAR_COMMENT_EVENT,
    CALENDAR_LOG_EVENT,
    ENTITY_USER,
    FORUM_COMMENT_ENTITY,
    CalendarEvent,
    CommentData,
    CommentEvent,
    CommentFields,
    CommentResult,
    EditParams,
    EntityLink,
    FormatParams,
    FormattedEntry,
    FormattedEvent,
    ForumMessageFields,
    LogComment,
    LogEntry,
    MeetingInfo,
    MenuItem,
    NotifyComment,
    NotifyMessage,
    SearchIndexData,
    SearchIndexOverride,
    SubscribeEvent,
)
from .rights import expand_access_codes, replace_all_users, unique_codes
from .services import FeedServices

logger = logging.getLogger(__name__)

_EVENT_TOPIC = re.compile(r"^EVENT_[0-9]+")


def append_query(url: str, query: str) -> str:
    return f"{url}{'&' if '?' in url else '?'}{query}"


def event_topic_xml_id(event_id: int) -> str:
    return f"EVENT_{event_id}"


class CalendarLiveFeed:
    """Bridge between calendar events and the activity feed.

    Formats calendar feed entries, posts feed comments to the calendar forum,
    notifies attendees and keeps each event's feed entry and rights list in
    sync with the event.
    """

    def __init__(
        self,
        services: FeedServices,
        settings: Settings | None = None,
        *,
        logger_instance: logging.Logger | None = None,
    ) -> None:
        self._services = services
        self._settings = settings or Settings()
        self._logger = logger_instance or logger

    # Registration ------------------------------------------------------------------
    def register(self, feature_settings: dict[str, Any]) -> SubscribeEvent:
        subscribe = SubscribeEvent(
            entities=(ENTITY_USER,),
            forum_comment_entity=FORUM_COMMENT_ENTITY,
            operation="view",
            formatter=self.format_event,
            has_callback=True,
            full_set=(CALENDAR_LOG_EVENT, CALENDAR_COMMENT_EVENT),
            comment_event=CommentEvent(
                module_id="calendar",
                event_id=CALENDAR_COMMENT_EVENT,
                operation="view",
                operation_add="log_rights",
                add_callback=self.add_comment,
                formatter="forum",
            ),
        )
        feature = feature_settings.setdefault("calendar", {})
        feature.setdefault("subscribe_events", {})[CALENDAR_LOG_EVENT] = subscribe
        self._logger.debug("Registered calendar feed events")
        return subscribe

    # Formatting --------------------------------------------------------------------
    def format_event(self, entry: LogEntry, params: FormatParams | None = None) -> FormattedEntry:
        params = params or FormatParams()
        services = self._services

        if self._settings.managed_cache and services.cache is not None:
            services.cache.register_tag(f"CALENDAR_EVENT_{int(entry.source_id or 0)}")
            services.cache.register_tag("CALENDAR_EVENT_LIST")

        view = services.renderer.render(
            event_id=entry.source_id,
            user_id=entry.user_id,
            path_to_user=params.path_to_user,
            mobile=params.mobile,
        )
        title = self._message("EC_EDEV_EVENT")
        calendar_url = services.calendar.get_path("user", entry.user_id)
        rights = services.log_rights.list_codes(entry.id)

        formatted = FormattedEvent(
            title=title,
            title_24=title,
            url=append_query(calendar_url, f"EVENT_ID={entry.source_id or 0}"),
            message=view.message,
            footer_message=view.footer_message,
            is_important=False,
            style="calendar-confirm",
            destination=services.log_tools.format_destination(rights, params, created_by=entry.user_id),
        )
        return FormattedEntry(
            event=entry,
            event_formatted=formatted,
            entity=EntityLink(name=entry.title, url=calendar_url),
            avatar_src=services.log_tools.create_avatar(entry, params),
            tooltip_fields=services.log_tools.fill_tooltip(entry.user_id, entry.created_by, params),
            cached_js_path=view.cached_js_path,
        )

    def entry_menu(self, entry: LogEntry, current_user_id: int) -> list[MenuItem]:
        """Edit and delete actions for the owner of a calendar feed entry."""

        if entry.event_id != CALENDAR_LOG_EVENT or entry.user_id != current_user_id:
            return []

        event_id = entry.source_id
        edit_url = append_query(
            self._services.calendar.get_path("user", entry.user_id),
            f"EVENT_ID=EDIT{event_id}",
        )
        manager = f"window.oViewEventManager['{event_id}']"
        return [
            MenuItem(text=self._message("EC_T_EDIT"), href=edit_url),
            MenuItem(
                text=self._message("EC_T_DELETE"),
                onclick=f"if({manager}){{{manager}.DeleteEvent();}};",
            ),
        ]

    # Comments ----------------------------------------------------------------------
    def add_comment(self, fields: CommentFields) -> CommentResult:
        """Post a feed comment as a message of the event's forum topic."""

        services = self._services
        result = CommentResult()
        message_fields: ForumMessageFields | None = None
        forum_error = ""

        forum = services.forum
        forum_id = self._settings.forum_id
        entry = services.social_log.get(fields.log_id) if services.social_log is not None else None
        event = services.calendar.get_event(entry.source_id) if entry is not None else None

        if forum is None:
            forum_error = "forum service unavailable"
        elif event is None:
            forum_error = f"no calendar event for log entry {fields.log_id}"
        elif not forum_id:
            forum_error = "calendar forum is not configured"
        else:
            xml_id = event_topic_xml_id(entry.source_id)
            topic_id = forum.find_topic(forum_id, xml_id) or 0
            message_fields = ForumMessageFields(
                post_message=fields.text_message,
                permission="Y" if fields.user_id == event.owner_id else "M",
            )
            if not topic_id:
                message_fields.title = xml_id
                message_fields.topic_xml_id = xml_id
            self._attach_comment_user_fields(message_fields, fields.form)

            posted = forum.add_message(
                "REPLY" if topic_id else "NEW",
                forum_id,
                topic_id,
                message_fields,
                author_id=fields.user_id,
            )
            result.source_id = posted.message_id
            result.error = posted.error
            result.notes = posted.note
            forum_error = posted.error

            if posted.message_id:
                result.url = append_query(
                    services.calendar.get_path("user", event.owner_id),
                    f"EVENT_ID={event.id}&MID={posted.message_id}",
                )
                result.uf_files = forum.list_message_files(posted.message_id)
                docs = services.user_fields.get_user_field_value(
                    "FORUM_MESSAGE",
                    "UF_FORUM_MESSAGE_DOC",
                    posted.message_id,
                    self._settings.language_id,
                )
                result.uf_docs = list(docs or [])

        result.message = message_fields.post_message if message_fields is not None else None
        if not result.source_id:
            result.error = self._message("EC_LF_ADD_COMMENT_SOURCE_ERROR")
            self._logger.warning("Unable to add comment to log entry %s: %s", fields.log_id, forum_error)
        else:
            self._logger.info("Added forum message %s for log entry %s", result.source_id, fields.log_id)
        return result

    def on_after_log_comment_add(self, comment: LogComment) -> None:
        if comment.event_id != CALENDAR_COMMENT_EVENT or self._services.social_log is None:
            return

        entry = self._services.social_log.get(comment.log_id)
        if entry is None or entry.event_id != CALENDAR_LOG_EVENT or entry.source_id <= 0:
            return

        self.notify_comment(
            entry.source_id,
            NotifyComment(user_id=comment.user_id, message=comment.message, url=comment.url),
        )

    def on_forum_comment_notify(self, entity_type: str, event_id: int, comment: NotifyComment) -> None:
        if entity_type != FORUM_COMMENT_ENTITY or self._services.notifier is None:
            return
        self.notify_comment(event_id, comment)

    def on_after_comment_add(
        self,
        entity_type: str,
        event_id: int,
        data: CommentData,
        log_id: int | None = None,
    ) -> None:
        if entity_type != FORUM_COMMENT_ENTITY or not log_id or log_id <= 0:
            return
        self.set_comment_file_rights(data, log_id)

    def on_after_comment_update(
        self,
        entity_type: str,
        event_id: int,
        data: CommentData,
        log_id: int | None = None,
    ) -> None:
        if entity_type != FORUM_COMMENT_ENTITY or not log_id or log_id <= 0:
            return
        if data.action != "EDIT":
            return
        self.set_comment_file_rights(data, log_id)

    def set_comment_file_rights(self, data: CommentData, log_id: int) -> None:
        """Give the documents attached to a comment the rights of its feed entry."""

        if log_id <= 0:
            return

        services = self._services
        access_codes = services.log_rights.list_codes(log_id)
        file_ids = data.params.get("UF_FORUM_MESSAGE_DOC") or []
        user_fields = services.user_fields.get_user_fields(
            "FORUM_MESSAGE", data.message_id, self._settings.language_id
        )
        services.calendar.update_uf_rights(file_ids, access_codes, user_fields.get("UF_FORUM_MESSAGE_DOC"))
        self._logger.debug("Propagated rights of log entry %s to message %s", log_id, data.message_id)

    def notify_comment(self, event_id: int, comment: NotifyComment, *, edited: bool = False) -> int:
        """Notify the owner and attendees of an event about a comment. Returns the number sent."""

        notifier = self._services.notifier
        if notifier is None:
            return 0

        event = self._services.calendar.get_event(event_id)
        if event is None:
            self._logger.warning("Comment notification skipped, event %s not found", event_id)
            return 0

        recipients = [
            user_id
            for user_id in dict.fromkeys([event.owner_id, *(event.attendees or [])])
            if user_id and user_id != comment.user_id
        ]
        if not recipients:
            return 0

        template = self._message("EC_LF_COMMENT_NOTIFY_EDIT" if edited else "EC_LF_COMMENT_NOTIFY")
        title = html.escape(event.name)
        linked_title = f"[URL={comment.url}]{title}[/URL]" if comment.url else title
        notify_message = template.replace("#EVENT_TITLE#", linked_title).replace(
            "#COMMENT_TEXT#", f"[COLOR=#000000]{comment.message}[/COLOR]"
        )
        comment_out = f"{comment.message} #BR# {comment.url}" if comment.url else comment.message
        notify_message_out = template.replace("#EVENT_TITLE#", title).replace("#COMMENT_TEXT#", comment_out)

        for recipient in recipients:
            notifier.add(
                NotifyMessage(
                    to_user_id=recipient,
                    from_user_id=comment.user_id,
                    notify_module="calendar",
                    notify_event="event_comment",
                    notify_message=notify_message,
                    notify_message_out=notify_message_out,
                )
            )
        self._logger.info("Sent %s comment notifications for event %s", len(recipients), event_id)
        return len(recipients)

    # Event lifecycle ---------------------------------------------------------------
    def edit_event_entry(
        self,
        event: CalendarEvent,
        uf_fields: Mapping[str, Any] | None = None,
        access_codes: Iterable[str] = (),
        params: EditParams | None = None,
    ) -> int:
        """Save an event submitted from the feed form and sync its feed entry.

        Returns the saved event id, or a non-positive value when saving failed.
        """

        if params is None:
            raise ValueError("params with the acting user are required")
        uf_fields = dict(uf_fields or {})
        services = self._services
        event = copy.deepcopy(event)

        if event.section:
            event.sections = [event.section]
        event.owner_id = params.user_id
        event.cal_type = params.cal_type

        codes = list(access_codes)
        if not event.id:
            codes.append(f"U{params.user_id}")
        codes = unique_codes(codes)
        attendees = services.calendar.get_destination_users(codes)

        if not event.name.strip():
            event.name = self._message("EC_DEFAULT_EVENT_NAME")

        event.is_meeting = bool(attendees) and attendees != [params.user_id]

        if event.rrule is not None and isinstance(event.rrule.by_day, list):
            event.rrule.by_day = ",".join(event.rrule.by_day)

        if event.is_meeting:
            event.attendee_codes = codes
            event.attendees = attendees
            event.meeting_host = params.user_id
            event.meeting = MeetingInfo(host_name=services.calendar.get_user_name(params.user_id))
        else:
            event.attendees = None

        event_id = services.calendar.save_event(event, auto_detect_section=True)
        if event_id <= 0:
            self._logger.warning("Calendar refused to save event %r", event.name)
            return event_id

        if uf_fields:
            services.user_fields.update_user_fields("CALENDAR_EVENT", event_id, uf_fields)

        codes = replace_all_users(codes)

        if event.is_meeting and uf_fields.get("UF_WEBDAV_CAL_EVENT"):
            current = services.user_fields.get_user_fields("CALENDAR_EVENT", event_id, self._settings.language_id)
            services.calendar.update_uf_rights(
                uf_fields["UF_WEBDAV_CAL_EVENT"], codes, current.get("UF_WEBDAV_CAL_EVENT")
            )

        self._sync_log_entry(event_id, event.owner_id, event.name, codes)
        return event_id

    def on_edit_event_entry(
        self,
        event_id: int,
        event: CalendarEvent,
        attendee_codes: Iterable[str] = (),
    ) -> int | None:
        if event_id <= 0:
            return None
        return self._sync_log_entry(event_id, event.owner_id, event.name, replace_all_users(attendee_codes))

    def on_delete_event_entry(self, event_id: int) -> int:
        """Remove every feed entry of a deleted event. Returns the number removed."""

        social_log = self._services.social_log
        if social_log is None:
            return 0

        entries = social_log.find(event_id=CALENDAR_LOG_EVENT, source_id=event_id)
        for entry in entries:
            social_log.delete(entry.id)
        if entries:
            self._logger.info("Deleted %s feed entries of event %s", len(entries), event_id)
        return len(entries)

    def fix_forum_comment_url(self, data: SearchIndexData) -> SearchIndexOverride | None:
        """Keep calendar comment topics out of the search index."""

        if data.module_id == "forum" and _EVENT_TOPIC.match(data.title):
            return SearchIndexOverride(title="", body="")
        return None

    # Internal helpers --------------------------------------------------------------
    def _sync_log_entry(self, event_id: int, owner_id: int, title: str, access_codes: Iterable[str]) -> int | None:
        services = self._services
        social_log = services.social_log
        if social_log is None:
            self._logger.warning("Social log unavailable, feed entry of event %s not synced", event_id)
            return None

        changes: dict[str, Any] = {
            "entity_type": ENTITY_USER,
            "entity_id": owner_id,
            "user_id": owner_id,
            "log_date": datetime.now(timezone.utc),
            "title_template": "#TITLE#",
            "title": title,
            "message": "",
            "text_message": "",
        }
        rights = expand_access_codes(access_codes)

        existing = social_log.find(event_id=CALENDAR_LOG_EVENT, source_id=event_id)
        if existing:
            log_id = existing[0].id
            social_log.update(log_id, changes)
            services.log_rights.delete_by_log(log_id)
            self._logger.debug("Updated feed entry %s of event %s", log_id, event_id)
        else:
            log_id = social_log.add(
                LogEntry(
                    event_id=CALENDAR_LOG_EVENT,
                    site_id=self._settings.site_id,
                    source_id=event_id,
                    enable_comments=True,
                    callback_func=None,
                    **changes,
                )
            )
            self._logger.info("Created feed entry %s for event %s", log_id, event_id)
        services.log_rights.add(log_id, rights)
        return log_id

    def _attach_comment_user_fields(self, message_fields: ForumMessageFields, form: Mapping[str, Any]) -> None:
        values = self._services.user_fields.edit_form_fields("SONET_COMMENT", form)
        if "UF_SONET_COM_DOC" in values:
            message_fields.doc_ids = list(values["UF_SONET_COM_DOC"] or [])
        elif "UF_SONET_COM_FILE" in values:
            message_fields.files = [int(file_id) for file_id in values["UF_SONET_COM_FILE"] or []]

    def _message(self, key: str) -> str:
        return get_message(key, self._settings.language_id)
