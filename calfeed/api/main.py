"""REST API exposing the calendar feed over the in-memory host."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..config import Settings
from ..errors import ServiceUnavailableError
from ..feed.livefeed import CalendarLiveFeed
from ..feed.memory import build_memory_services
from ..feed.models import (
    CALENDAR_LOG_EVENT,
    FORUM_COMMENT_ENTITY,
    CalendarEvent,
    CommentData,
    CommentFields,
    EditParams,
    FormatParams,
    LogComment,
    LogEntry,
    RecurrenceRule,
    SubscribeEvent,
)
from ..feed.services import FeedServices
from ..http.request import HttpRequest
from ..im import ImRestService


class RecurrencePayload(BaseModel):
    freq: str = Field(pattern="^(DAILY|WEEKLY|MONTHLY|YEARLY)$")
    interval: int = Field(default=1, ge=1)
    by_day: Optional[List[str]] = None
    count: Optional[int] = Field(default=None, ge=1)
    until: Optional[date] = None


class EventPayload(BaseModel):
    """Event submitted from the feed form."""

    name: str = ""
    description: str = ""
    section: Optional[int] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    rrule: Optional[RecurrencePayload] = None
    access_codes: List[str] = Field(default_factory=list)
    user_fields: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_dates(self) -> "EventPayload":
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to must not be before date_from")
        return self

    def build_event(self, event_id: int = 0) -> CalendarEvent:
        rrule = None
        if self.rrule is not None:
            rrule = RecurrenceRule(
                freq=self.rrule.freq,
                interval=self.rrule.interval,
                by_day=list(self.rrule.by_day) if self.rrule.by_day else None,
                count=self.rrule.count,
                until=self.rrule.until,
            )
        return CalendarEvent(
            id=event_id,
            name=self.name,
            description=self.description,
            section=self.section,
            date_from=self.date_from,
            date_to=self.date_to,
            rrule=rrule,
        )


class EventResponse(BaseModel):
    event_id: int
    name: str
    is_meeting: bool
    attendees: Optional[List[int]]
    log_id: Optional[int]


class DeleteResponse(BaseModel):
    event_id: int
    deleted_entries: int


class DestinationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    url: Optional[str] = None


class FormattedEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    title_24: str
    url: str
    message: str
    footer_message: str
    is_important: bool
    style: str
    destination: List[DestinationResponse]


class LogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: str
    source_id: int
    user_id: int
    title: str
    log_date: Optional[datetime]


class EntityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    url: str


class FeedEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event: LogEntryResponse
    event_formatted: FormattedEventResponse
    entity: EntityResponse
    avatar_src: Optional[str]
    tooltip_fields: Dict[str, Any]
    cached_js_path: Optional[str]


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    text: str
    href: Optional[str] = None
    onclick: Optional[str] = None


class CommentPayload(BaseModel):
    text: str = Field(min_length=1)
    user_fields: Dict[str, Any] = Field(default_factory=dict)


class CommentResponse(BaseModel):
    source_id: int
    message: Optional[str]
    notes: str
    url: Optional[str]
    rating_type_id: str
    rating_entity_id: int
    uf_files: List[int]
    uf_docs: List[Any]


class RequestInfoResponse(BaseModel):
    remote_address: Optional[str]
    method: str
    uri: str
    requested_page: str
    host: str
    https: bool
    accepted_languages: List[str]
    query: Dict[str, Any]
    cookies: Dict[str, Any]


class NotifyPayload(BaseModel):
    to: int
    message: str = Field(min_length=1)


class NotifyResponse(BaseModel):
    result: int


def create_app(settings: Optional[Settings] = None, services: Optional[FeedServices] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    services = services or build_memory_services(settings)
    feed = CalendarLiveFeed(services, settings)
    im_service = ImRestService(services.notifier)

    feature_settings: dict[str, Any] = {}
    feed.register(feature_settings)
    subscription: SubscribeEvent = feature_settings["calendar"]["subscribe_events"][CALENDAR_LOG_EVENT]

    app = FastAPI(title="Calendar Feed API")

    async def current_request(request: Request) -> HttpRequest:
        return await HttpRequest.from_starlette(request, settings=settings)

    def current_user(http_request: HttpRequest = Depends(current_request)) -> int:
        try:
            user_id = int(http_request.get_cookie("UID"))
        except (TypeError, ValueError):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        if user_id <= 0:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        return user_id

    def _log_entry_or_404(log_id: int) -> LogEntry:
        entry = services.social_log.get(log_id) if services.social_log is not None else None
        if entry is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Feed entry '{log_id}' was not found.",
            )
        return entry

    def _event_response(event_id: int) -> EventResponse:
        event = services.calendar.get_event(event_id)
        if event is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Event '{event_id}' was not found.",
            )
        entries = services.social_log.find(event_id=CALENDAR_LOG_EVENT, source_id=event_id) if services.social_log else []
        return EventResponse(
            event_id=event.id,
            name=event.name,
            is_meeting=event.is_meeting,
            attendees=event.attendees,
            log_id=entries[0].id if entries else None,
        )

    def _save(payload: EventPayload, user_id: int, event_id: int = 0) -> EventResponse:
        saved_id = feed.edit_event_entry(
            payload.build_event(event_id),
            payload.user_fields,
            payload.access_codes,
            EditParams(user_id=user_id),
        )
        if saved_id <= 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event could not be saved.")
        return _event_response(saved_id)

    @app.post("/api/events", status_code=status.HTTP_201_CREATED, response_model=EventResponse)
    def create_event(payload: EventPayload, user_id: int = Depends(current_user)) -> EventResponse:
        return _save(payload, user_id)

    @app.put("/api/events/{event_id}", response_model=EventResponse)
    def update_event(event_id: int, payload: EventPayload, user_id: int = Depends(current_user)) -> EventResponse:
        event = services.calendar.get_event(event_id)
        if event is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Event '{event_id}' was not found.",
            )
        if event.owner_id != user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner can edit the event.")
        return _save(payload, user_id, event_id)

    @app.delete("/api/events/{event_id}", response_model=DeleteResponse)
    def delete_event(event_id: int, user_id: int = Depends(current_user)) -> DeleteResponse:
        event = services.calendar.get_event(event_id)
        if event is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Event '{event_id}' was not found.",
            )
        if event.owner_id != user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner can delete the event.")
        services.calendar.delete_event(event_id)
        return DeleteResponse(event_id=event_id, deleted_entries=feed.on_delete_event_entry(event_id))

    @app.get("/api/feed", response_model=List[FeedEntryResponse])
    def get_feed(user_id: int = Depends(current_user)) -> List[FeedEntryResponse]:
        social_log = services.social_log
        if social_log is None:
            return []
        params = FormatParams()
        return [
            FeedEntryResponse.model_validate(subscription.formatter(entry, params))
            for entry in social_log.find()
            if entry.event_id in subscription.full_set
        ]

    @app.get("/api/feed/{log_id}/menu", response_model=List[MenuItemResponse])
    def get_menu(log_id: int, user_id: int = Depends(current_user)) -> List[MenuItemResponse]:
        entry = _log_entry_or_404(log_id)
        return [MenuItemResponse.model_validate(item) for item in feed.entry_menu(entry, user_id)]

    @app.post("/api/feed/{log_id}/comments", status_code=status.HTTP_201_CREATED, response_model=CommentResponse)
    def add_comment(log_id: int, payload: CommentPayload, user_id: int = Depends(current_user)) -> CommentResponse:
        entry = _log_entry_or_404(log_id)
        result = subscription.comment_event.add_callback(
            CommentFields(log_id=log_id, user_id=user_id, text_message=payload.text, form=payload.user_fields)
        )
        if not result.ok:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)

        feed.on_after_log_comment_add(
            LogComment(log_id=log_id, user_id=user_id, message=payload.text, url=result.url)
        )
        feed.on_after_comment_add(
            FORUM_COMMENT_ENTITY,
            entry.source_id,
            CommentData(message_id=result.source_id, params={"UF_FORUM_MESSAGE_DOC": result.uf_docs}),
            log_id,
        )
        return CommentResponse(
            source_id=result.source_id,
            message=result.message,
            notes=result.notes,
            url=result.url,
            rating_type_id=result.rating_type_id,
            rating_entity_id=result.rating_entity_id,
            uf_files=result.uf_files,
            uf_docs=result.uf_docs,
        )

    @app.get("/api/request", response_model=RequestInfoResponse)
    def describe_request(http_request: HttpRequest = Depends(current_request)) -> RequestInfoResponse:
        return RequestInfoResponse(
            remote_address=http_request.get_remote_address(),
            method=http_request.get_request_method(),
            uri=http_request.get_request_uri(),
            requested_page=http_request.get_requested_page(),
            host=http_request.get_http_host(raw=False),
            https=http_request.is_https(),
            accepted_languages=http_request.get_accepted_languages(),
            query=http_request.get_query_list().to_dict(),
            cookies=http_request.get_cookie_list().to_dict(),
        )

    @app.post("/rest/im.notify", response_model=NotifyResponse)
    def im_notify(payload: NotifyPayload, user_id: int = Depends(current_user)) -> NotifyResponse:
        try:
            notification_id = im_service.notify(payload.model_dump(), user_id)
        except ServiceUnavailableError as exc:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        return NotifyResponse(result=notification_id)

    return app


app = create_app()
