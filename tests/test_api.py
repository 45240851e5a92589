from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from calfeed.api.main import create_app
from calfeed.config import Settings
from calfeed.feed.memory import build_memory_services
from calfeed.feed.services import FeedServices


def _make_app() -> tuple[FastAPI, FeedServices]:
    settings = Settings(forum_id=3)
    services = build_memory_services(settings, users={1: "Alice", 2: "Bob"}, groups={9: [2]})
    return create_app(settings, services), services


def _client(app: FastAPI, user_id: int | None = 1) -> TestClient:
    cookies = {"BITRIX_SM_UID": str(user_id)} if user_id is not None else {}
    return TestClient(app, cookies=cookies)


def test_requests_without_user_cookie_are_rejected() -> None:
    app, _ = _make_app()

    response = _client(app, None).get("/api/feed")

    assert response.status_code == 401


def test_create_event_publishes_feed_entry() -> None:
    app, services = _make_app()
    client = _client(app)

    response = client.post(
        "/api/events",
        json={
            "name": "Kickoff",
            "date_from": "2024-05-01T09:00:00Z",
            "date_to": "2024-05-01T10:00:00Z",
            "access_codes": ["U2"],
            "rrule": {"freq": "WEEKLY", "by_day": ["MO", "TH"]},
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["is_meeting"] is True
    assert body["attendees"] == [2, 1]
    assert body["log_id"] == 1
    assert services.calendar.get_event(body["event_id"]).rrule.by_day == "MO,TH"

    feed = client.get("/api/feed").json()
    assert len(feed) == 1
    entry = feed[0]
    assert entry["event"]["title"] == "Kickoff"
    assert entry["event_formatted"]["title"] == "Event"
    assert entry["event_formatted"]["style"] == "calendar-confirm"
    assert [dest["code"] for dest in entry["event_formatted"]["destination"]] == ["U2"]


def test_invalid_event_dates_are_rejected() -> None:
    app, _ = _make_app()

    response = _client(app).post(
        "/api/events",
        json={"name": "Backwards", "date_from": "2024-05-01T10:00:00Z", "date_to": "2024-05-01T09:00:00Z"},
    )

    assert response.status_code == 422


def test_update_and_delete_event() -> None:
    app, services = _make_app()
    owner = _client(app)
    event_id = owner.post("/api/events", json={"name": "Draft"}).json()["event_id"]

    assert _client(app, 2).put(f"/api/events/{event_id}", json={"name": "Hijack"}).status_code == 403
    assert owner.put("/api/events/404", json={"name": "x"}).status_code == 404

    updated = owner.put(f"/api/events/{event_id}", json={"name": "Final", "access_codes": ["SG9"]})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Final"
    log_id = updated.json()["log_id"]
    assert services.log_rights.list_codes(log_id) == ["SG9_K", "SG9"]

    deleted = owner.delete(f"/api/events/{event_id}")
    assert deleted.status_code == 200
    assert deleted.json() == {"event_id": event_id, "deleted_entries": 1}
    assert owner.get("/api/feed").json() == []


def test_menu_depends_on_current_user() -> None:
    app, _ = _make_app()
    owner = _client(app)
    log_id = owner.post("/api/events", json={"name": "Standup"}).json()["log_id"]

    assert [item["text"] for item in owner.get(f"/api/feed/{log_id}/menu").json()] == ["Edit", "Delete"]
    assert _client(app, 2).get(f"/api/feed/{log_id}/menu").json() == []
    assert owner.get("/api/feed/77/menu").status_code == 404


def test_comment_is_posted_and_attendees_notified() -> None:
    app, services = _make_app()
    owner = _client(app)
    created = owner.post("/api/events", json={"name": "Retro", "access_codes": ["U2"]}).json()

    response = _client(app, 2).post(f"/api/feed/{created['log_id']}/comments", json={"text": "I will be late"})

    assert response.status_code == 201
    body = response.json()
    assert body["rating_type_id"] == "FORUM_POST"
    assert body["rating_entity_id"] == body["source_id"]
    assert body["url"].endswith(f"EVENT_ID={created['event_id']}&MID={body['source_id']}")
    assert [message.to_user_id for message in services.notifier.messages] == [1]


def test_failed_comment_returns_error_string() -> None:
    settings = Settings(forum_id=None)
    services = build_memory_services(settings, users={1: "Alice"})
    app = create_app(settings, services)
    client = _client(app)
    log_id = client.post("/api/events", json={"name": "Solo"}).json()["log_id"]

    response = client.post(f"/api/feed/{log_id}/comments", json={"text": "note"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Could not add a comment to the event."


def test_request_endpoint_describes_wrapped_request() -> None:
    app, _ = _make_app()
    client = TestClient(app, cookies={"BITRIX_SM_UID": "1", "BITRIX_SM_THEME": "dark", "tracking": "x"})

    response = client.get(
        "/api/request",
        params=[("tags[]", "a"), ("tags[]", "b"), ("view", "month")],
        headers={"Accept-Language": "de-DE,de;q=0.9,en;q=0.5", "User-Agent": "pytest"},
    )

    body = response.json()
    assert body["method"] == "GET"
    assert body["requested_page"] == "/api/request"
    assert body["host"] == "testserver"
    assert body["https"] is False
    assert body["accepted_languages"] == ["de-DE", "de", "en"]
    assert body["query"] == {"tags": ["a", "b"], "view": "month"}
    assert body["cookies"] == {"UID": "1", "THEME": "dark"}


def test_im_notify_endpoint() -> None:
    app, services = _make_app()

    response = _client(app).post("/rest/im.notify", json={"to": 2, "message": "Ping"})

    assert response.status_code == 200
    assert response.json() == {"result": 1}
    assert services.notifier.messages[0].notify_event == "rest_notify"


def test_request_endpoint_tolerates_malformed_host_header() -> None:
    app, _ = _make_app()

    response = _client(app).get("/api/request", headers={"Host": "[example.com"})

    assert response.status_code == 200
    assert response.json()["host"] == "[example.com"


def test_comment_documents_receive_feed_entry_rights() -> None:
    app, services = _make_app()
    owner = _client(app)
    created = owner.post("/api/events", json={"name": "Review", "access_codes": ["U2"]}).json()

    response = owner.post(
        f"/api/feed/{created['log_id']}/comments",
        json={"text": "doc", "user_fields": {"UF_SONET_COM_DOC": ["n9"]}},
    )

    assert response.status_code == 201
    assert response.json()["uf_docs"] == ["n9"]
    assert services.calendar.file_rights == {"n9": ["U2", "U1"]}
