from __future__ import annotations

import pytest

from calfeed.errors import ServiceUnavailableError
from calfeed.feed.memory import InMemoryNotifier
from calfeed.im import ImRestService


def test_notify_sends_rest_notification() -> None:
    notifier = InMemoryNotifier()
    service = ImRestService(notifier)

    notification_id = service.notify({"to": "4", "message": "Build finished"}, current_user_id=1)

    assert notification_id == 1
    message = notifier.messages[0]
    assert message.to_user_id == 4
    assert message.from_user_id == 1
    assert message.notify_module == "rest"
    assert message.notify_event == "rest_notify"
    assert message.notify_type == "from"
    assert message.notify_message == "Build finished"


@pytest.mark.parametrize("params", [{"message": "x"}, {"to": "abc", "message": "x"}, {"to": 2, "message": " "}])
def test_notify_validates_parameters(params: dict) -> None:
    service = ImRestService(InMemoryNotifier())

    with pytest.raises(ValueError):
        service.notify(params, current_user_id=1)


def test_notify_without_messenger() -> None:
    with pytest.raises(ServiceUnavailableError):
        ImRestService(None).notify({"to": 2, "message": "x"}, current_user_id=1)


def test_describe_lists_rest_method() -> None:
    service = ImRestService(InMemoryNotifier())

    assert service.describe()["im"]["im.notify"] == service.notify
