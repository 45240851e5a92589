from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from .errors import ServiceUnavailableError
from .feed.models import NotifyMessage
from .feed.services import Notifier

logger = logging.getLogger(__name__)


class ImRestService:
    """REST method ``im.notify``: send an instant-message notification to a user."""

    def __init__(self, notifier: Notifier | None, *, logger_instance: logging.Logger | None = None) -> None:
        self._notifier = notifier
        self._logger = logger_instance or logger

    def describe(self) -> dict[str, dict[str, Callable[..., int]]]:
        return {"im": {"im.notify": self.notify}}

    def notify(self, params: Mapping[str, Any], current_user_id: int) -> int:
        if self._notifier is None:
            raise ServiceUnavailableError("Instant messaging is not available")

        message = str(params.get("message") or "").strip()
        try:
            to_user_id = int(params["to"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError("'to' must be a user id") from exc
        if not message:
            raise ValueError("'message' must not be empty")

        notification_id = self._notifier.add(
            NotifyMessage(
                to_user_id=to_user_id,
                from_user_id=current_user_id,
                notify_module="rest",
                notify_event="rest_notify",
                notify_message=message,
            )
        )
        self._logger.info("User %s notified user %s", current_user_id, to_user_id)
        return notification_id
