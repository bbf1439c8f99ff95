"""
Notification Channel
====================

User-scoped push subscription on ``/topic/user/{userId}/notifications``.
Decodes each alert and dispatches it; nothing is retained. Its lifecycle
follows the signed-in user, independent of the farm channel.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable

from pydantic import ValidationError as PydanticValidationError

from farmdash.config import AppConfig
from farmdash.domain.exceptions import MalformedMessageError
from farmdash.domain.selection import SelectionChange, SelectionContext
from farmdash.enums.dashboard import ChannelState
from farmdash.enums.events import ChannelEvent
from farmdash.schemas.events import NotificationEventPayload
from farmdash.schemas.telemetry import NotificationMessage
from farmdash.transport.channel_client import ChannelClient, TokenProvider
from farmdash.transport.client_factory import create_push_client
from farmdash.utils.event_bus import EventBus
from farmdash.utils.time import iso_now

logger = logging.getLogger("farmdash.channel")

NOTIFICATION_TOPIC = "/topic/user/{user_id}/notifications"

NotificationHandler = Callable[[str, NotificationMessage], None]


def decode_notification(payload: bytes | str) -> NotificationMessage:
    """
    Raises:
        MalformedMessageError: Not a JSON object with a string ``title``.
    """
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"notification is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedMessageError(f"notification is a {type(data).__name__}, expected an object")
    try:
        return NotificationMessage.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedMessageError(f"notification failed validation: {e.error_count()} error(s)") from e


class NotificationChannel:
    """Decode-and-dispatch for one user's alerts."""

    def __init__(
        self,
        config: AppConfig,
        token_provider: TokenProvider,
        on_notification: NotificationHandler | None = None,
        *,
        client_factory: Callable = create_push_client,
        event_bus: EventBus | None = None,
    ):
        self.on_notification = on_notification
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.channel = ChannelClient(
            "notifications",
            config,
            token_provider,
            client_factory=client_factory,
            event_bus=self.event_bus,
        )
        self._user_id: str | None = None
        self._lifecycle_lock = threading.Lock()
        self._follow_lock = threading.Lock()

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def state(self) -> ChannelState:
        return self.channel.state

    def start(self, user_id: str) -> bool:
        topic = NOTIFICATION_TOPIC.format(user_id=user_id)
        with self._lifecycle_lock:
            if self._user_id is not None and self._user_id != user_id:
                self.channel.close()
            self._user_id = user_id
            opened = self.channel.open(topic, lambda payload: self._handle_payload(user_id, payload))
            if not opened:
                self._user_id = None
            return opened

    def stop(self) -> None:
        with self._lifecycle_lock:
            self._user_id = None
            self.channel.close()

    def follow(self, context: SelectionContext) -> Callable[[], None]:
        """
        Track the context's user identity: subscribe when it is set, tear
        down on logout. Returns the unsubscribe function.
        """

        def _on_change(change: SelectionChange) -> None:
            if change.kind != "user":
                return
            with self._follow_lock:
                # Read the context, not the change: notifications may arrive out of order
                user_id = context.user_id
                if user_id == self._user_id:
                    return
                if user_id is None:
                    self.stop()
                else:
                    self.start(user_id)

        if context.user_id is not None:
            self.start(context.user_id)
        return context.subscribe(_on_change)

    # ------------------------------------------------------------------

    def _handle_payload(self, user_id: str, payload: bytes) -> None:
        try:
            message = decode_notification(payload)
        except MalformedMessageError as e:
            self.channel.health_status.record_dropped_message()
            logger.warning("Dropping malformed notification for user %s: %s", user_id, e)
            return

        logger.info("Notification for user %s: %s", user_id, message.title)
        self.event_bus.publish(
            ChannelEvent.NOTIFICATION_RECEIVED,
            NotificationEventPayload(
                user_id=user_id, title=message.title, message=message.message, timestamp=iso_now()
            ),
        )
        if self.on_notification is not None:
            self.on_notification(user_id, message)
