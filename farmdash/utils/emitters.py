"""
WebSocket Emitters
==================

Pushes dashboard view snapshots and decoded user alerts to browsers over
Socket.IO. This is the presentation collaborator's end of the core: it only
ever receives plain payloads, never connection objects.
"""

import logging
from typing import Any

from flask_socketio import SocketIO

from farmdash.enums.events import WebSocketEvent
from farmdash.schemas.dashboard import DashboardView
from farmdash.schemas.telemetry import NotificationMessage

logger = logging.getLogger("emitters")

WS_EVENT_DASHBOARD_VIEW = WebSocketEvent.DASHBOARD_VIEW.value
WS_EVENT_NOTIFICATION = WebSocketEvent.NOTIFICATION.value

SOCKETIO_NAMESPACE_DASHBOARD = "/dashboard"
SOCKETIO_NAMESPACE_NOTIFICATIONS = "/notifications"


class EmitterService:
    """
    Centralized WebSocket Emitter Service.

    Attributes:
        sio: The Socket.IO SocketIO instance for emitting events.
    """

    def __init__(self, sio: SocketIO):
        self.sio = sio

    def emit(
        self,
        event: str,
        payload: dict[str, Any],
        room: str | None = None,
        namespace: str = "/",
    ) -> None:
        """
        Emit a Socket.IO event. Failures are logged, never raised.

        Args:
            event: Event name (e.g., "notification").
            payload: JSON serializable data to send.
            room: Socket.IO room identifier. Broadcasts if None.
            namespace: Socket.IO namespace to emit under (default "/").
        """
        try:
            logger.debug("Emitting event='%s' to namespace='%s' room='%s'", event, namespace, room or "broadcast")
            self.sio.emit(event, payload, room=room, namespace=namespace)
        except Exception as e:
            logger.exception("[Emitter] Failed to emit event '%s' to room '%s': %s", event, room, e)

    def emit_dashboard_view(self, view: DashboardView) -> None:
        """Broadcast the latest view snapshot to the Dashboard namespace."""
        self.emit(WS_EVENT_DASHBOARD_VIEW, view.to_dict(), namespace=SOCKETIO_NAMESPACE_DASHBOARD)

    def emit_notification(self, user_id: str, message: NotificationMessage) -> None:
        """Deliver a decoded alert to one user's room."""
        self.emit(
            WS_EVENT_NOTIFICATION,
            message.model_dump(),
            room=f"user_{user_id}",
            namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS,
        )
