"""farmdash.socketio.dashboard_handlers

Socket.IO namespace handlers used by the web UI.

View updates are broadcast by the orchestrator through EmitterService; these
handlers only send the initial snapshot and manage notification rooms.
"""

import logging

from flask import current_app, request, session
from flask_socketio import emit, join_room, leave_room

from farmdash.extensions import socketio
from farmdash.utils.emitters import (
    SOCKETIO_NAMESPACE_DASHBOARD,
    SOCKETIO_NAMESPACE_NOTIFICATIONS,
    WS_EVENT_DASHBOARD_VIEW,
)

logger = logging.getLogger(__name__)


def _user_room(data) -> str | None:
    """Resolve the user room from the payload, falling back to the session."""
    user_id = data.get("user_id") if isinstance(data, dict) else None
    if user_id is None:
        user_id = session.get("user_id")
    if user_id is None:
        return None
    return f"user_{user_id}"


# =====================================
# /dashboard NAMESPACE HANDLERS
# =====================================


@socketio.on("connect", namespace=SOCKETIO_NAMESPACE_DASHBOARD)
def handle_dashboard_connect():
    """Send the current view so a fresh client does not wait for the next change."""
    logger.info("Client connected to /dashboard namespace: %s", request.sid)
    container = current_app.config.get("CONTAINER")
    if container is None:
        return
    emit(WS_EVENT_DASHBOARD_VIEW, container.orchestrator.view().to_dict())


@socketio.on("disconnect", namespace=SOCKETIO_NAMESPACE_DASHBOARD)
def handle_dashboard_disconnect(reason=None):
    logger.info("Client disconnected from /dashboard namespace: %s", request.sid)


# =====================================
# /notifications NAMESPACE HANDLERS
# =====================================


@socketio.on("connect", namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS)
def handle_notifications_connect(auth=None):
    logger.info("Client connected to /notifications namespace: %s", request.sid)
    room = _user_room(auth)
    if room is not None:
        join_room(room)
        logger.info("✅ Client %s auto-joined room %s", request.sid, room)


@socketio.on("join_user", namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS)
def handle_notifications_join_user(data):
    room = _user_room(data)
    if room is None:
        logger.warning("Client %s sent join_user without user_id", request.sid)
        return
    join_room(room)
    logger.info("✅ Client %s joined room %s", request.sid, room)


@socketio.on("leave_user", namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS)
def handle_notifications_leave_user(data):
    room = _user_room(data)
    if room is not None:
        leave_room(room)
        logger.info("✅ Client %s left room %s", request.sid, room)


@socketio.on("disconnect", namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS)
def handle_notifications_disconnect(reason=None):
    logger.info("Client disconnected from /notifications namespace: %s", request.sid)
