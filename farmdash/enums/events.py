from enum import Enum


class WebSocketEvent(str, Enum):
    """Socket.IO event names pushed to the browser."""

    DASHBOARD_VIEW = "dashboard_view"
    NOTIFICATION = "notification"


class ChannelEvent(str, Enum):
    """EventBus topics published by the push channels."""

    CONNECTIVITY_CHANGED = "channel_connectivity_changed"
    NOTIFICATION_RECEIVED = "notification_received"


class DashboardEvent(str, Enum):
    """EventBus topics published by the orchestrator."""

    FARM_CHANGED = "dashboard_farm_changed"
