from typing import Any, Literal

from pydantic import BaseModel

ChannelName = Literal["live_summary", "notifications"]


class ConnectivityStatePayload(BaseModel):
    """Published on every push channel state transition."""

    channel: ChannelName
    status: str  # 'disconnected' | 'connecting' | 'connected'
    topic: str | None = None
    endpoint: str | None = None  # broker host:port
    consecutive_failures: int = 0
    details: dict[str, Any] | None = None
    timestamp: str | None = None


class NotificationEventPayload(BaseModel):
    """A decoded user alert, re-published for in-process listeners."""

    user_id: str
    title: str
    message: str = ""
    timestamp: str | None = None
