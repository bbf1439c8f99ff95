# infrastructure/logging/event_logger.py
import logging

from farmdash.enums.events import ChannelEvent, DashboardEvent
from farmdash.utils.event_bus import EventBus

logger = logging.getLogger("farmdash.events")


class EventLogger:
    """Listens for channel and dashboard events and logs them."""

    def __init__(self, event_bus: EventBus | None = None):
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self._unsubscribers = [
            self.event_bus.subscribe(ChannelEvent.CONNECTIVITY_CHANGED, self.log_connectivity),
            self.event_bus.subscribe(ChannelEvent.NOTIFICATION_RECEIVED, self.log_notification),
            self.event_bus.subscribe(DashboardEvent.FARM_CHANGED, self.log_farm_changed),
        ]

    def log_connectivity(self, data):
        try:
            channel = data.get("channel")
            status = data.get("status")
            endpoint = data.get("endpoint")
            failures = data.get("consecutive_failures") or 0
            if failures:
                logger.info(f"📡 Push channel ({channel}) → {status} [{endpoint}] failures={failures}")
            else:
                logger.info(f"📡 Push channel ({channel}) → {status} [{endpoint}]")
        except AttributeError:
            logger.info(f"📡 Connectivity event: {data}")

    def log_notification(self, data):
        try:
            logger.info(f"🔔 Notification for user {data['user_id']}: {data['title']}")
        except (KeyError, TypeError):
            logger.info(f"🔔 Notification event: {data}")

    def log_farm_changed(self, data):
        try:
            logger.info(f"🌾 Active farm {data.get('previous')} → {data.get('current')}")
        except AttributeError:
            logger.info(f"🌾 Active farm changed: {data}")

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
