"""Push channel transport: paho-mqtt client construction and the single-topic channel client."""

from farmdash.transport.channel_client import ChannelClient, HealthStatus
from farmdash.transport.client_factory import create_push_client

__all__ = ["ChannelClient", "HealthStatus", "create_push_client"]
