"""
    Single-topic push channel client.

    Wraps one paho-mqtt connection that carries exactly one subscription.
    The connection walks Disconnected -> Connecting -> Connected and falls
    back to Connecting on any failure; paho's network thread retries at a
    fixed delay until ``close()`` is called, the only way back to
    Disconnected.

Author: FarmDash Team
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import paho.mqtt.client as mqtt

from farmdash.config import PUSH_TRANSPORTS, AppConfig
from farmdash.domain.exceptions import ChannelFailure, ConfigurationError
from farmdash.enums.dashboard import ChannelState
from farmdash.enums.events import ChannelEvent
from farmdash.schemas.events import ChannelName, ConnectivityStatePayload
from farmdash.transport.client_factory import create_push_client
from farmdash.utils.event_bus import EventBus
from farmdash.utils.time import iso_now, utc_now

_channel_logger = logging.getLogger("farmdash.channel")

TokenProvider = Callable[[], "str | None"]
PayloadHandler = Callable[[bytes], None]
StateListener = Callable[[ChannelState, "HealthStatus"], None]


@dataclass
class HealthStatus:
    """
    Tracks the health of one push connection across reconnects.
    """

    is_connected: bool = False
    last_error: str | None = None
    last_error_time: datetime | None = None
    connection_attempts: int = 0
    consecutive_failures: int = 0
    messages_received: int = 0
    dropped_messages: int = 0

    def mark_connected(self) -> None:
        self.is_connected = True
        self.consecutive_failures = 0
        self.last_error = None
        self.last_error_time = None

    def mark_disconnected(self) -> None:
        self.is_connected = False

    def record_failure(self, reason: str) -> None:
        """Record a refused, failed or dropped connection."""
        self.is_connected = False
        self.consecutive_failures += 1
        self.last_error = reason
        self.last_error_time = utc_now()

    def increment_connection_attempts(self) -> None:
        self.connection_attempts += 1

    def record_message(self) -> None:
        self.messages_received += 1

    def record_dropped_message(self) -> None:
        self.dropped_messages += 1

    def to_dict(self):
        return {
            "is_connected": self.is_connected,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "connection_attempts": self.connection_attempts,
            "consecutive_failures": self.consecutive_failures,
            "messages_received": self.messages_received,
            "dropped_messages": self.dropped_messages,
        }


class ChannelClient:
    """
    One push connection, one topic.

    ``open()`` while already open on another topic closes the old connection
    first, so a single instance never holds two connections or subscribes a
    topic twice.
    """

    def __init__(
        self,
        name: ChannelName,
        config: AppConfig,
        token_provider: TokenProvider,
        *,
        client_factory: Callable[..., mqtt.Client] = create_push_client,
        on_state_change: StateListener | None = None,
        event_bus: EventBus | None = None,
    ):
        if config.push_transport not in PUSH_TRANSPORTS:
            raise ConfigurationError(
                f"Unsupported push transport '{config.push_transport}'",
                detail={"channel": name, "transport": config.push_transport},
            )
        self.name = name
        self.config = config
        self.token_provider = token_provider
        self.client_factory = client_factory
        self.on_state_change = on_state_change
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.health_status = HealthStatus()

        self._lock = threading.RLock()
        self._client: mqtt.Client | None = None
        self._topic: str | None = None
        self._handler: PayloadHandler | None = None
        self._subscribed = False
        self._state = ChannelState.DISCONNECTED

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def topic(self) -> str | None:
        return self._topic

    @property
    def endpoint(self) -> str:
        return f"{self.config.push_broker_host}:{self.config.push_broker_port}"

    @property
    def degraded(self) -> bool:
        """True once reconnects have failed often enough to tell the user."""
        return self.health_status.consecutive_failures >= self.config.channel_degraded_after_failures

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, topic: str, handler: PayloadHandler) -> bool:
        """
        Connect (asynchronously) and subscribe to ``topic`` once connected.

        Returns:
            False when no bearer credential is available or the network
            thread could not start; the channel then stays Disconnected.
        """
        with self._lock:
            if self._client is not None and self._topic == topic:
                self._handler = handler
                return True
        self.close()

        token = self.token_provider()
        if not token:
            _channel_logger.warning("[%s] No bearer token available, not connecting to %s", self.name, topic)
            return False

        client = self._build_client(token)
        with self._lock:
            self._client = client
            self._topic = topic
            self._handler = handler
            self._subscribed = False
            self._state = ChannelState.CONNECTING
            self.health_status.increment_connection_attempts()
        self._announce(ChannelState.CONNECTING, topic)

        try:
            self._start_network(client, topic)
        except ChannelFailure as e:
            # Network thread never started, so nothing would retry
            _channel_logger.error("[%s] %s: %s", self.name, e, e.__cause__)
            with self._lock:
                self.health_status.record_failure(str(e.__cause__ or e))
                self._client = None
                self._topic = None
                self._handler = None
                self._state = ChannelState.DISCONNECTED
            self._announce(ChannelState.DISCONNECTED, topic)
            return False

        _channel_logger.info("[%s] Connecting to %s for topic %s", self.name, self.endpoint, topic)
        return True

    def close(self) -> None:
        """Unsubscribe, disconnect and stop the network thread. Idempotent."""
        with self._lock:
            client, topic, subscribed = self._client, self._topic, self._subscribed
            if client is None:
                return
            self._client = None
            self._topic = None
            self._handler = None
            self._subscribed = False
            self._state = ChannelState.DISCONNECTED
            self.health_status.mark_disconnected()

        # loop_stop() joins the network thread, whose callbacks take self._lock
        try:
            if subscribed and topic:
                client.unsubscribe(topic)
            client.disconnect()
            client.loop_stop()
        except Exception as e:
            _channel_logger.error("[%s] Error closing push connection: %s", self.name, e)

        self._announce(ChannelState.DISCONNECTED, topic)
        _channel_logger.info("[%s] Closed push connection for topic %s", self.name, topic)

    def _start_network(self, client: mqtt.Client, topic: str) -> None:
        """
        Raises:
            ChannelFailure: paho refused the connect call or its loop thread.
        """
        try:
            client.connect_async(
                self.config.push_broker_host,
                self.config.push_broker_port,
                self.config.push_keepalive_seconds,
            )
            client.loop_start()
        except (OSError, ValueError, RuntimeError) as e:
            raise ChannelFailure(
                f"Could not start push client for {topic}",
                detail={"channel": self.name, "topic": topic, "endpoint": self.endpoint},
            ) from e

    def _build_client(self, token: str) -> mqtt.Client:
        client_id = f"farmdash-{self.name}-{uuid.uuid4().hex[:8]}"
        client = self.client_factory(client_id=client_id, transport=self.config.push_transport)
        if self.config.push_transport == "websockets":
            client.ws_set_options(path=self.config.push_ws_path, headers={"Authorization": f"Bearer {token}"})
        else:
            client.username_pw_set("bearer", token)
        if self.config.push_use_tls:
            client.tls_set()
        delay = self.config.reconnect_delay_seconds
        client.reconnect_delay_set(min_delay=delay, max_delay=delay)
        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        return client

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, rc) -> None:
        with self._lock:
            if client is not self._client:
                return
            topic = self._topic
            if rc != 0:
                reason = f"connection refused (rc={rc})"
                _channel_logger.warning("[%s] Broker %s: %s", self.name, self.endpoint, reason)
                self.health_status.record_failure(reason)
                state = ChannelState.CONNECTING
            else:
                self.health_status.mark_connected()
                # Each CONNACK starts a fresh session, so the topic is subscribed once per connection
                result, _mid = client.subscribe(topic)
                self._subscribed = result == mqtt.MQTT_ERR_SUCCESS
                if self._subscribed:
                    _channel_logger.info("[%s] Subscribed to %s", self.name, topic)
                else:
                    _channel_logger.error("[%s] Failed to subscribe to %s: result code %s", self.name, topic, result)
                state = ChannelState.CONNECTED
            self._state = state
        self._announce(state, topic)

    def _on_connect_fail(self, client, userdata) -> None:
        with self._lock:
            if client is not self._client:
                return
            topic = self._topic
            self.health_status.record_failure("connection attempt failed")
            self.health_status.increment_connection_attempts()
            self._state = ChannelState.CONNECTING
            _channel_logger.warning(
                "[%s] Could not reach %s, retrying in %ss (failures=%s)",
                self.name,
                self.endpoint,
                self.config.reconnect_delay_seconds,
                self.health_status.consecutive_failures,
            )
        self._announce(ChannelState.CONNECTING, topic)

    def _on_disconnect(self, client, userdata, rc) -> None:
        with self._lock:
            if client is not self._client:
                return
            topic = self._topic
            self._subscribed = False
            self.health_status.record_failure(f"connection lost (rc={rc})")
            self._state = ChannelState.CONNECTING
            _channel_logger.warning(
                "[%s] Lost connection to %s (rc=%s), reconnecting in %ss",
                self.name,
                self.endpoint,
                rc,
                self.config.reconnect_delay_seconds,
            )
        self._announce(ChannelState.CONNECTING, topic)

    def _on_message(self, client, userdata, msg) -> None:
        with self._lock:
            if client is not self._client:
                return
            handler = self._handler
            topic = self._topic
        if msg.topic != topic or handler is None:
            _channel_logger.debug("[%s] Ignoring message on %s", self.name, msg.topic)
            return

        self.health_status.record_message()
        try:
            handler(msg.payload)
        except Exception as e:
            self.health_status.record_dropped_message()
            _channel_logger.error("[%s] Error handling message on %s: %s", self.name, msg.topic, e, exc_info=True)

    # ------------------------------------------------------------------

    def _announce(self, state: ChannelState, topic: str | None) -> None:
        """Publish a connectivity event and notify the owner. Never called with the lock held."""
        try:
            payload = ConnectivityStatePayload(
                channel=self.name,
                status=state.value,
                topic=topic,
                endpoint=self.endpoint,
                consecutive_failures=self.health_status.consecutive_failures,
                timestamp=iso_now(),
            )
            self.event_bus.publish(ChannelEvent.CONNECTIVITY_CHANGED, payload)
        except Exception as e:
            _channel_logger.error("[%s] Failed to publish connectivity event: %s", self.name, e)

        if self.on_state_change is not None:
            self.on_state_change(state, self.health_status)

    def __del__(self):
        if getattr(self, "_client", None) is not None:
            self.close()
