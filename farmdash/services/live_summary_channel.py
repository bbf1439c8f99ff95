"""
Live Summary Channel
====================

Per-farm push subscription. Each message on ``/topic/farm/{farmId}/sensor-data``
is decoded into a field-level patch and handed to ``on_patch``; applying it
is the owner's business. Malformed payloads are logged and dropped, and the
connection stays up.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable

from pydantic import ValidationError as PydanticValidationError

from farmdash.config import AppConfig
from farmdash.domain.exceptions import MalformedMessageError
from farmdash.enums.dashboard import ChannelState
from farmdash.schemas.telemetry import SensorDataMessage
from farmdash.transport.channel_client import ChannelClient, HealthStatus, StateListener, TokenProvider
from farmdash.transport.client_factory import create_push_client
from farmdash.utils.event_bus import EventBus

logger = logging.getLogger("farmdash.channel")

SENSOR_DATA_TOPIC = "/topic/farm/{farm_id}/sensor-data"

PatchHandler = Callable[[str, dict[str, float | None]], None]


def decode_sensor_message(payload: bytes | str) -> SensorDataMessage:
    """
    Decode one sensor-data payload.

    Raises:
        MalformedMessageError: Not JSON, not an object, or a field is not numeric.
    """
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedMessageError(f"payload is a {type(data).__name__}, expected an object")
    try:
        return SensorDataMessage.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedMessageError(f"payload failed validation: {e.error_count()} error(s)") from e


class LiveSummaryChannel:
    """
    Owns the single push subscription for the active farm.

    ``start(farm_id)`` tears down any subscription for another farm before
    opening the new one; ``stop()`` is idempotent.
    """

    def __init__(
        self,
        config: AppConfig,
        token_provider: TokenProvider,
        on_patch: PatchHandler,
        *,
        on_state_change: StateListener | None = None,
        client_factory: Callable = create_push_client,
        event_bus: EventBus | None = None,
    ):
        self.on_patch = on_patch
        self.on_state_change = on_state_change
        self.channel = ChannelClient(
            "live_summary",
            config,
            token_provider,
            client_factory=client_factory,
            on_state_change=self._forward_state,
            event_bus=event_bus,
        )
        self._farm_id: str | None = None
        self._lifecycle_lock = threading.Lock()

    @property
    def farm_id(self) -> str | None:
        return self._farm_id

    @property
    def state(self) -> ChannelState:
        return self.channel.state

    @property
    def degraded(self) -> bool:
        return self.channel.degraded

    @property
    def health_status(self) -> HealthStatus:
        return self.channel.health_status

    def start(self, farm_id: str) -> bool:
        """Subscribe to ``farm_id``'s sensor topic, replacing any other farm's subscription."""
        topic = SENSOR_DATA_TOPIC.format(farm_id=farm_id)
        with self._lifecycle_lock:
            if self._farm_id is not None and self._farm_id != farm_id:
                logger.info("Switching live summary from farm %s to %s", self._farm_id, farm_id)
                self.channel.close()
            self._farm_id = farm_id
            # The farm is bound per subscription so a late message from an old farm stays attributable
            opened = self.channel.open(topic, lambda payload: self._handle_payload(farm_id, payload))
            if not opened:
                self._farm_id = None
            return opened

    def stop(self) -> None:
        with self._lifecycle_lock:
            if self._farm_id is not None:
                logger.info("Stopping live summary for farm %s", self._farm_id)
            self._farm_id = None
            self.channel.close()

    # ------------------------------------------------------------------

    def _handle_payload(self, farm_id: str, payload: bytes) -> None:
        try:
            message = decode_sensor_message(payload)
        except MalformedMessageError as e:
            self.channel.health_status.record_dropped_message()
            logger.warning("Dropping malformed sensor payload for farm %s: %s", farm_id, e)
            return

        patch = message.to_patch()
        if not patch:
            logger.debug("Sensor payload for farm %s carried no known fields", farm_id)
            return
        self.on_patch(farm_id, patch)

    def _forward_state(self, state: ChannelState, health: HealthStatus) -> None:
        if self.on_state_change is not None:
            self.on_state_change(state, health)
