"""
Helpers for constructing push-channel clients that work across paho-mqtt 1.x
and 2.x.

The 2.x releases add a callback API version flag; we pin the legacy
v3.1.1 callback signatures (``on_connect(client, userdata, flags, rc)``) so
the channel callbacks read the same on both major versions.
"""
from __future__ import annotations

from typing import Any, Dict

import paho.mqtt.client as mqtt


def create_push_client(client_id: str = "", transport: str = "websockets", **kwargs: Any) -> mqtt.Client:
    """
    Build an MQTT client for the push channel.

    Args:
        client_id: Optional client identifier.
        transport: ``"websockets"`` (default, browser-compatible broker
            endpoint) or ``"tcp"``.
        kwargs: Extra keyword arguments forwarded to the client constructor.
    """
    client_kwargs: Dict[str, Any] = {"client_id": client_id or "", "transport": transport}

    # Keep MQTT v3.1.1 protocol by default for broker compatibility.
    client_kwargs["protocol"] = kwargs.pop("protocol", getattr(mqtt, "MQTTv311", 4))
    client_kwargs.update(kwargs)

    callback_api_version = getattr(mqtt, "CallbackAPIVersion", None)
    if callback_api_version:
        api_candidates = ("VERSION1", "V1")
        callback_value = next(
            (getattr(callback_api_version, attr) for attr in api_candidates if hasattr(callback_api_version, attr)),
            None,
        )
        if callback_value is not None:
            client_kwargs["callback_api_version"] = callback_value

    try:
        return mqtt.Client(**client_kwargs)
    except TypeError:
        # Older paho versions do not support callback_api_version; retry with basics.
        client_kwargs.pop("callback_api_version", None)
        return mqtt.Client(**client_kwargs)
