import paho.mqtt.client as mqtt

from farmdash.transport.client_factory import create_push_client


def test_create_push_client_handles_available_version_flags():
    client = create_push_client("factory-test")

    assert getattr(client, "_client_id", b"").decode() == "factory-test"
    assert getattr(client, "_protocol", None) in (4, getattr(mqtt, "MQTTv311", 4))
    assert hasattr(client, "connect_async")


def test_create_push_client_defaults_to_websockets():
    client = create_push_client("factory-ws")

    assert getattr(client, "_transport", None) == "websockets"


def test_create_push_client_tcp_transport():
    client = create_push_client("factory-tcp", transport="tcp")

    assert getattr(client, "_transport", None) == "tcp"
