"""
Unit Tests for LiveSummaryChannel
=================================
"""

import pytest

from farmdash.domain.exceptions import MalformedMessageError
from farmdash.enums.dashboard import ChannelState
from farmdash.services.live_summary_channel import LiveSummaryChannel, decode_sensor_message


@pytest.fixture
def patches():
    return []


@pytest.fixture
def live(app_config, push_factory, event_bus, patches):
    channel = LiveSummaryChannel(
        app_config,
        lambda: "tok",
        lambda farm_id, patch: patches.append((farm_id, patch)),
        client_factory=push_factory,
        event_bus=event_bus,
    )
    yield channel
    channel.stop()


class TestDecode:
    def test_decodes_partial_payload(self):
        message = decode_sensor_message(b'{"soilMoisture": 38.5}')

        assert message.to_patch() == {"avg_soil_moisture": 38.5}

    @pytest.mark.parametrize("payload", [b"not json", b"[1, 2]", b'{"humidity": "wet"}', b"\xff\xfe"])
    def test_malformed_payloads(self, payload):
        with pytest.raises(MalformedMessageError):
            decode_sensor_message(payload)


class TestLifecycle:
    def test_start_subscribes_farm_topic_on_connect(self, live, push_factory):
        assert live.start("F1")
        push_factory.last.fire_connect()

        assert push_factory.last.subscriptions == ["/topic/farm/F1/sensor-data"]
        assert live.state is ChannelState.CONNECTED
        assert live.farm_id == "F1"

    def test_switching_farm_closes_before_opening(self, live, push_factory):
        live.start("F1")
        first = push_factory.last
        first.fire_connect()

        live.start("F2")
        second = push_factory.last
        second.fire_connect()

        assert first.unsubscriptions == ["/topic/farm/F1/sensor-data"]
        assert push_factory.log.index(("loop_stop", first.client_id)) < push_factory.log.index(
            ("created", second.client_id)
        )
        assert second.subscriptions == ["/topic/farm/F2/sensor-data"]

    def test_restart_same_farm_keeps_one_connection(self, live, push_factory):
        live.start("F1")
        live.start("F1")

        assert len(push_factory.clients) == 1

    def test_stop_is_idempotent(self, live, push_factory):
        live.start("F1")

        live.stop()
        live.stop()

        assert live.state is ChannelState.DISCONNECTED
        assert live.farm_id is None

    def test_stop_before_start(self, live):
        live.stop()

        assert live.state is ChannelState.DISCONNECTED

    def test_without_token_nothing_connects(self, app_config, push_factory, event_bus):
        channel = LiveSummaryChannel(app_config, lambda: None, lambda *a: None, client_factory=push_factory, event_bus=event_bus)

        assert channel.start("F1") is False
        assert channel.farm_id is None
        assert push_factory.clients == []


class TestMessages:
    def test_patch_is_forwarded_with_farm(self, live, push_factory, patches):
        live.start("F1")
        push_factory.last.fire_connect()

        push_factory.last.fire_message("/topic/farm/F1/sensor-data", {"temperature": 21.5})

        assert patches == [("F1", {"avg_temperature": 21.5})]

    def test_malformed_payload_is_dropped_and_channel_stays_open(self, live, push_factory, patches):
        live.start("F1")
        client = push_factory.last
        client.fire_connect()

        client.fire_message("/topic/farm/F1/sensor-data", "{oops")
        client.fire_message("/topic/farm/F1/sensor-data", {"humidity": 61})

        assert patches == [("F1", {"avg_humidity": 61.0})]
        assert live.state is ChannelState.CONNECTED
        assert live.health_status.dropped_messages == 1

    def test_payload_without_known_fields_is_not_forwarded(self, live, push_factory, patches):
        live.start("F1")
        push_factory.last.fire_message("/topic/farm/F1/sensor-data", {"battery": 80})

        assert patches == []

    def test_null_field_is_forwarded_as_clear(self, live, push_factory, patches):
        live.start("F1")
        push_factory.last.fire_message("/topic/farm/F1/sensor-data", {"battery": 80, "temperature": None})

        assert patches == [("F1", {"avg_temperature": None})]

    def test_old_farm_messages_after_switch_are_ignored(self, live, push_factory, patches):
        live.start("F1")
        old = push_factory.last
        live.start("F2")

        old.fire_message("/topic/farm/F1/sensor-data", {"temperature": 30})

        assert patches == []

    def test_state_changes_are_forwarded(self, app_config, push_factory, event_bus):
        seen = []
        channel = LiveSummaryChannel(
            app_config,
            lambda: "tok",
            lambda *a: None,
            on_state_change=lambda state, health: seen.append(state),
            client_factory=push_factory,
            event_bus=event_bus,
        )
        channel.start("F1")
        push_factory.last.fire_connect()
        channel.stop()

        assert seen == [ChannelState.CONNECTING, ChannelState.CONNECTED, ChannelState.DISCONNECTED]
