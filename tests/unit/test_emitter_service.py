from farmdash.enums.dashboard import ChartMode
from farmdash.schemas.dashboard import DashboardView
from farmdash.schemas.telemetry import NotificationMessage
from farmdash.utils.emitters import (
    SOCKETIO_NAMESPACE_DASHBOARD,
    SOCKETIO_NAMESPACE_NOTIFICATIONS,
    EmitterService,
)


class FakeSocketIO:
    def __init__(self) -> None:
        self.emits: list[dict] = []

    def emit(self, event, payload, room=None, namespace="/"):
        self.emits.append(
            {
                "event": event,
                "payload": payload,
                "room": room,
                "namespace": namespace,
            }
        )


class BrokenSocketIO:
    def emit(self, *args, **kwargs):
        raise RuntimeError("transport closed")


def test_emit_dashboard_view_broadcasts_camel_case_snapshot():
    sio = FakeSocketIO()
    emitter = EmitterService(sio=sio)

    view = DashboardView(
        farm_id="F1",
        chart_mode=ChartMode.SOIL,
        chart_rows=[{"timeLabel": "08:00", "soilMoisture": 40.0}],
    )
    emitter.emit_dashboard_view(view)

    event = sio.emits[-1]
    assert event["event"] == "dashboard_view"
    assert event["namespace"] == SOCKETIO_NAMESPACE_DASHBOARD
    assert event["room"] is None
    assert event["payload"]["farmId"] == "F1"
    assert event["payload"]["chartMode"] == "soil"
    assert event["payload"]["chartRows"] == [{"timeLabel": "08:00", "soilMoisture": 40.0}]
    assert event["payload"]["loading"] == {"overview": False, "chart": False}


def test_emit_notification_targets_user_room():
    sio = FakeSocketIO()
    emitter = EmitterService(sio=sio)

    emitter.emit_notification("u1", NotificationMessage(title="Pump stalled", message="Check pump-1"))

    event = sio.emits[-1]
    assert event["event"] == "notification"
    assert event["room"] == "user_u1"
    assert event["namespace"] == SOCKETIO_NAMESPACE_NOTIFICATIONS
    assert event["payload"] == {"title": "Pump stalled", "message": "Check pump-1"}


def test_emit_failures_are_logged_not_raised():
    emitter = EmitterService(sio=BrokenSocketIO())

    emitter.emit_notification("u1", NotificationMessage(title="ignored"))
