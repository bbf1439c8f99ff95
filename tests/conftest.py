"""
Shared test fixtures for the FarmDash test suite.

Provides:
- A FARMDASH config with short, deterministic channel settings
- A fake paho client factory that records every call across clients
- Inline and manually-driven executors for fetch ordering tests
- An in-memory fake of the backend REST client
- An orchestrator factory wired to all of the above

Usage:
    def test_example(make_orchestrator, fake_api):
        orchestrator = make_orchestrator()
        orchestrator.context.set_farm("F1")
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from farmdash.config import AppConfig
from farmdash.domain.selection import SelectionContext
from farmdash.domain.series import label_formatter
from farmdash.schemas.telemetry import AggregatedPoint, Device, FarmSummary
from farmdash.services.aggregation_fetcher import AggregationFetcher
from farmdash.services.dashboard_orchestrator import DashboardOrchestrator

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("farmdash").setLevel(logging.WARNING)

T1 = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


# ========================== Executors ======================================


class InlineExecutor(Executor):
    """Runs every task synchronously in the submitting thread."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future


class ManualExecutor(Executor):
    """Queues tasks until the test runs them, in any order it likes."""

    def __init__(self) -> None:
        self.tasks: list[tuple[Future, Any, tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.tasks.append((future, fn, args, kwargs))
        return future

    @property
    def pending(self) -> int:
        return sum(1 for future, *_ in self.tasks if not future.done())

    def run(self, index: int) -> Future:
        future, fn, args, kwargs = self.tasks[index]
        if future.set_running_or_notify_cancel():
            try:
                result = fn(*args, **kwargs)
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)
        return future

    def run_all(self) -> None:
        index = 0
        while index < len(self.tasks):
            if not self.tasks[index][0].done():
                self.run(index)
            index += 1


@pytest.fixture()
def inline_executor():
    return InlineExecutor()


@pytest.fixture()
def manual_executor():
    return ManualExecutor()


# ========================== Push client fake ===============================


class DummyPushClient:
    """Stands in for paho's Client; callbacks are fired explicitly by tests."""

    def __init__(self, client_id: str, transport: str, log: list) -> None:
        self.client_id = client_id
        self.transport = transport
        self.log = log
        self.on_connect = None
        self.on_connect_fail = None
        self.on_disconnect = None
        self.on_message = None
        self.subscriptions: list[str] = []
        self.unsubscriptions: list[str] = []
        self.ws_options: dict | None = None
        self.credentials: tuple | None = None
        self.tls = False
        self.reconnect_delay: tuple | None = None
        self.connected_to: tuple | None = None
        self.loop_running = False
        self.connect_error: Exception | None = None

    def _record(self, name: str) -> None:
        self.log.append((name, self.client_id))

    def ws_set_options(self, path="/mqtt", headers=None):
        self.ws_options = {"path": path, "headers": headers}

    def username_pw_set(self, username, password=None):
        self.credentials = (username, password)

    def tls_set(self, *args, **kwargs):
        self.tls = True

    def reconnect_delay_set(self, min_delay=1, max_delay=120):
        self.reconnect_delay = (min_delay, max_delay)

    def connect_async(self, host, port=1883, keepalive=60):
        self._record("connect_async")
        if self.connect_error is not None:
            raise self.connect_error
        self.connected_to = (host, port, keepalive)

    def loop_start(self):
        self._record("loop_start")
        self.loop_running = True

    def loop_stop(self):
        self._record("loop_stop")
        self.loop_running = False

    def disconnect(self):
        self._record("disconnect")
        return 0

    def subscribe(self, topic, qos=0):
        self._record("subscribe")
        self.subscriptions.append(topic)
        return (0, len(self.subscriptions))

    def unsubscribe(self, topic):
        self._record("unsubscribe")
        self.unsubscriptions.append(topic)
        return (0, len(self.unsubscriptions))

    # -- simulate the network thread ------------------------------------

    def fire_connect(self, rc: int = 0) -> None:
        self.on_connect(self, None, {}, rc)

    def fire_connect_fail(self) -> None:
        self.on_connect_fail(self, None)

    def fire_disconnect(self, rc: int = 7) -> None:
        self.on_disconnect(self, None, rc)

    def fire_message(self, topic: str, payload: Any) -> None:
        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload).encode()
        elif isinstance(payload, str):
            payload = payload.encode()
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=payload))


class PushClientFactory:
    def __init__(self) -> None:
        self.clients: list[DummyPushClient] = []
        self.log: list[tuple[str, str]] = []
        self.connect_error: Exception | None = None

    def __call__(self, client_id: str = "", transport: str = "websockets", **kwargs) -> DummyPushClient:
        client = DummyPushClient(client_id, transport, self.log)
        client.connect_error = self.connect_error
        self.clients.append(client)
        self.log.append(("created", client_id))
        return client

    @property
    def last(self) -> DummyPushClient:
        return self.clients[-1]


@pytest.fixture()
def push_factory():
    return PushClientFactory()


# ========================== Backend API fake ===============================


class FakeApiClient:
    """In-memory stand-in for FarmApiClient."""

    def __init__(self) -> None:
        self.devices: dict[str, list[Device]] = {}
        self.summaries: dict[str, FarmSummary | None] = {}
        self.series: dict[tuple[str, str], list[AggregatedPoint]] = {}
        self.failures: dict[tuple, Exception] = {}
        self.calls: list[tuple] = []
        self._lock = threading.Lock()

    def _call(self, *key):
        with self._lock:
            self.calls.append(key)
        error = self.failures.get(key)
        if error is not None:
            raise error

    def get_devices(self, farm_id: str) -> list[Device]:
        self._call("devices", farm_id)
        return list(self.devices.get(farm_id, []))

    def get_summary(self, farm_id: str) -> FarmSummary | None:
        self._call("summary", farm_id)
        summary = self.summaries.get(farm_id)
        return summary.model_copy(deep=True) if summary is not None else None

    def get_aggregated(self, device_id: str, field: str, window: str = "10m") -> list[AggregatedPoint]:
        self._call("aggregated", device_id, field)
        return list(self.series.get((device_id, field), []))

    def close(self) -> None:
        return None


def make_device(device_id: str, device_type: str, name: str | None = None, farm_id: str = "F1") -> Device:
    return Device(deviceId=device_id, type=device_type, name=name, farmId=farm_id)


def make_point(value: float | None, at: datetime = T1, minutes: int = 0) -> AggregatedPoint:
    return AggregatedPoint(timestamp=at + timedelta(minutes=minutes), avgValue=value)


def make_summary(**environment: float) -> FarmSummary:
    return FarmSummary.model_validate(
        {"onlineDevices": 3, "totalDevices": 4, "averageEnvironment": environment}
    )


@pytest.fixture()
def fake_api():
    """Backend with two farms: F1 has all three sensor classes, F2 only an env sensor."""
    api = FakeApiClient()
    api.devices["F1"] = [
        make_device("env-1", "SENSOR_DHT22", "Greenhouse air"),
        make_device("env-2", "SENSOR_DHT22", "Nursery air"),
        make_device("moist-1", "SENSOR_SOIL_MOISTURE", "Bed A moisture"),
        make_device("ph-1", "SENSOR_PH", "Bed A pH"),
        make_device("pump-1", "ACTUATOR_PUMP", "Main pump"),
    ]
    api.devices["F2"] = [make_device("env-9", "SENSOR_DHT22", "Barn air", farm_id="F2")]
    api.summaries["F1"] = make_summary(avgTemperature=20.0, avgHumidity=55.0, avgSoilMoisture=41.0, avgSoilPH=6.5)
    api.summaries["F2"] = make_summary(avgTemperature=12.0)
    api.series[("env-1", "temperature")] = [make_point(21.0)]
    api.series[("env-1", "humidity")] = [make_point(60.0)]
    api.series[("moist-1", "soil_moisture")] = [make_point(40.0), make_point(42.0, minutes=10)]
    api.series[("ph-1", "soilPH")] = [make_point(6.4, minutes=10)]
    api.series[("env-9", "temperature")] = [make_point(11.0)]
    api.series[("env-9", "humidity")] = [make_point(80.0)]
    return api


@pytest.fixture()
def fake_api_helpers():
    """Builders for devices, points and summaries."""
    return SimpleNamespace(device=make_device, point=make_point, summary=make_summary, t1=T1)


# ========================== Config & services ==============================


@pytest.fixture()
def app_config(tmp_path):
    return replace(
        AppConfig(),
        push_broker_host="broker.test",
        push_broker_port=8080,
        push_transport="websockets",
        push_ws_path="/ws",
        push_use_tls=False,
        reconnect_delay_seconds=5,
        channel_degraded_after_failures=3,
        fetch_worker_count=2,
        api_token="test-token",
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture()
def event_bus():
    """Mock EventBus so tests never start the singleton's worker threads."""
    return MagicMock()


@pytest.fixture()
def make_orchestrator(app_config, fake_api, push_factory, event_bus, inline_executor):
    """Build an orchestrator on the fakes. Labels are formatted in UTC."""
    created = []

    def _make(executor=None, *, token: str | None = "test-token", on_view_change=None, start=True):
        fetcher = AggregationFetcher(fake_api, inline_executor, label=label_formatter(tz=timezone.utc))
        orchestrator = DashboardOrchestrator(
            SelectionContext(),
            fake_api,
            fetcher,
            app_config,
            lambda: token,
            executor=executor or inline_executor,
            client_factory=push_factory,
            event_bus=event_bus,
            on_view_change=on_view_change,
        )
        if start:
            orchestrator.start()
        created.append(orchestrator)
        return orchestrator

    yield _make

    for orchestrator in created:
        orchestrator.stop()
