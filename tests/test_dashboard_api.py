from types import SimpleNamespace

import pytest
from flask import Flask

from farmdash.blueprints.api import dashboard_api

BASE = "/api/v1/dashboard"


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


@pytest.fixture
def client(orchestrator):
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["CONTAINER"] = SimpleNamespace(orchestrator=orchestrator, context=orchestrator.context)
    app.register_blueprint(dashboard_api, url_prefix=BASE)
    return app.test_client()


def test_get_dashboard_without_farm(client):
    response = client.get(BASE)

    assert response.status_code == 200
    body = response.get_json()
    assert body["ok"] is True
    assert body["error"] is None
    assert body["data"]["farmId"] is None
    assert body["data"]["chartRows"] == []
    assert body["data"]["live"] == {"state": "disconnected", "degraded": False}


def test_select_farm_returns_loaded_view(client):
    response = client.put(f"{BASE}/farm", json={"farmId": "F1"})

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["farmId"] == "F1"
    assert data["chartMode"] == "env"
    assert data["chartRows"] == [{"timeLabel": "08:00", "temperature": 21.0, "humidity": 60.0}]
    assert data["summary"]["averageEnvironment"]["avgTemperature"] == 20.0
    assert data["summary"]["averageEnvironment"]["avgSoilPH"] == 6.5
    assert data["selection"]["environment"] == "env-1"
    assert [d["deviceId"] for d in data["deviceOptions"]["SENSOR_DHT22"]] == ["env-1", "env-2"]


def test_numeric_farm_id_is_accepted(client, orchestrator):
    client.put(f"{BASE}/farm", json={"farmId": 7})

    assert orchestrator.farm_id == "7"


def test_null_farm_clears_dashboard(client):
    client.put(f"{BASE}/farm", json={"farmId": "F1"})

    response = client.put(f"{BASE}/farm", json={"farmId": None})

    data = response.get_json()["data"]
    assert data["farmId"] is None
    assert data["summary"] is None
    assert data["chartRows"] == []


def test_missing_farm_field(client):
    response = client.put(f"{BASE}/farm", json={})

    assert response.status_code == 400
    body = response.get_json()
    assert body["ok"] is False
    assert "farmId" in body["error"]["message"]


def test_change_chart_mode(client):
    client.put(f"{BASE}/farm", json={"farmId": "F1"})

    response = client.put(f"{BASE}/chart-mode", json={"mode": "soil"})

    data = response.get_json()["data"]
    assert data["chartMode"] == "soil"
    assert data["chartRows"][-1] == {"timeLabel": "08:10", "soilMoisture": 42.0, "soilPH": 6.4}


def test_unknown_chart_mode_is_rejected(client):
    response = client.put(f"{BASE}/chart-mode", json={"mode": "radar"})

    assert response.status_code == 400
    assert response.get_json()["error"]["mode"] == "radar"


def test_select_device(client, fake_api, fake_api_helpers):
    fake_api.series[("env-2", "temperature")] = [fake_api_helpers.point(18.0)]
    client.put(f"{BASE}/farm", json={"farmId": "F1"})

    response = client.put(f"{BASE}/devices", json={"sensorClass": "SENSOR_DHT22", "deviceId": "env-2"})

    data = response.get_json()["data"]
    assert data["selection"]["environment"] == "env-2"
    assert data["chartRows"] == [{"timeLabel": "08:00", "temperature": 18.0}]


def test_select_unknown_device_is_rejected(client):
    client.put(f"{BASE}/farm", json={"farmId": "F1"})

    response = client.put(f"{BASE}/devices", json={"sensorClass": "SENSOR_PH", "deviceId": "ph-404"})

    assert response.status_code == 400
    assert response.get_json()["error"]["device_id"] == "ph-404"


def test_select_device_requires_device_field(client):
    client.put(f"{BASE}/farm", json={"farmId": "F1"})

    response = client.put(f"{BASE}/devices", json={"sensorClass": "SENSOR_PH"})

    assert response.status_code == 400


def test_reload_chart_reports_inline_error(client, fake_api):
    from farmdash.domain.exceptions import TransientFetchError

    client.put(f"{BASE}/farm", json={"farmId": "F1"})
    fake_api.failures[("aggregated", "env-1", "temperature")] = TransientFetchError("backend timeout")

    response = client.post(f"{BASE}/chart/reload")

    assert response.status_code == 202
    data = response.get_json()["data"]
    assert data["errors"]["chart"] == "backend timeout"
    assert data["chartRows"] == [{"timeLabel": "08:00", "temperature": 21.0, "humidity": 60.0}]


def test_reload_overview(client, fake_api):
    client.put(f"{BASE}/farm", json={"farmId": "F1"})
    calls_before = fake_api.calls.count(("summary", "F1"))

    response = client.post(f"{BASE}/reload")

    assert response.status_code == 202
    assert fake_api.calls.count(("summary", "F1")) == calls_before + 1


def test_logout_clears_user_and_farm(client, orchestrator):
    client.put(f"{BASE}/user", json={"userId": "u1"})
    client.put(f"{BASE}/farm", json={"farmId": "F1"})

    response = client.put(f"{BASE}/user", json={"userId": None})

    assert response.status_code == 200
    assert orchestrator.context.user_id is None
    assert orchestrator.context.farm_id is None
    assert response.get_json()["data"]["farmId"] is None


def test_non_json_body(client):
    response = client.put(f"{BASE}/chart-mode", data="mode=soil", content_type="text/plain")

    assert response.status_code == 400
