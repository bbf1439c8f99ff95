"""
Dashboard API
=============

HTTP face of the dashboard orchestrator. Every route returns the current
view snapshot so the caller never has to issue a follow-up GET; updates that
land later (fetch completions, live patches) arrive over Socket.IO.
"""

import logging

from flask import Blueprint

from farmdash.blueprints.api._common import (
    get_context,
    get_json,
    get_orchestrator,
    optional_id,
    require_field,
    success,
)
from farmdash.utils.http import safe_route

logger = logging.getLogger(__name__)

dashboard_api = Blueprint("dashboard_api", __name__)


def _view():
    return get_orchestrator().view().to_dict()


@dashboard_api.get("")
@safe_route("Failed to read dashboard")
def get_dashboard():
    """Current dashboard view: summary, chart rows, selection, flags."""
    return success(_view())


@dashboard_api.put("/farm")
@safe_route("Failed to change farm")
def set_farm():
    """Body: ``{"farmId": "..."}``; ``null`` clears the farm and resets the dashboard."""
    farm_id = optional_id(require_field(get_json(), "farmId", "farm_id"), "farmId")
    get_context().set_farm(farm_id)
    return success(_view())


@dashboard_api.put("/user")
@safe_route("Failed to change user")
def set_user():
    """Body: ``{"userId": "..."}``; ``null`` is a logout and also clears the farm."""
    user_id = optional_id(require_field(get_json(), "userId", "user_id"), "userId")
    context = get_context()
    if user_id is None:
        context.clear()
    else:
        context.set_user(user_id)
    return success(_view())


@dashboard_api.put("/chart-mode")
@safe_route("Failed to change chart mode")
def set_chart_mode():
    """Body: ``{"mode": "env" | "soil"}``."""
    mode = require_field(get_json(), "mode", "chartMode")
    get_orchestrator().set_chart_mode(mode)
    return success(_view())


@dashboard_api.put("/devices")
@safe_route("Failed to select device")
def select_device():
    """Body: ``{"sensorClass": "SENSOR_PH", "deviceId": "..."}``; a null device clears the choice."""
    body = get_json()
    sensor_class = require_field(body, "sensorClass", "sensor_class")
    device_id = optional_id(require_field(body, "deviceId", "device_id"), "deviceId")
    get_orchestrator().select_device(sensor_class, device_id)
    return success(_view())


@dashboard_api.post("/chart/reload")
@safe_route("Failed to reload chart")
def reload_chart():
    get_orchestrator().reload_chart()
    return success(_view(), 202)


@dashboard_api.post("/reload")
@safe_route("Failed to reload dashboard")
def reload_dashboard():
    get_orchestrator().reload()
    return success(_view(), 202)
