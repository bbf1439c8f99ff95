"""
Schemas Module
==============

Pydantic models for the backend's wire formats, the push payloads and the
view model handed to the presentation layer.
"""

from farmdash.schemas.dashboard import DashboardView, ErrorFlags, LiveStatus, LoadingFlags
from farmdash.schemas.events import ConnectivityStatePayload, NotificationEventPayload
from farmdash.schemas.telemetry import (
    TELEMETRY_FIELDS,
    AggregatedPoint,
    AverageEnvironment,
    Device,
    FarmSummary,
    NotificationMessage,
    SensorDataMessage,
)

__all__ = [
    "TELEMETRY_FIELDS",
    "AggregatedPoint",
    "AverageEnvironment",
    "ConnectivityStatePayload",
    "DashboardView",
    "Device",
    "ErrorFlags",
    "FarmSummary",
    "LiveStatus",
    "LoadingFlags",
    "NotificationEventPayload",
    "NotificationMessage",
    "SensorDataMessage",
]
