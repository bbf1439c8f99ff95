"""
Enums Module
============

Enumeration types shared by the dashboard core, its channels and the
presentation adapter.
"""

from .dashboard import ChannelState, ChartMode, DashboardSection
from .device import SensorClass
from .events import ChannelEvent, DashboardEvent, WebSocketEvent

__all__ = [
    "ChannelEvent",
    "ChannelState",
    "ChartMode",
    "DashboardEvent",
    "DashboardSection",
    "SensorClass",
    "WebSocketEvent",
]
