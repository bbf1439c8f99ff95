"""
Service Organization
====================
Long-lived dashboard services, built once by ServiceContainer:

**FarmApiClient** - REST queries for devices, the farm summary and aggregates
**AggregationFetcher** - two aggregate series per chart mode, merged into rows
**LiveSummaryChannel** - per-farm sensor-data subscription
**NotificationChannel** - per-user alert subscription
**DashboardOrchestrator** - owns the view state and ties the above together
"""

from .aggregation_fetcher import CHART_SERIES, AggregationFetcher, SeriesSource, relevant_devices
from .api_client import FarmApiClient
from .dashboard_orchestrator import DashboardOrchestrator, FetchTag
from .live_summary_channel import LiveSummaryChannel
from .notification_channel import NotificationChannel

__all__ = [
    "CHART_SERIES",
    "AggregationFetcher",
    "DashboardOrchestrator",
    "FarmApiClient",
    "FetchTag",
    "LiveSummaryChannel",
    "NotificationChannel",
    "SeriesSource",
    "relevant_devices",
]
