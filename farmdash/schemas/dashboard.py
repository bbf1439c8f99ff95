"""
Dashboard view model
====================

The read-only snapshot handed to the presentation layer. It never carries
connection objects, only plain data and per-section flags.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from farmdash.enums.dashboard import ChannelState, ChartMode
from farmdash.schemas.telemetry import Device, FarmSummary


class LoadingFlags(BaseModel):
    model_config = ConfigDict(frozen=True)

    overview: bool = False
    chart: bool = False


class ErrorFlags(BaseModel):
    """Inline error message per section, None when the last load succeeded."""

    model_config = ConfigDict(frozen=True)

    overview: str | None = None
    chart: str | None = None


class LiveStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: ChannelState = ChannelState.DISCONNECTED
    degraded: bool = False


class DashboardView(BaseModel):
    """Immutable snapshot of everything the dashboard displays."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    farm_id: str | None = None
    chart_mode: ChartMode = ChartMode.ENVIRONMENT
    summary: FarmSummary | None = None
    chart_rows: list[dict[str, Any]] = Field(default_factory=list)
    selection: dict[str, str | None] = Field(default_factory=dict)
    device_options: dict[str, list[Device]] = Field(default_factory=dict)
    loading: LoadingFlags = Field(default_factory=LoadingFlags)
    errors: ErrorFlags = Field(default_factory=ErrorFlags)
    live: LiveStatus = Field(default_factory=LiveStatus)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready camelCase dict."""
        return self.model_dump(mode="json", by_alias=True)
