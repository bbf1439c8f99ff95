"""
Dashboard Orchestrator
======================

Owns the dashboard state for the active farm and keeps it in step with the
selection context:

- farm change: reset everything, move the live channel, load the overview
  (device list + summary) and then the chart;
- chart mode / device change: re-fetch the chart if the devices it reads
  changed;
- live patch: write the pushed fields onto the current summary.

State is touched by request threads, fetch pool callbacks and the push
client's network thread, so it lives behind one reentrant lock. Each fetch
carries a tag; a completion whose tag is no longer current is discarded.
Channel start and stop never run under that lock because paho callbacks
acquire it.

Author: FarmDash Team
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from farmdash.config import AppConfig
from farmdash.domain.exceptions import ValidationError
from farmdash.domain.selection import DeviceSelection, DeviceSelectionPolicy, SelectionChange, SelectionContext, group_by_class
from farmdash.domain.series import ChartRow, rows_to_dicts
from farmdash.domain.summary import apply_summary_patch
from farmdash.enums.dashboard import ChannelState, ChartMode, DashboardSection
from farmdash.enums.device import SensorClass
from farmdash.enums.events import DashboardEvent
from farmdash.schemas.dashboard import DashboardView, ErrorFlags, LiveStatus, LoadingFlags
from farmdash.schemas.telemetry import Device, FarmSummary
from farmdash.services.aggregation_fetcher import AggregationFetcher, relevant_devices
from farmdash.services.api_client import FarmApiClient
from farmdash.services.live_summary_channel import LiveSummaryChannel
from farmdash.transport.channel_client import HealthStatus, TokenProvider
from farmdash.transport.client_factory import create_push_client
from farmdash.utils.concurrency import gather, synchronized
from farmdash.utils.event_bus import EventBus

logger = logging.getLogger(__name__)

ViewListener = Callable[[DashboardView], None]


@dataclass(frozen=True)
class FetchTag:
    """Identifies one chart fetch and the selection it was issued for."""

    sequence: int
    farm_id: str
    mode: ChartMode
    devices: tuple[str | None, str | None]

    def covers(self, farm_id: str, mode: ChartMode, devices: tuple[str | None, str | None]) -> bool:
        return (self.farm_id, self.mode, self.devices) == (farm_id, mode, devices)


def _error_message(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


class DashboardOrchestrator:
    """
    Composes the fetcher, the selection policy and the live channel into one
    read-only view for the presentation layer.
    """

    def __init__(
        self,
        context: SelectionContext,
        api: FarmApiClient,
        fetcher: AggregationFetcher,
        config: AppConfig,
        token_provider: TokenProvider,
        *,
        executor: Executor | None = None,
        client_factory: Callable = create_push_client,
        event_bus: EventBus | None = None,
        on_view_change: ViewListener | None = None,
    ):
        self.context = context
        self.api = api
        self.fetcher = fetcher
        self.config = config
        self.policy = DeviceSelectionPolicy()
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.on_view_change = on_view_change
        self.live_channel = LiveSummaryChannel(
            config,
            token_provider,
            self.apply_live_patch,
            on_state_change=self._on_live_state,
            client_factory=client_factory,
            event_bus=self.event_bus,
        )

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=config.fetch_worker_count, thread_name_prefix="farmdash-fetch"
        )

        self._lock = threading.RLock()
        # Serializes farm switches; never taken by channel callbacks
        self._switch_lock = threading.Lock()
        self._unsubscribe: Callable[[], None] | None = None

        self._farm_id: str | None = None
        self._chart_mode = ChartMode.ENVIRONMENT
        self._devices: list[Device] = []
        self._summary: FarmSummary | None = None
        self._chart_rows: list[ChartRow] = []
        self._loading = {section: False for section in DashboardSection}
        self._errors: dict[DashboardSection, str | None] = {section: None for section in DashboardSection}
        self._live_state = ChannelState.DISCONNECTED
        self._live_degraded = False

        self._overview_sequence = 0
        self._overview_ticket: tuple[int, str] | None = None
        self._chart_sequence = 0
        self._chart_tag: FetchTag | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Follow the selection context, activating its current farm if any."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.context.subscribe(self._on_selection_change)
        if self.context.farm_id is not None:
            self._switch_farm()

    def stop(self) -> None:
        """Stop following the context, drop in-flight results and close the live channel."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            self._farm_id = None
            self._overview_ticket = None
            self._chart_tag = None
        self.live_channel.stop()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _on_selection_change(self, change: SelectionChange) -> None:
        if change.kind == "farm":
            self._switch_farm()

    def _switch_farm(self) -> None:
        with self._switch_lock:
            # Notifications can arrive out of order; the context holds the latest farm
            farm_id = self.context.farm_id
            with self._lock:
                previous = self._farm_id
                if farm_id == previous:
                    return
                self._farm_id = farm_id
                self._devices = []
                self._summary = None
                self._chart_rows = []
                self.policy.reset()
                self._overview_ticket = None
                self._chart_tag = None
                self._loading = {section: False for section in DashboardSection}
                self._errors = {section: None for section in DashboardSection}
            logger.info("Active farm %s -> %s", previous, farm_id)

            # The old farm's subscription is gone before the new one opens
            self.live_channel.stop()
            self.event_bus.publish(DashboardEvent.FARM_CHANGED, {"previous": previous, "current": farm_id})

            if farm_id is not None:
                self.live_channel.start(farm_id)
                with self._lock:
                    if self._farm_id == farm_id:
                        self._issue_overview()
            self._publish_view()

    # ------------------------------------------------------------------
    # Commands from the presentation layer
    # ------------------------------------------------------------------

    def set_chart_mode(self, mode: ChartMode | str) -> None:
        try:
            mode = ChartMode(mode)
        except ValueError:
            raise ValidationError(f"Unknown chart mode '{mode}'", detail={"mode": str(mode)}) from None

        with self._lock:
            if mode == self._chart_mode:
                return
            self._chart_mode = mode
            self._issue_chart()
            self._publish_view()

    def select_device(self, sensor_class: SensorClass | str, device_id: str | None) -> DeviceSelection:
        """
        Manually pick the device for one sensor class. ``None`` clears it.

        Raises:
            ValidationError: Unknown sensor class, no active farm, or the
                device is not one of the farm's devices of that class.
        """
        try:
            sensor_class = SensorClass(sensor_class)
        except ValueError:
            raise ValidationError(
                f"Unknown sensor class '{sensor_class}'", detail={"sensor_class": str(sensor_class)}
            ) from None

        with self._lock:
            if self._farm_id is None:
                raise ValidationError("No farm selected")
            selection = self.policy.select(sensor_class, device_id, self._devices)
            self._issue_chart()
            self._publish_view()
            return selection

    def reload_chart(self) -> Future | None:
        """Re-issue the current chart fetch even though the selection did not change."""
        with self._lock:
            future = self._issue_chart(force=True)
            self._publish_view()
            return future

    def reload(self) -> Future | None:
        """Re-load the device list and summary; the chart follows if the devices changed."""
        with self._lock:
            future = self._issue_overview()
            self._publish_view()
            return future

    # ------------------------------------------------------------------
    # Overview: devices + summary
    # ------------------------------------------------------------------

    def _issue_overview(self) -> Future | None:
        farm_id = self._farm_id
        if farm_id is None:
            return None
        self._overview_sequence += 1
        ticket = (self._overview_sequence, farm_id)
        self._overview_ticket = ticket
        self._loading[DashboardSection.OVERVIEW] = True

        future = self._executor.submit(self._load_overview, farm_id)
        future.add_done_callback(lambda done: self._on_overview_done(ticket, done))
        return future

    def _load_overview(self, farm_id: str) -> tuple[list[Device], FarmSummary | None]:
        devices, summary = gather(
            self.fetcher.executor,
            lambda: self.api.get_devices(farm_id),
            lambda: self.api.get_summary(farm_id),
        )
        return devices, summary

    def _on_overview_done(self, ticket: tuple[int, str], future: Future) -> None:
        with self._lock:
            if ticket != self._overview_ticket or future.cancelled():
                logger.debug("Discarding stale overview result for farm %s", ticket[1])
                return
            self._overview_ticket = None
            self._loading[DashboardSection.OVERVIEW] = False

            error = future.exception()
            if error is not None:
                logger.error("Overview load for farm %s failed: %s", ticket[1], error, exc_info=error)
                self._errors[DashboardSection.OVERVIEW] = _error_message(error)
            else:
                devices, summary = future.result()
                self._devices = devices
                self._summary = summary
                self._errors[DashboardSection.OVERVIEW] = None
                self.policy.apply_defaults(devices)
                logger.info("Loaded %d devices for farm %s", len(devices), ticket[1])
                self._issue_chart()
            self._publish_view()

    # ------------------------------------------------------------------
    # Chart
    # ------------------------------------------------------------------

    def _issue_chart(self, force: bool = False) -> Future | None:
        farm_id = self._farm_id
        if farm_id is None:
            return None
        mode = self._chart_mode
        selection = self.policy.selection
        devices = relevant_devices(mode, selection)
        if not force and self._chart_tag is not None and self._chart_tag.covers(farm_id, mode, devices):
            return None

        self._chart_sequence += 1
        tag = FetchTag(self._chart_sequence, farm_id, mode, devices)
        self._chart_tag = tag
        self._loading[DashboardSection.CHART] = True
        logger.debug("Issuing chart fetch %s", tag)

        future = self._executor.submit(self.fetcher.fetch, mode, selection)
        future.add_done_callback(lambda done: self._on_chart_done(tag, done))
        return future

    def _on_chart_done(self, tag: FetchTag, future: Future) -> None:
        with self._lock:
            if tag != self._chart_tag or future.cancelled():
                logger.debug("Discarding stale chart result %s", tag)
                return
            self._loading[DashboardSection.CHART] = False

            error = future.exception()
            if error is not None:
                # Previous rows stay on screen next to the error
                logger.error("Chart fetch %s failed: %s", tag, error, exc_info=error)
                self._errors[DashboardSection.CHART] = _error_message(error)
            else:
                self._chart_rows = future.result()
                self._errors[DashboardSection.CHART] = None
            self._publish_view()

    # ------------------------------------------------------------------
    # Live channel callbacks (network thread)
    # ------------------------------------------------------------------

    def apply_live_patch(self, farm_id: str, patch: dict[str, float | None]) -> bool:
        """Write pushed fields onto the current summary. Returns False when the patch was dropped."""
        with self._lock:
            if farm_id != self._farm_id:
                logger.debug("Dropping live patch for inactive farm %s", farm_id)
                return False
            if self._summary is None:
                logger.debug("Dropping live patch for farm %s, no summary loaded yet", farm_id)
                return False
            written = apply_summary_patch(self._summary, patch)
            if written:
                self._publish_view()
            return bool(written)

    def _on_live_state(self, state: ChannelState, health: HealthStatus) -> None:
        with self._lock:
            degraded = health.consecutive_failures >= self.config.channel_degraded_after_failures
            if degraded and not self._live_degraded:
                logger.warning(
                    "Live channel degraded after %d consecutive failures: %s",
                    health.consecutive_failures,
                    health.last_error,
                )
            self._live_state = state
            self._live_degraded = degraded
            self._publish_view()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def farm_id(self) -> str | None:
        return self._farm_id

    @property
    def chart_mode(self) -> ChartMode:
        return self._chart_mode

    @property
    def selection(self) -> DeviceSelection:
        return self.policy.selection

    @synchronized
    def view(self) -> DashboardView:
        """Snapshot of the current state; safe to hand to other threads."""
        grouped = group_by_class(self._devices)
        return DashboardView(
            farm_id=self._farm_id,
            chart_mode=self._chart_mode,
            summary=self._summary.model_copy(deep=True) if self._summary is not None else None,
            chart_rows=rows_to_dicts(self._chart_rows),
            selection=self.policy.selection.to_dict(),
            device_options={sensor_class.value: devices for sensor_class, devices in grouped.items()},
            loading=LoadingFlags(
                overview=self._loading[DashboardSection.OVERVIEW],
                chart=self._loading[DashboardSection.CHART],
            ),
            errors=ErrorFlags(
                overview=self._errors[DashboardSection.OVERVIEW],
                chart=self._errors[DashboardSection.CHART],
            ),
            live=LiveStatus(state=self._live_state, degraded=self._live_degraded),
        )

    @synchronized
    def _publish_view(self) -> None:
        if self.on_view_change is None:
            return
        view = self.view()
        try:
            self.on_view_change(view)
        except Exception as e:
            logger.error("View listener failed: %s", e, exc_info=True)
