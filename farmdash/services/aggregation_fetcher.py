"""
Aggregation Fetcher
===================

Pulls the two windowed aggregate series a chart mode needs and merges them
into chart rows. Both queries run side by side on the query pool and must
both succeed; a failure on either side fails the whole fetch.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass

from farmdash.domain.exceptions import TransientFetchError
from farmdash.domain.selection import DeviceSelection
from farmdash.domain.series import ChartRow, LabelFormatter, label_formatter, merge_series
from farmdash.enums.dashboard import ChartMode
from farmdash.enums.device import SensorClass
from farmdash.services.api_client import FarmApiClient
from farmdash.utils.concurrency import gather

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeriesSource:
    """Where one chart series comes from and the row key it lands under."""

    sensor_class: SensorClass
    query_field: str
    row_key: str


CHART_SERIES: dict[ChartMode, tuple[SeriesSource, SeriesSource]] = {
    ChartMode.ENVIRONMENT: (
        SeriesSource(SensorClass.ENVIRONMENT, "temperature", "temperature"),
        SeriesSource(SensorClass.ENVIRONMENT, "humidity", "humidity"),
    ),
    ChartMode.SOIL: (
        SeriesSource(SensorClass.SOIL_MOISTURE, "soil_moisture", "soilMoisture"),
        SeriesSource(SensorClass.SOIL_PH, "soilPH", "soilPH"),
    ),
}


def relevant_devices(mode: ChartMode, selection: DeviceSelection) -> tuple[str | None, str | None]:
    """The device ids ``mode`` reads, one per series."""
    source_a, source_b = CHART_SERIES[mode]
    return selection.get(source_a.sensor_class), selection.get(source_b.sensor_class)


class AggregationFetcher:
    """
    Fetch and merge the aggregate series for one chart mode.

    Attributes:
        api: Backend client used for the aggregate queries.
        executor: Pool the two queries run on. Must not be the pool that
            calls ``fetch``, since ``fetch`` blocks on it.
        window: Aggregation window passed to the backend (``10m``).
    """

    def __init__(
        self,
        api: FarmApiClient,
        executor: Executor,
        *,
        window: str = "10m",
        label: LabelFormatter | None = None,
    ):
        self.api = api
        self.executor = executor
        self.window = window
        self.label = label or label_formatter()

    def is_ready(self, mode: ChartMode, selection: DeviceSelection) -> bool:
        return all(relevant_devices(mode, selection))

    def fetch(self, mode: ChartMode, selection: DeviceSelection) -> list[ChartRow]:
        """
        Query both series for ``mode`` and merge them.

        Returns:
            Chart rows, or an empty list when a required device is not
            selected yet.

        Raises:
            TransientFetchError: Either query failed.
        """
        device_a, device_b = relevant_devices(mode, selection)
        if not device_a or not device_b:
            logger.debug("Chart %s not ready, devices=%s/%s", mode.value, device_a, device_b)
            return []

        source_a, source_b = CHART_SERIES[mode]
        try:
            series_a, series_b = gather(
                self.executor,
                lambda: self.api.get_aggregated(device_a, source_a.query_field, self.window),
                lambda: self.api.get_aggregated(device_b, source_b.query_field, self.window),
            )
        except TransientFetchError:
            raise
        except Exception as e:
            raise TransientFetchError(
                f"Aggregate query failed: {e}", detail={"mode": mode.value, "devices": [device_a, device_b]}
            ) from e

        rows = merge_series(series_a, series_b, source_a.row_key, source_b.row_key, label=self.label)
        logger.debug(
            "Chart %s: %d + %d points -> %d rows", mode.value, len(series_a), len(series_b), len(rows)
        )
        return rows
