"""
Unit Tests for AggregationFetcher
=================================
"""

from datetime import timezone

import pytest

from farmdash.domain.exceptions import TransientFetchError
from farmdash.domain.selection import DeviceSelection
from farmdash.domain.series import label_formatter
from farmdash.enums.dashboard import ChartMode
from farmdash.services.aggregation_fetcher import AggregationFetcher, relevant_devices


@pytest.fixture
def fetcher(fake_api, inline_executor):
    return AggregationFetcher(fake_api, inline_executor, window="10m", label=label_formatter(tz=timezone.utc))


FULL = DeviceSelection(environment="env-1", soil_moisture="moist-1", soil_ph="ph-1")


class TestEnvironmentMode:
    def test_same_bucket_yields_one_row(self, fetcher):
        rows = fetcher.fetch(ChartMode.ENVIRONMENT, FULL)

        assert [row.to_dict() for row in rows] == [{"timeLabel": "08:00", "temperature": 21.0, "humidity": 60.0}]

    def test_queries_temperature_and_humidity_on_env_device(self, fetcher, fake_api):
        fetcher.fetch(ChartMode.ENVIRONMENT, FULL)

        assert sorted(c for c in fake_api.calls if c[0] == "aggregated") == [
            ("aggregated", "env-1", "humidity"),
            ("aggregated", "env-1", "temperature"),
        ]


class TestSoilMode:
    def test_reads_two_devices(self, fetcher, fake_api):
        rows = fetcher.fetch(ChartMode.SOIL, FULL)

        assert [row.to_dict() for row in rows] == [
            {"timeLabel": "08:00", "soilMoisture": 40.0},
            {"timeLabel": "08:10", "soilMoisture": 42.0, "soilPH": 6.4},
        ]
        assert ("aggregated", "moist-1", "soil_moisture") in fake_api.calls
        assert ("aggregated", "ph-1", "soilPH") in fake_api.calls

    def test_missing_ph_device_is_not_ready(self, fetcher, fake_api):
        selection = DeviceSelection(environment="env-1", soil_moisture="moist-1")

        assert fetcher.fetch(ChartMode.SOIL, selection) == []
        assert fake_api.calls == []
        assert not fetcher.is_ready(ChartMode.SOIL, selection)


class TestFailures:
    def test_either_query_failing_fails_the_fetch(self, fetcher, fake_api):
        fake_api.failures[("aggregated", "ph-1", "soilPH")] = TransientFetchError("ph query failed")

        with pytest.raises(TransientFetchError, match="ph query failed"):
            fetcher.fetch(ChartMode.SOIL, FULL)

    def test_unexpected_error_is_wrapped(self, fetcher, fake_api):
        fake_api.failures[("aggregated", "env-1", "temperature")] = RuntimeError("socket closed")

        with pytest.raises(TransientFetchError) as exc_info:
            fetcher.fetch(ChartMode.ENVIRONMENT, FULL)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.detail["mode"] == "env"


def test_relevant_devices_per_mode():
    assert relevant_devices(ChartMode.ENVIRONMENT, FULL) == ("env-1", "env-1")
    assert relevant_devices(ChartMode.SOIL, FULL) == ("moist-1", "ph-1")
