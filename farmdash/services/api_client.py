"""
Farm API Client
===============

Read-only client for the backend REST API. Every response comes wrapped in a
``{"data": ...}`` envelope; the client unwraps it, validates the payload
into the wire schemas and turns anything that went wrong on the way into a
single :class:`TransientFetchError`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import requests
from pydantic import ValidationError as PydanticValidationError

from farmdash.domain.exceptions import TransientFetchError
from farmdash.schemas.telemetry import AggregatedPoint, Device, FarmSummary

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], "str | None"]


class FarmApiClient:
    """
    Thin ``requests`` wrapper over the three endpoints the dashboard reads.

    Attributes:
        base_url: API root, e.g. ``http://localhost:8080/api``.
        token_provider: Returns the current bearer token, or None when signed out.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider or (lambda: None)
        self.timeout = timeout
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_devices(self, farm_id: str) -> list[Device]:
        """``GET /devices?farmId=`` -> the farm's devices in list order."""
        data = self._get("/devices", params={"farmId": farm_id})
        if data is None:
            return []
        if not isinstance(data, list):
            raise TransientFetchError(
                "Device list response is not a list", detail={"farm_id": farm_id, "type": type(data).__name__}
            )

        devices = []
        for item in data:
            try:
                devices.append(Device.model_validate(item))
            except PydanticValidationError as e:
                logger.warning("Skipping invalid device entry for farm %s: %s", farm_id, e)
        return devices

    def get_summary(self, farm_id: str) -> FarmSummary | None:
        """``GET /reports/summary?farmId=`` -> the initial summary, or None if the farm has none yet."""
        data = self._get("/reports/summary", params={"farmId": farm_id})
        if data is None:
            return None
        try:
            return FarmSummary.model_validate(data)
        except PydanticValidationError as e:
            raise TransientFetchError("Invalid summary response", detail={"farm_id": farm_id}) from e

    def get_aggregated(self, device_id: str, field: str, window: str = "10m") -> list[AggregatedPoint]:
        """``GET /devices/{id}/data/aggregated`` -> one point per aggregation window."""
        data = self._get(
            f"/devices/{device_id}/data/aggregated",
            params={"field": field, "window": window},
        )
        if data is None:
            return []
        if not isinstance(data, list):
            raise TransientFetchError(
                "Aggregate response is not a list", detail={"device_id": device_id, "field": field}
            )

        points = []
        for item in data:
            try:
                points.append(AggregatedPoint.model_validate(item))
            except PydanticValidationError as e:
                logger.warning("Skipping invalid %s point for device %s: %s", field, device_id, e)
        return points

    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise TransientFetchError(f"GET {path} failed: {e}", detail={"path": path, "params": params}) from e
        except ValueError as e:
            raise TransientFetchError(f"GET {path} returned invalid JSON", detail={"path": path}) from e

        logger.debug("GET %s params=%s -> %s", path, params, response.status_code)
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def close(self) -> None:
        self.session.close()
