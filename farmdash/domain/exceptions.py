"""Centralized exception hierarchy for FarmDash.

All dashboard errors inherit from :class:`DashboardError` so that callers can
catch a single base class when they need a broad safety net, yet still match
on specific subclasses where narrower handling is appropriate.

The HTTP adapter (see ``farmdash/utils/http.safe_route``) maps these to the
correct status codes automatically.

Hierarchy
---------
::

    DashboardError (base, maps to 500)
    ├── ValidationError          (400: bad input from the presentation layer)
    ├── TransientFetchError      (502: REST query failed or returned garbage)
    ├── MalformedMessageError    (422: push payload could not be decoded)
    ├── ChannelFailure           (503: push connection dropped or refused)
    └── ConfigurationError       (500: missing / invalid config)

A discarded stale fetch result is not an error and has no class here.
"""

from __future__ import annotations


class DashboardError(Exception):
    """Base exception for all FarmDash errors.

    Parameters
    ----------
    message:
        Human-readable description (logged, and shown inline for fetch
        failures).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


class ValidationError(DashboardError):
    """Caller supplied invalid or incomplete input (HTTP 400)."""

    http_status: int = 400


class TransientFetchError(DashboardError):
    """Network/HTTP failure on a summary, device or aggregate query (HTTP 502)."""

    http_status: int = 502


class MalformedMessageError(DashboardError):
    """Push payload failed to decode; the message is dropped (HTTP 422)."""

    http_status: int = 422


class ChannelFailure(DashboardError):
    """Push connection could not be established or was lost (HTTP 503)."""

    http_status: int = 503


class ConfigurationError(DashboardError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
