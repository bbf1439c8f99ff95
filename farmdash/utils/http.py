"""
JSON envelopes for the dashboard HTTP adapter.

Every API response has the shape ``{"ok": bool, "data": ..., "error": ...}``.
A 4xx echoes the domain message and its ``detail`` so the UI can point at the
offending field. A 5xx is logged with its traceback and answered with a fixed
text for that status; exception text from the backend or the broker is never
sent to the browser.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify

from farmdash.domain.exceptions import DashboardError
from farmdash.utils.time import iso_now

logger = logging.getLogger(__name__)

_SERVER_ERROR_TEXT: dict[int, str] = {
    500: "The dashboard hit an internal error",
    502: "The farm backend did not answer",
    503: "The live channel is unavailable",
}


def _envelope(
    status: int, *, ok: bool, data: Any = None, error: dict[str, Any] | None = None, **extra: Any
) -> Response:
    response = jsonify({"ok": ok, "data": data, "error": error, **extra})
    response.status_code = status
    return response


def success_response(data: dict | list | None = None, status: int = 200, *, message: str | None = None) -> Response:
    extra = {"message": message} if message is not None else {}
    return _envelope(status, ok=True, data=data, **extra)


def error_response(message: str, status: int = 500, *, details: dict | None = None) -> Response:
    """``details`` keys are merged into the ``error`` object next to ``message``."""
    error: dict[str, Any] = {"message": message, "timestamp": iso_now(), **(details or {})}
    return _envelope(status, ok=False, error=error)


def safe_error(exc: BaseException, status: int = 500, *, context: str = "") -> Response:
    """Log ``exc`` server-side and answer with the fixed text for ``status``."""
    logger.error("%s failed with HTTP %s: %s", context or "request", status, exc, exc_info=exc)
    return error_response(_SERVER_ERROR_TEXT.get(status, _SERVER_ERROR_TEXT[500]), status)


def dashboard_error_response(exc: DashboardError, *, context: str = "", fallback: str = "Request failed") -> Response:
    """Map a domain error onto its ``http_status``; 5xx text is masked."""
    if exc.http_status >= 500:
        return safe_error(exc, exc.http_status, context=context or type(exc).__name__)
    return error_response(str(exc) or fallback, exc.http_status, details=exc.detail or None)


def safe_route(error_message: str = "Request failed", *, error_status: int = 500) -> Callable:
    """
    Route decorator: domain errors become envelopes with their own status,
    anything else is logged and answered with ``error_status``.

        @dashboard_api.put("/chart-mode")
        @safe_route("Failed to change chart mode")
        def set_chart_mode():
            ...
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except DashboardError as exc:
                return dashboard_error_response(exc, context=error_message, fallback=error_message)
            except Exception as exc:
                return safe_error(exc, error_status, context=error_message)

        return wrapper

    return decorator
