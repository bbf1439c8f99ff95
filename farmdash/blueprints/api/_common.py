"""
Blueprint Common Utilities
==========================

Shared helper functions for the API blueprints.

Usage:
    from farmdash.blueprints.api._common import (
        get_container, get_orchestrator, get_json, require_field, success, fail,
    )
"""
from __future__ import annotations

import logging
from typing import Any

from flask import current_app, request

from farmdash.domain.exceptions import ValidationError
from farmdash.utils.http import error_response, success_response

logger = logging.getLogger("api._common")

_MISSING = object()

# ============================================================================
# CONTAINER ACCESS
# ============================================================================


def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def get_orchestrator():
    return get_container().orchestrator


def get_context():
    return get_container().context


# ============================================================================
# REQUEST HELPERS
# ============================================================================


def get_json() -> dict:
    """
    Get JSON request body with silent failure.

    Returns:
        dict: Parsed JSON body or empty dict if not available
    """
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def require_field(body: dict, *names: str) -> Any:
    """
    Return the first of ``names`` present in ``body``. ``null`` counts as present.

    Raises:
        ValidationError: None of the names is in the body.
    """
    for name in names:
        value = body.get(name, _MISSING)
        if value is not _MISSING:
            return value
    raise ValidationError(f"Missing field '{names[0]}'", detail={"field": names[0]})


def optional_id(value: Any, name: str) -> str | None:
    """Normalize an id from JSON: strings and integers are accepted, null clears."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError(f"Field '{name}' must be a string, a number or null", detail={"field": name})
    value = str(value).strip()
    if not value:
        raise ValidationError(f"Field '{name}' must not be empty", detail={"field": name})
    return value


# ============================================================================
# RESPONSE HELPERS
# ============================================================================


def success(data: dict | list | None = None, status: int = 200, *, message: str | None = None):
    """Flask Response with format: {"ok": true, "data": ..., "error": null}"""
    return success_response(data, status, message=message)


def fail(message: str, status: int = 400, *, details: dict | None = None):
    """Flask Response with format: {"ok": false, "data": null, "error": {...}}"""
    return error_response(message, status, details=details)
