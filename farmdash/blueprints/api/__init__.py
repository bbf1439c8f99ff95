"""JSON API blueprints, mounted under ``/api/v1``."""

from farmdash.blueprints.api.dashboard import dashboard_api

__all__ = ["dashboard_api"]
