from __future__ import annotations

import atexit
import logging
import threading
from typing import Any, Callable

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from farmdash.blueprints.api import dashboard_api
from farmdash.config import load_config, setup_logging
from farmdash.extensions import init_extensions, socketio
from farmdash.transport.channel_client import TokenProvider
from farmdash.transport.client_factory import create_push_client

__version__ = "1.0.0"


def create_app(
    config_overrides: dict[str, Any] | None = None,
    *,
    token_provider: TokenProvider | None = None,
    client_factory: Callable = create_push_client,
) -> Flask:
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key.lower(), value)

    # Configure logging early so channel start-up is visible in the terminal and farmdash.log
    setup_logging(debug=config.DEBUG, log_dir=config.log_dir)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())

    # Initialize Socket.IO BEFORE building ServiceContainer (EmitterService needs it)
    init_extensions(flask_app, config.socketio_cors_origins)

    from farmdash.extensions import socketio as sio_instance
    from farmdash.services.container import ServiceContainer

    container = ServiceContainer.build(
        config, sio=sio_instance, token_provider=token_provider, client_factory=client_factory
    )
    flask_app.config["CONTAINER"] = container

    # ── Graceful shutdown ───────────────────────────────────────────
    _shutdown_lock = threading.Lock()

    def _graceful_shutdown(reason: str = "unknown") -> None:
        with _shutdown_lock:
            if container._shutdown_complete:
                return
            logging.info("Graceful shutdown initiated (%s)", reason)
            try:
                container.shutdown()
            except Exception as exc:
                logging.warning("Error during graceful shutdown: %s", exc)

    atexit.register(_graceful_shutdown, "atexit")
    flask_app.extensions["farmdash_shutdown"] = _graceful_shutdown

    # Global JSON error handler: domain exceptions carry their own ``http_status``
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        if not request.path.startswith("/api/"):
            raise exc
        from farmdash.domain.exceptions import DashboardError
        from farmdash.utils.http import dashboard_error_response, error_response, safe_error

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, DashboardError):
            return dashboard_error_response(exc)

        return safe_error(exc, 500, context="unhandled")

    # ── API version prefix ──────────────────────────────────────────
    V1 = "/api/v1"
    flask_app.register_blueprint(dashboard_api, url_prefix=f"{V1}/dashboard")

    # Register Socket.IO event handlers (must be after socketio init)
    from farmdash.socketio import register_handlers

    register_handlers()

    for bp_name, _bp in flask_app.blueprints.items():
        logging.info(f" Registered blueprint: {bp_name}")

    logger = logging.getLogger(__name__)
    logger.info("FarmDash application initialized successfully.")
    return flask_app
