"""Server entry point for the FarmDash telemetry dashboard.

Builds the Flask app, which connects the push channels as soon as a farm
or user is selected, and serves it through Flask-SocketIO.
"""
from __future__ import annotations

import logging
import os

from farmdash import create_app, socketio


def _env_flag_true(name: str) -> bool:
    v = os.getenv(name)
    return bool(v and v.lower() in ("1", "true", "yes", "on"))


def build_app():
    """Create the Flask app, applying the optional initial farm/user selection."""
    app = create_app()
    context = app.config["CONTAINER"].context
    user_id = os.getenv("FARMDASH_USER_ID")
    farm_id = os.getenv("FARMDASH_FARM_ID")
    if user_id:
        context.set_user(user_id)
    if farm_id:
        context.set_farm(farm_id)
    return app


def main() -> int:
    host = os.getenv("FARMDASH_HOST", "0.0.0.0")
    port = int(os.getenv("FARMDASH_PORT", "8000"))
    debug = _env_flag_true("FARMDASH_DEBUG")

    app = build_app()
    logging.info("Starting server on %s:%s", host, port)
    logging.info("SocketIO async_mode: %s", socketio.async_mode)

    try:
        socketio.run(
            app,
            host=host,
            port=port,
            debug=debug,
            use_reloader=False,
            allow_unsafe_werkzeug=True,
        )
        logging.info("Server stopped.")
        return 0
    except KeyboardInterrupt:
        logging.info("Server stopped by user.")
        return 0
    except Exception as exc:  # pragma: no cover - top-level runtime errors
        logging.exception("ERROR: Failed to start server: %s", exc)
        return 1
    finally:
        app.extensions["farmdash_shutdown"]("server exit")


if __name__ == "__main__":
    raise SystemExit(main())
