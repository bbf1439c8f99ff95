"""
Configuration for the FarmDash telemetry dashboard
==================================================
Runtime settings for the REST poller, the push channels and the
presentation adapter. Everything is read from ``FARMDASH_*`` environment
variables with sensible defaults.
Setups the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

PUSH_TRANSPORTS = ("websockets", "tcp")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("FARMDASH_ENV", "development"))
    secret_key: str = field(default_factory=lambda: os.getenv("FARMDASH_SECRET_KEY", "FarmDashDevSecretKey"))

    # Backend REST API
    api_base_url: str = field(default_factory=lambda: os.getenv("FARMDASH_API_URL", "http://localhost:8080/api"))
    api_timeout_seconds: float = field(default_factory=lambda: _env_float("FARMDASH_API_TIMEOUT", 10.0))
    aggregation_window: str = field(default_factory=lambda: os.getenv("FARMDASH_AGGREGATION_WINDOW", "10m"))
    fetch_worker_count: int = field(default_factory=lambda: _env_int("FARMDASH_FETCH_WORKERS", 4))
    # Bearer credential for the REST API and the push broker
    api_token: str = field(default_factory=lambda: os.getenv("FARMDASH_API_TOKEN", ""))

    # Push channel (MQTT over websockets by default)
    push_broker_host: str = field(default_factory=lambda: os.getenv("FARMDASH_PUSH_HOST", "localhost"))
    push_broker_port: int = field(default_factory=lambda: _env_int("FARMDASH_PUSH_PORT", 8080))
    push_transport: str = field(default_factory=lambda: os.getenv("FARMDASH_PUSH_TRANSPORT", "websockets"))
    push_ws_path: str = field(default_factory=lambda: os.getenv("FARMDASH_PUSH_WS_PATH", "/ws"))
    push_use_tls: bool = field(default_factory=lambda: _env_bool("FARMDASH_PUSH_TLS", False))
    push_keepalive_seconds: int = field(default_factory=lambda: _env_int("FARMDASH_PUSH_KEEPALIVE", 60))
    reconnect_delay_seconds: int = field(default_factory=lambda: _env_int("FARMDASH_RECONNECT_DELAY", 5))
    channel_degraded_after_failures: int = field(
        default_factory=lambda: _env_int("FARMDASH_CHANNEL_DEGRADED_AFTER", 6)
    )

    # Chart rendering
    chart_label_format: str = field(default_factory=lambda: os.getenv("FARMDASH_CHART_LABEL_FORMAT", "%H:%M"))

    # Presentation adapter
    socketio_cors_origins: str = field(default_factory=lambda: os.getenv("FARMDASH_SOCKETIO_CORS", "*"))

    eventbus_queue_size: int = field(default_factory=lambda: _env_int("FARMDASH_EVENTBUS_QUEUE_SIZE", 1024))
    eventbus_worker_count: int = field(default_factory=lambda: _env_int("FARMDASH_EVENTBUS_WORKER_COUNT", 2))

    DEBUG: bool = field(default_factory=lambda: _env_bool("FARMDASH_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("FARMDASH_LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: os.getenv("FARMDASH_LOG_DIR", "logs"))

    def as_flask_config(self) -> dict[str, Any]:
        """Return the subset of settings Flask cares about."""
        return {
            "SECRET_KEY": self.secret_key,
            "DEBUG": self.DEBUG,
            "ENV": self.environment,
        }


def validate_config(config: AppConfig) -> list[str]:
    """
    Validate configuration and return list of warnings.

    Args:
        config: AppConfig instance

    Returns:
        List of warning messages (empty if all valid)
    """
    warnings = []

    if config.push_transport not in PUSH_TRANSPORTS:
        warnings.append(f"Unknown push transport '{config.push_transport}'. Expected 'websockets' or 'tcp'")

    if config.reconnect_delay_seconds < 1:
        warnings.append(
            f"Reconnect delay ({config.reconnect_delay_seconds}s) is very short. Recommended: 5s"
        )

    if config.fetch_worker_count < 2:
        warnings.append(
            f"Fetch worker count ({config.fetch_worker_count}) cannot run the overview and chart loads side by side"
        )

    if not config.api_base_url.startswith(("http://", "https://")):
        warnings.append(f"API base URL does not look like an HTTP URL: {config.api_base_url}")

    return warnings


def setup_logging(debug: bool = False, log_dir: str = "logs") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.INFO

    # Root logger
    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "farmdash_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "farmdash_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "farmdash_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "farmdash.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "farmdash_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    # Push channel traffic is also written to its own file
    channel_logger = logging.getLogger("farmdash.channel")
    if not any(getattr(h, "name", "") == "farmdash_channel_file" for h in channel_logger.handlers):
        os.makedirs(log_dir, exist_ok=True)
        channel_handler = RotatingFileHandler(
            os.path.join(log_dir, "channel.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        channel_handler.name = "farmdash_channel_file"
        channel_handler.setFormatter(formatter)
        channel_logger.addHandler(channel_handler)

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"farmdash_console", "farmdash_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("FARMDASH_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    # Engine.IO polling logs every few seconds
    if _env_bool("FARMDASH_SILENCE_SOCKETIO", True):
        logging.getLogger("socketio").setLevel(logging.WARNING)
        logging.getLogger("engineio").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    import logging

    config = AppConfig()
    logger = logging.getLogger("config_loader")
    for warning in validate_config(config):
        logger.warning(warning)
    return config
