from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from flask_socketio import SocketIO

from farmdash.config import AppConfig
from farmdash.domain.selection import SelectionContext
from farmdash.domain.series import label_formatter
from farmdash.infrastructure.logging import EventLogger
from farmdash.services.aggregation_fetcher import AggregationFetcher
from farmdash.services.api_client import FarmApiClient
from farmdash.services.dashboard_orchestrator import DashboardOrchestrator
from farmdash.services.notification_channel import NotificationChannel
from farmdash.transport.channel_client import TokenProvider
from farmdash.transport.client_factory import create_push_client
from farmdash.utils.emitters import EmitterService
from farmdash.utils.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage the dashboard services."""

    config: AppConfig
    event_bus: EventBus
    context: SelectionContext
    api_client: FarmApiClient
    query_executor: ThreadPoolExecutor
    fetcher: AggregationFetcher
    orchestrator: DashboardOrchestrator
    notification_channel: NotificationChannel
    event_logger: EventLogger
    emitter: Optional[EmitterService] = None
    _unfollow_user: Optional[Callable[[], None]] = field(default=None, repr=False)
    _shutdown_complete: bool = field(default=False, repr=False)

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        sio: SocketIO | None = None,
        token_provider: TokenProvider | None = None,
        client_factory: Callable = create_push_client,
        start: bool = True,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            sio: Socket.IO server that view and notification updates are pushed to
            token_provider: Bearer credential source, defaults to ``config.api_token``
            client_factory: Push client constructor (tests inject a fake)
            start: Whether to start following the selection context
        """
        logger.info("Building ServiceContainer...")
        token_provider = token_provider or (lambda: config.api_token or None)
        event_bus = EventBus()
        emitter = EmitterService(sio) if sio is not None else None

        api_client = FarmApiClient(config.api_base_url, token_provider, timeout=config.api_timeout_seconds)
        query_executor = ThreadPoolExecutor(
            max_workers=config.fetch_worker_count, thread_name_prefix="farmdash-query"
        )
        fetcher = AggregationFetcher(
            api_client,
            query_executor,
            window=config.aggregation_window,
            label=label_formatter(config.chart_label_format),
        )
        context = SelectionContext()
        orchestrator = DashboardOrchestrator(
            context,
            api_client,
            fetcher,
            config,
            token_provider,
            client_factory=client_factory,
            event_bus=event_bus,
            on_view_change=emitter.emit_dashboard_view if emitter else None,
        )
        notification_channel = NotificationChannel(
            config,
            token_provider,
            emitter.emit_notification if emitter else None,
            client_factory=client_factory,
            event_bus=event_bus,
        )

        container = cls(
            config=config,
            event_bus=event_bus,
            context=context,
            api_client=api_client,
            query_executor=query_executor,
            fetcher=fetcher,
            orchestrator=orchestrator,
            notification_channel=notification_channel,
            event_logger=EventLogger(event_bus),
            emitter=emitter,
        )
        if start:
            container.start()
        logger.info("ServiceContainer built successfully.")
        return container

    def start(self) -> None:
        self.orchestrator.start()
        if self._unfollow_user is None:
            self._unfollow_user = self.notification_channel.follow(self.context)

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        if self._shutdown_complete:
            return
        self._shutdown_complete = True

        self.orchestrator.stop()
        if self._unfollow_user is not None:
            self._unfollow_user()
            self._unfollow_user = None
        self.notification_channel.stop()
        logger.info("✓ Push channels closed")

        self.query_executor.shutdown(wait=False, cancel_futures=True)
        self.api_client.close()
        self.event_logger.close()
        logger.info("ServiceContainer shut down.")
