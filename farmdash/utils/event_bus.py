"""
Process-wide EventBus.

Channels and the orchestrator publish connectivity changes and notifications
here; the EventLogger and the Socket.IO emitter listen. Delivery is
asynchronous: ``publish`` only enqueues, and a small pool of daemon threads
calls the subscribers, so a slow listener never stalls a paho callback or a
request thread.

Topics are the values of the enums in ``farmdash.enums.events``. Pydantic
models and dataclasses are flattened to dicts before they are queued.
"""

import logging
import threading
import time
from collections import defaultdict
from dataclasses import asdict, is_dataclass
from enum import Enum
from queue import Full, Queue
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from farmdash.config import load_config

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]


def _topic(event_name: Enum | str) -> str:
    return event_name.value if isinstance(event_name, Enum) else event_name


def _as_payload(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump()
    if is_dataclass(data) and not isinstance(data, type):
        return asdict(data)
    return data


class EventBus:
    """Topic -> subscribers routing table shared by the whole process."""

    _instance: Optional["EventBus"] = None
    _instance_lock = threading.Lock()

    def __new__(cls) -> "EventBus":
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._setup()
                    cls._instance = instance
        return cls._instance

    def _setup(self) -> None:
        config = load_config()
        self._routes: Dict[str, List[Subscriber]] = defaultdict(list)
        self._routes_lock = threading.Lock()
        self._queue: Queue = Queue(maxsize=config.eventbus_queue_size)
        self.dropped_events = 0

        for index in range(config.eventbus_worker_count):
            threading.Thread(target=self._deliver_forever, name=f"farmdash-eventbus-{index}", daemon=True).start()
        logger.info(
            "EventBus ready with %d delivery threads, queue bound %d",
            config.eventbus_worker_count,
            config.eventbus_queue_size,
        )

    def subscribe(self, event_name: Enum | str, callback: Subscriber) -> Callable[[], None]:
        """Route ``event_name`` to ``callback``. Returns the matching unsubscribe function."""
        topic = _topic(event_name)
        with self._routes_lock:
            self._routes[topic].append(callback)

        def unsubscribe() -> None:
            with self._routes_lock:
                if callback in self._routes.get(topic, ()):
                    self._routes[topic].remove(callback)

        return unsubscribe

    def publish(self, event_name: Enum | str, data: Any | None = None) -> None:
        """Queue ``data`` for every current subscriber of ``event_name``; never blocks."""
        topic = _topic(event_name)
        payload = _as_payload(data)
        with self._routes_lock:
            callbacks = list(self._routes.get(topic, ()))

        for callback in callbacks:
            try:
                self._queue.put_nowait((topic, callback, payload))
            except Full:
                self.dropped_events += 1
                logger.warning(
                    "EventBus queue full, dropped %s (%d dropped so far); raise FARMDASH_EVENTBUS_QUEUE_SIZE",
                    topic,
                    self.dropped_events,
                )
                return

    def join(self, timeout: float = 1.0) -> bool:
        """Wait until queued events are delivered. Returns False on timeout."""
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.005)
        return True

    def _deliver_forever(self) -> None:
        while True:
            topic, callback, payload = self._queue.get()
            try:
                callback(payload)
            except Exception as exc:
                logger.error("Subscriber of %s raised: %s", topic, exc, exc_info=True)
            finally:
                self._queue.task_done()
