"""Flag change notification.

Mutations publish onto a queue and return immediately; a daemon worker
thread drains the queue and calls subscribers.
"""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from flag_engine.utils.metrics import feature_flag_events_dropped_total

logger = logging.getLogger(__name__)


class FlagEventType(str, Enum):
    FLAG_REGISTERED = "flag.registered"
    FLAG_UNREGISTERED = "flag.unregistered"
    FLAG_UPDATED = "flag.updated"
    FLAG_EVALUATED = "flag.evaluated"
    USER_OVERRIDE_SET = "user_override.set"
    USER_OVERRIDE_REMOVED = "user_override.removed"
    PLUGIN_OVERRIDE_SET = "plugin_override.set"
    PLUGIN_OVERRIDE_REMOVED = "plugin_override.removed"
    CONFIGURATION_IMPORTED = "configuration.imported"


@dataclass
class FlagChangeEvent:
    """Event published after a committed mutation."""

    event_type: FlagEventType
    flag_key: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class FlagListener(ABC):
    """Subscriber for flag change events."""

    @abstractmethod
    def on_flag_event(self, event: FlagChangeEvent) -> None:
        """Called from the bus worker thread for every event."""
        pass


class LoggingFlagListener(FlagListener):
    """Listener that logs flag changes."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def on_flag_event(self, event: FlagChangeEvent) -> None:
        logger.log(
            self.level,
            f"Flag event {event.event_type.value}: {event.flag_key or '*'}",
            extra={"event_type": event.event_type.value, "flag_key": event.flag_key},
        )


Subscriber = Union[FlagListener, Callable[[FlagChangeEvent], None]]

_STOP = object()


class FlagEventBus:
    """Non-blocking publish/subscribe channel for flag changes."""

    def __init__(self, max_queue_size: int = 0, name: str = "flag-event-bus"):
        self.name = name
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=max_queue_size)
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._closed = False
        self.dropped = 0

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers = [*self._subscribers, subscriber]

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers = [s for s in self._subscribers if s != subscriber]

    def publish(self, event: FlagChangeEvent) -> bool:
        """Queue an event without blocking; returns False if it was dropped."""
        if self._closed:
            return False
        self._ensure_worker()
        try:
            # Delivered to the subscribers present at publish time
            self._queue.put_nowait((event, self._subscribers))
        except queue.Full:
            self.dropped += 1
            feature_flag_events_dropped_total.inc()
            logger.warning(
                f"Flag event queue full, dropped {event.event_type.value}",
                extra={"event_type": event.event_type.value, "flag_key": event.flag_key},
            )
            return False
        return True

    def flush(self) -> None:
        """Block until every queued event has been delivered."""
        self._queue.join()

    def close(self, timeout: float = 5.0) -> None:
        if self._closed:
            return
        self._closed = True
        thread = self._thread
        if thread is not None:
            self._queue.put(_STOP)
            thread.join(timeout=timeout)

    def _ensure_worker(self) -> None:
        if self._thread is not None:
            return
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
                self._thread.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                event, subscribers = item
                self._dispatch(event, subscribers)
            finally:
                self._queue.task_done()

    def _dispatch(self, event: FlagChangeEvent, subscribers: List[Subscriber]) -> None:
        for subscriber in subscribers:
            try:
                if isinstance(subscriber, FlagListener):
                    subscriber.on_flag_event(event)
                else:
                    subscriber(event)
            except Exception as e:
                logger.error(f"Flag event subscriber error: {e}", exc_info=True)
