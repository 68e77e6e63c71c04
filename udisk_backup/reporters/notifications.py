"""Push channel for run status and live transfer output.

Events are :class:`~udisk_backup.core.models.StatusEvent` and
:class:`~udisk_backup.core.models.LogEvent` instances; each carries a
``topic`` and a ``to_dict()`` wire shape so a websocket or SSE layer can
forward them unchanged.
"""

import logging
import queue
import threading
from typing import Any, Iterator, List, Optional


class NotificationSink:
    """Destination for run events."""

    def publish(self, event: Any) -> None:
        raise NotImplementedError


class NullSink(NotificationSink):
    def publish(self, event: Any) -> None:
        pass


class LoggingSink(NotificationSink):
    """Writes events to the ``udisk_backup.events`` logger."""

    def __init__(self, logger_name: str = "udisk_backup.events"):
        self.logger = logging.getLogger(logger_name)

    def publish(self, event: Any) -> None:
        payload = event.to_dict()
        if event.topic == "backupLog":
            level = logging.WARNING if payload['level'] == 'error' else logging.DEBUG
            self.logger.log(level, f"[{payload['operation_id'][:8]}] {payload['line']}")
        else:
            self.logger.info(f"[{payload['operation_id'][:8]}] {payload['state']}: {payload['message']}")


class Subscription:
    """Queue of events delivered to one subscriber."""

    def __init__(self, broker: 'InMemoryBroker'):
        self._broker = broker
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self.closed = False

    def deliver(self, event: Any) -> None:
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> Optional[Any]:
        """Next event, or None if nothing arrived within ``timeout``."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[Any]:
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        self.closed = True
        self._broker.unsubscribe(self)

    def __iter__(self) -> Iterator[Any]:
        while not self.closed:
            event = self.get(timeout=0.5)
            if event is not None:
                yield event

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class InMemoryBroker(NotificationSink):
    """Fan-out publish/subscribe within one process."""

    def __init__(self, forward_to: Optional[NotificationSink] = None):
        self._lock = threading.Lock()
        self._subscribers: List[Subscription] = []
        self.forward_to = forward_to
        self.logger = logging.getLogger(__name__)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: Any) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.deliver(event)
        if self.forward_to is not None:
            self.forward_to.publish(event)
