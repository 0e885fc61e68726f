"""
Event Channel - Clinical Scoring Core
clinical_scoring/services/events.py

Outbound events for collaborators (completion notices, breaker changes).

Publishing never blocks the evaluation path: each subscriber owns a bounded
queue, and an event that does not fit is dropped and logged. An optional
external sink receives every event from its own bounded queue on a worker
thread; overflow is dropped and logged the same way and sink failures are
logged only.
"""
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

EVALUATION_COMPLETED = "scoring.evaluation.completed"


@dataclass(frozen=True)
class Event:
    type: str
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "payload": dict(self.payload),
            "timestamp": self.timestamp.isoformat(),
        }


EventSink = Callable[[Event], None]


class Subscription:
    """Bounded queue of events delivered to one subscriber."""

    def __init__(self, channel: "EventChannel", maxsize: int):
        self._channel = channel
        self._queue: "queue.Queue[Event]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def _offer(self, event: Event) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            self.dropped += 1
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Next event, or None if none arrives within ``timeout``."""
        try:
            return self._queue.get(timeout=timeout) if timeout else self._queue.get_nowait()
        except queue.Empty:
            return None

    def drain(self) -> List[Event]:
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        self.closed = True
        self._channel._unsubscribe(self)


class EventChannel:
    def __init__(self, queue_size: int = 1000, sink: Optional[EventSink] = None):
        self.queue_size = queue_size
        self.sink = sink
        self.sink_dropped = 0
        self._subscribers: List[Subscription] = []
        self._lock = threading.Lock()
        self._closed = False

        self._sink_queue: Optional["queue.Queue[Optional[Event]]"] = None
        self._sink_worker: Optional[threading.Thread] = None
        if sink is not None:
            self._sink_queue = queue.Queue(maxsize=queue_size)
            self._sink_worker = threading.Thread(
                target=self._deliver_to_sink,
                name="event-sink",
                daemon=True,
            )
            self._sink_worker.start()

    def subscribe(self, maxsize: Optional[int] = None) -> Subscription:
        subscription = Subscription(self, maxsize or self.queue_size)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def publish(self, event_type: str, payload: Dict[str, Any]) -> Event:
        event = Event(type=event_type, payload=payload)

        with self._lock:
            subscribers = list(self._subscribers)
            closed = self._closed
        for subscription in subscribers:
            if not subscription._offer(event):
                logger.warning(
                    "event_dropped",
                    event_type=event_type,
                    reason="subscriber_queue_full",
                    dropped=subscription.dropped,
                )

        if self._sink_queue is not None and not closed:
            try:
                self._sink_queue.put_nowait(event)
            except queue.Full:
                self.sink_dropped += 1
                logger.warning(
                    "event_dropped",
                    event_type=event_type,
                    reason="sink_queue_full",
                    dropped=self.sink_dropped,
                )

        return event

    def _deliver_to_sink(self) -> None:
        while True:
            event = self._sink_queue.get()
            if event is None:
                return
            try:
                self.sink(event)
            except Exception as e:
                logger.error(
                    "event_sink_failed",
                    event_type=event.type,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def close(self, timeout: float = 5.0) -> None:
        """Stop the sink worker after it delivers the events already queued."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._sink_worker is None:
            return
        try:
            self._sink_queue.put(None, timeout=timeout)
        except queue.Full:
            logger.warning("event_sink_stop_timeout", pending=self._sink_queue.qsize())
            return
        self._sink_worker.join(timeout)
        if self._sink_worker.is_alive():
            logger.warning("event_sink_stop_timeout", pending=self._sink_queue.qsize())
