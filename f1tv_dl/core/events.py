"""
Per-queue lifecycle event channel with ordered, synchronous delivery.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from f1tv_dl.models.job import Job

log = logging.getLogger(__name__)


class EventType(str, Enum):
    JOB_ADDED = "job_added"
    JOB_STARTED = "job_started"
    JOB_PROGRESS = "job_progress"
    JOB_RETRYING = "job_retrying"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    QUEUE_STARTED = "queue_started"
    QUEUE_STOPPED = "queue_stopped"
    QUEUE_PAUSED = "queue_paused"
    QUEUE_RESUMED = "queue_resumed"
    QUEUE_COMPLETED = "queue_completed"


@dataclass
class QueueEvent:
    type: EventType
    job: Optional[Job] = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


Subscriber = Callable[[QueueEvent], None]


class EventBus:
    """
    Delivers events to subscribers in subscription order, in the order they
    were emitted. A subscriber that raises is logged and skipped; it never
    interrupts the queue.
    """

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Registers a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def channel(self) -> "asyncio.Queue[QueueEvent]":
        """Returns an asyncio.Queue that receives every subsequent event."""
        queue: asyncio.Queue[QueueEvent] = asyncio.Queue()
        self.subscribe(queue.put_nowait)
        return queue

    def emit(self, event_type: EventType, job: Optional[Job] = None, **data: Any) -> QueueEvent:
        event = QueueEvent(event_type, job, data)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                log.warning(f"Event subscriber failed on {event_type.value}: {e}")
        return event
