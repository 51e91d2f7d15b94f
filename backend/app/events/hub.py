"""Event hub — fire-and-forget notifications from the orchestrator and workflows.

Two kinds of observer:
- callbacks registered with subscribe(handler, event_types)
- asyncio queues from subscribe_queue(), for async consumers such as a
  dashboard stream

Delivery is at most once. A failing handler is logged and never interrupts
the publisher; a full queue is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Iterable

from app.config import settings
from app.models.events import EventType, OrchestratorEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[OrchestratorEvent], None]


class EventHub:
    """Central hub for broadcasting orchestrator events.

    Usage:
        hub = EventHub()
        hub.subscribe(lambda e: print(e.event_type), event_types=["task.failed"])

        hub.publish("task.failed", task_id="task-1", role="cfo", error="timeout")
    """

    MAX_SUBSCRIBERS = 50  # Safety cap on queue subscribers

    def __init__(self, history_size: int | None = None) -> None:
        self._handlers: list[tuple[EventHandler, frozenset[str] | None]] = []
        self._queues: list[asyncio.Queue[OrchestratorEvent | None]] = []
        self._history: deque[OrchestratorEvent] = deque(
            maxlen=history_size if history_size is not None else settings.event_history_size,
        )

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers) + len(self._queues)

    def subscribe(self, handler: EventHandler, event_types: Iterable[EventType] | None = None) -> None:
        """Register a callback, optionally filtered to `event_types`."""
        types = frozenset(event_types) if event_types is not None else None
        self._handlers.append((handler, types))

    def unsubscribe(self, handler: EventHandler) -> None:
        self._handlers = [(h, t) for h, t in self._handlers if h is not handler]

    def subscribe_queue(self, maxsize: int = 100) -> asyncio.Queue[OrchestratorEvent | None]:
        """Create a subscriber queue. None signals disconnect."""
        if len(self._queues) >= self.MAX_SUBSCRIBERS:
            logger.warning(
                "Event hub at capacity (%d/%d), evicting oldest subscriber",
                len(self._queues), self.MAX_SUBSCRIBERS,
            )
            oldest = self._queues.pop(0)
            try:
                oldest.put_nowait(None)
            except asyncio.QueueFull:
                pass

        queue: asyncio.Queue[OrchestratorEvent | None] = asyncio.Queue(maxsize=maxsize)
        self._queues.append(queue)
        return queue

    def unsubscribe_queue(self, queue: asyncio.Queue[OrchestratorEvent | None]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def publish(
        self,
        event_type: EventType,
        *,
        task_id: str | None = None,
        role: str | None = None,
        workflow_id: str | None = None,
        **payload,
    ) -> OrchestratorEvent:
        """Build an event and deliver it to every matching observer.

        Returns:
            The published event.
        """
        event = OrchestratorEvent(
            event_type=event_type,
            task_id=task_id,
            role=role,
            workflow_id=workflow_id,
            payload=payload,
        )
        self._history.append(event)

        for handler, types in list(self._handlers):
            if types is not None and event_type not in types:
                continue
            try:
                handler(event)
            except Exception as e:
                logger.warning("Event handler failed for %s: %s", event_type, e)

        dead_queues = []
        for queue in self._queues:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                dead_queues.append(queue)
        for q in dead_queues:
            self._queues.remove(q)

        return event

    def history(
        self,
        limit: int = 50,
        event_type: EventType | None = None,
    ) -> list[OrchestratorEvent]:
        """Most recent events, oldest first."""
        events = [e for e in self._history if event_type is None or e.event_type == event_type]
        return events[-limit:] if limit else events
