# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Queued in-memory event bus for GradeFlow.

Grade workflow events are published after a write has been committed and
dispatched to subscribers from a background task, so a slow or failing
subscriber never holds up the request that produced the event.

The bus is constructed explicitly and owned by the application lifespan:

    bus = EventBus(max_queue_size=1000)
    bus.subscribe("grades.*", on_any_grade_event)
    await bus.start()
    ...
    await bus.publish(EventTypes.Grades.APPROVED, {"grade_ids": [...]}, school_id="s-1")
    ...
    await bus.stop()  # delivers everything still queued

Subscriptions support exact event types ("grades.approved") and fnmatch
patterns ("grades.*").
"""

import asyncio
import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from gradeflow.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["EventData"], Awaitable[None]]


@dataclass
class EventData:
    """Container for event data with metadata.

    Attributes:
        event_type: The event type string.
        payload: The event payload data.
        event_id: Unique event identifier.
        timestamp: When the event was published.
        school_id: School the event belongs to.
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)
    school_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
            "school_id": self.school_id,
        }


class EventBus:
    """Async event bus dispatching from an internal queue.

    publish() only enqueues. A worker task started by start() takes events
    off the queue and calls every matching handler concurrently. Handler
    errors are logged and never reach the publisher. stop() waits until
    the queue is empty before cancelling the worker.

    Events published while the bus is not running are dropped with a
    warning, as are events that do not fit in a full queue.

    Attributes:
        max_queue_size: Maximum number of undelivered events.
    """

    def __init__(self, max_queue_size: int = 1000) -> None:
        """Initialize the event bus.

        Args:
            max_queue_size: Maximum number of undelivered events.
        """
        self.max_queue_size = max_queue_size
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pattern_handlers: dict[str, list[EventHandler]] = {}
        self._queue: asyncio.Queue[EventData] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._event_count = 0
        self._delivered_count = 0
        self._dropped_count = 0
        self._handler_errors = 0

    @property
    def is_running(self) -> bool:
        """Whether the dispatch worker is active."""
        return self._worker is not None and not self._worker.done()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type or pattern.

        Args:
            event_type: Event type string or pattern with wildcards.
            handler: Async function called with the EventData.
        """
        if "*" in event_type or "?" in event_type:
            self._pattern_handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed pattern handler to: %s", event_type)
        else:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """Unsubscribe a handler from an event type or pattern.

        Returns:
            True if handler was found and removed, False otherwise.
        """
        registry = (
            self._pattern_handlers
            if "*" in event_type or "?" in event_type
            else self._handlers
        )
        handlers = registry.get(event_type)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del registry[event_type]
        return True

    async def start(self) -> None:
        """Start the dispatch worker on the running event loop."""
        if self.is_running:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._worker = asyncio.create_task(self._run(), name="gradeflow-event-bus")
        logger.info("EventBus started (queue size %d)", self.max_queue_size)

    async def stop(self) -> None:
        """Deliver all queued events, then stop the dispatch worker."""
        if self._worker is None or self._queue is None:
            return

        await self._queue.join()

        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._queue = None
        logger.info(
            "EventBus stopped (%d delivered, %d dropped)",
            self._delivered_count,
            self._dropped_count,
        )

    async def drain(self) -> None:
        """Wait until every queued event has been dispatched."""
        if self._queue is not None:
            await self._queue.join()

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any],
        school_id: str | None = None,
    ) -> EventData:
        """Queue an event for delivery to matching subscribers.

        Args:
            event_type: The event type string.
            payload: Event data dictionary.
            school_id: School the event belongs to.

        Returns:
            EventData object with event metadata.
        """
        event = EventData(event_type=event_type, payload=payload, school_id=school_id)
        self._event_count += 1

        if not self.is_running or self._queue is None:
            self._dropped_count += 1
            logger.warning("EventBus not running, dropped event %s", event_type)
            return event

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._dropped_count += 1
            logger.warning("EventBus queue full, dropped event %s", event_type)

        return event

    def _matching_handlers(self, event_type: str) -> list[EventHandler]:
        handlers = list(self._handlers.get(event_type, []))
        for pattern, pattern_handlers in self._pattern_handlers.items():
            if fnmatch.fnmatch(event_type, pattern):
                handlers.extend(pattern_handlers)
        return handlers

    async def _run(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                await self._dispatch(event)
            finally:
                queue.task_done()

    async def _dispatch(self, event: EventData) -> None:
        handlers = self._matching_handlers(event.event_type)
        if not handlers:
            logger.debug(
                "No handlers for event: %s (school: %s)",
                event.event_type,
                event.school_id,
            )
            return

        async def safe_call(handler: EventHandler) -> None:
            try:
                await handler(event)
            except Exception as e:
                self._handler_errors += 1
                logger.error(
                    "Handler error for event %s: %s",
                    event.event_type,
                    str(e),
                    exc_info=True,
                )

        await asyncio.gather(*[safe_call(handler) for handler in handlers])
        self._delivered_count += 1

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
        self._pattern_handlers.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics.

        Returns:
            Dictionary with subscription and event counts.
        """
        exact_count = sum(len(h) for h in self._handlers.values())
        pattern_count = sum(len(h) for h in self._pattern_handlers.values())

        return {
            "running": self.is_running,
            "queued": self._queue.qsize() if self._queue is not None else 0,
            "total_handlers": exact_count + pattern_count,
            "events_published": self._event_count,
            "events_delivered": self._delivered_count,
            "events_dropped": self._dropped_count,
            "handler_errors": self._handler_errors,
        }
