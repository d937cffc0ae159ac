"""
wifisignal Event Bus - Coordinator output for the presentation layer
=====================================================================

The coordinator publishes from its synchronous transition functions; the
session (or any other presenter) consumes with async handlers. Events are
queued and handed out by one task on the loop that started the bus.

Usage:
    bus = EventBus()
    bus.subscribe(render_list, EventType.RESULTS_UPDATED)
    bus.subscribe(log_everything)            # every event type
    await bus.start()

    coordinator = ScanCoordinator(host, bus=bus)
    ...
    await bus.stop()                         # delivers what is still queued
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, TypeAlias

logger = logging.getLogger(__name__)

AsyncHandler: TypeAlias = Callable[["Event"], Coroutine[Any, Any, None]]


class EventType(Enum):
    """Scan session events."""

    SCAN_STATE_CHANGED = auto()     # data: ScanState
    RESULTS_UPDATED = auto()        # data: list[ClassifiedNetwork]
    SCAN_NOTICE = auto()            # data: Notice
    PERMISSION_REQUESTED = auto()   # data: sorted capability names
    SESSION_CLOSED = auto()         # data: coordinator status dict


@dataclass
class Event:
    type: EventType
    data: Any = None
    timestamp: float = field(default_factory=time.time)


class EventBus:
    """
    Single-consumer queue between a coordinator and its observers.

    Handlers for one event run in subscription order and never concurrently
    with each other. A failing handler is logged and skipped.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[AsyncHandler]] = {t: [] for t in EventType}
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task | None = None

    def subscribe(self, handler: AsyncHandler, *event_types: EventType) -> None:
        """Register ``handler`` for ``event_types``, or for all types if none given."""
        for event_type in event_types or tuple(EventType):
            self._handlers[event_type].append(handler)
        logger.debug(
            "Subscribed %s to %s",
            getattr(handler, "__name__", repr(handler)),
            [t.name for t in event_types] or "all events",
        )

    def emit(self, event_type: EventType, data: Any = None) -> Event:
        """Queue an event. Callable from synchronous code on any thread."""
        event = Event(type=event_type, data=data)
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        else:
            # Not started yet: delivered once start() runs
            self._queue.put_nowait(event)
        return event

    async def start(self) -> None:
        if self._task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.create_task(self._process_loop())
        logger.debug("Event bus started")

    async def stop(self, timeout: float = 5.0) -> None:
        """Deliver queued events, then stop the dispatch task."""
        if self._task is None:
            return

        # Emits scheduled with call_soon_threadsafe land in the queue first
        await asyncio.sleep(0)
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except TimeoutError:
            logger.warning("Event queue drain timeout, forcing stop")

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._loop = None
        logger.debug("Event bus stopped")

    async def _process_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        for handler in list(self._handlers[event.type]):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for %s: %s - %s",
                    event.type.name,
                    getattr(handler, "__name__", repr(handler)),
                    e,
                )
