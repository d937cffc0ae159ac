"""
Event Bus Unit Tests
====================
"""

import threading

import pytest

from wifisignal.core.events import Event, EventBus, EventType


def _recorder():
    received: list[Event] = []

    async def handler(event: Event):
        received.append(event)

    return handler, received


@pytest.mark.asyncio
async def test_typed_subscription_filters():
    bus = EventBus()
    handler, received = _recorder()
    bus.subscribe(handler, EventType.SCAN_NOTICE)
    await bus.start()

    bus.emit(EventType.SCAN_STATE_CHANGED, "state")
    bus.emit(EventType.SCAN_NOTICE, "notice")
    await bus.stop()

    assert [e.data for e in received] == ["notice"]


@pytest.mark.asyncio
async def test_subscribe_without_types_receives_everything():
    bus = EventBus()
    handler, received = _recorder()
    bus.subscribe(handler)
    await bus.start()

    for event_type in EventType:
        bus.emit(event_type)
    await bus.stop()

    assert [e.type for e in received] == list(EventType)


@pytest.mark.asyncio
async def test_handlers_run_in_subscription_order():
    bus = EventBus()
    order: list[str] = []

    async def first(event):
        order.append("first")

    async def second(event):
        order.append("second")

    bus.subscribe(first, EventType.RESULTS_UPDATED)
    bus.subscribe(second, EventType.RESULTS_UPDATED)
    await bus.start()
    bus.emit(EventType.RESULTS_UPDATED)
    await bus.stop()

    assert order == ["first", "second"]


@pytest.mark.asyncio
async def test_handler_error_does_not_stop_delivery():
    bus = EventBus()
    handler, received = _recorder()

    async def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken, EventType.SCAN_NOTICE)
    bus.subscribe(handler, EventType.SCAN_NOTICE)
    await bus.start()
    bus.emit(EventType.SCAN_NOTICE, 1)
    bus.emit(EventType.SCAN_NOTICE, 2)
    await bus.stop()

    assert [e.data for e in received] == [1, 2]


@pytest.mark.asyncio
async def test_events_emitted_before_start_are_delivered():
    bus = EventBus()
    handler, received = _recorder()
    bus.subscribe(handler)

    bus.emit(EventType.SESSION_CLOSED, "early")
    await bus.start()
    await bus.stop()

    assert [e.data for e in received] == ["early"]


@pytest.mark.asyncio
async def test_emit_from_foreign_thread():
    bus = EventBus()
    handler, received = _recorder()
    bus.subscribe(handler)
    await bus.start()

    worker = threading.Thread(target=bus.emit, args=(EventType.SCAN_NOTICE, "threaded"))
    worker.start()
    worker.join()
    await bus.stop()

    assert [e.data for e in received] == ["threaded"]


@pytest.mark.asyncio
async def test_stop_without_start_is_noop():
    await EventBus().stop()
