"""Tests for the event-source network monitor."""

from __future__ import annotations

import asyncio

import pytest

from block_indexer.containers import Block
from block_indexer.events import EventBus
from block_indexer.networking import (
    EventSourceMonitor,
    NetworkDisconnectedEvent,
    NetworkErrorEvent,
    NetworkReadyEvent,
    NetworkStopEvent,
)
from tests.block_indexer.helpers import (
    MockEventSource,
    StalledEventSource,
    make_block,
    make_chain,
    make_hash,
)


def recording_bus() -> tuple[EventBus, list[object]]:
    """A bus whose only subscriber records every item."""
    bus = EventBus()
    seen: list[object] = []
    bus.on_any(seen.append)
    return bus, seen


class TestDelivery:
    """Tests for forwarding items to the bus."""

    async def test_forwards_items_then_stop(self) -> None:
        """Every item reaches the bus in order, followed by one stop event."""
        genesis = make_block("g")
        blocks = make_chain(genesis, 2)
        source = MockEventSource([NetworkReadyEvent(), *blocks])
        bus, seen = recording_bus()
        monitor = EventSourceMonitor(bus=bus, event_source=source, requester=source)

        await monitor.start()
        await monitor.wait_stopped()

        assert seen == [NetworkReadyEvent(), *blocks, NetworkStopEvent(reason=None)]
        assert monitor.items_forwarded == 3
        assert not monitor.is_running

    async def test_start_twice_raises(self) -> None:
        source = MockEventSource()
        bus, _ = recording_bus()
        monitor = EventSourceMonitor(bus=bus, event_source=source, requester=source)

        await monitor.start()
        with pytest.raises(RuntimeError, match="already started"):
            await monitor.start()
        await monitor.wait_stopped()

    async def test_source_error_becomes_events(self) -> None:
        """A failing source is reported as error, disconnect, then stop."""
        error = ConnectionResetError("peer went away")
        source = MockEventSource([NetworkReadyEvent()], error=error)
        bus, seen = recording_bus()
        monitor = EventSourceMonitor(bus=bus, event_source=source, requester=source)

        await monitor.start()
        await monitor.wait_stopped()

        assert seen == [
            NetworkReadyEvent(),
            NetworkErrorEvent(error=error),
            NetworkDisconnectedEvent(),
            NetworkStopEvent(reason=error),
        ]

    async def test_handler_error_propagates_from_wait_stopped(self) -> None:
        """Errors raised by bus handlers are not swallowed."""
        source = MockEventSource([make_block("g")])
        bus = EventBus()

        async def failing(_block: Block) -> None:
            raise RuntimeError("handler failed")

        bus.register(Block, failing)
        monitor = EventSourceMonitor(bus=bus, event_source=source, requester=source)

        await monitor.start()
        with pytest.raises(RuntimeError, match="handler failed"):
            await monitor.wait_stopped()


class TestAbort:
    """Tests for aborting delivery."""

    async def test_abort_from_handler_stops_after_current_item(self) -> None:
        """Items after the one being handled are not delivered."""
        genesis = make_block("g")
        blocks = make_chain(genesis, 3)
        source = MockEventSource(blocks)
        bus, seen = recording_bus()
        reason = RuntimeError("fatal")
        monitor = EventSourceMonitor(bus=bus, event_source=source, requester=source)

        async def abort_on_first(_block: Block) -> None:
            monitor.abort(reason)

        bus.register(Block, abort_on_first)

        await monitor.start()
        await monitor.wait_stopped()

        assert seen == [blocks[0], NetworkStopEvent(reason=reason)]

    async def test_requests_ignored_after_abort(self) -> None:
        source = MockEventSource()
        bus, _ = recording_bus()
        monitor = EventSourceMonitor(bus=bus, event_source=source, requester=source)

        await monitor.request_blocks([make_hash("a")])
        monitor.abort()
        monitor.abort()
        await monitor.request_blocks([make_hash("b")])

        assert source.requests == [[make_hash("a")]]

    async def test_wait_stopped_before_start_returns(self) -> None:
        source = MockEventSource()
        bus, _ = recording_bus()
        monitor = EventSourceMonitor(bus=bus, event_source=source, requester=source)

        await monitor.wait_stopped()

        assert not monitor.is_running

    async def test_abort_interrupts_source_wait(self) -> None:
        """A source with nothing to deliver does not hold up shutdown."""
        source = StalledEventSource([NetworkReadyEvent()])
        bus, seen = recording_bus()
        monitor = EventSourceMonitor(bus=bus, event_source=source, requester=source)
        reason = RuntimeError("shutting down")

        await monitor.start()
        await asyncio.sleep(0.05)
        monitor.abort(reason)
        await asyncio.wait_for(monitor.wait_stopped(), timeout=2)

        assert source.cancelled
        assert seen == [NetworkReadyEvent(), NetworkStopEvent(reason=reason)]
        assert not monitor.is_running

    async def test_external_cancel_still_propagates(self) -> None:
        """Cancelling the monitor task without abort() is not swallowed."""
        source = StalledEventSource()
        bus, seen = recording_bus()
        monitor = EventSourceMonitor(bus=bus, event_source=source, requester=source)

        await monitor.start()
        await asyncio.sleep(0.05)
        assert monitor._task is not None
        monitor._task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await monitor.wait_stopped()
        assert seen == []
