"""
Network monitor: the bridge between a block source and the event bus.

The Problem
-----------
The peer-to-peer layer produces blocks and connection lifecycle changes.
The node must see all of them through one ordered channel, and must be able
to ask the network for more blocks when it finds a gap.

The monitor is that channel. It:

1. Consumes items from an abstract source (async iterator)
2. Publishes each item on the event bus
3. Forwards locator-based block requests to a requester
4. Publishes a single stop event when the source ends or is aborted
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol

from block_indexer.events import EventBus
from block_indexer.types import BlockHash

from .events import (
    NetworkDisconnectedEvent,
    NetworkErrorEvent,
    NetworkEventSource,
    NetworkItem,
    NetworkStopEvent,
)

logger = logging.getLogger(__name__)


class BlockRequester(Protocol):
    """
    Protocol for locator-based block requests.

    The peer answering the request sends the blocks that follow the first
    locator hash it recognizes. Those blocks arrive later through the event
    source, not as a return value.
    """

    async def request_blocks(self, locator: list[BlockHash]) -> None:
        """
        Ask the network for blocks after the locator.

        Args:
            locator: Canonical hashes, tip first, genesis last.
        """
        ...


class NetworkMonitor(Protocol):
    """
    What the node needs from the network layer.

    Implementations publish blocks and lifecycle events on the event bus
    they were built with.
    """

    async def start(self) -> None:
        """Begin delivering items. Returns once delivery is under way."""
        ...

    async def request_blocks(self, locator: list[BlockHash]) -> None:
        """Ask the network for blocks following the locator."""
        ...

    def abort(self, reason: BaseException | None = None) -> None:
        """Terminate in-flight network activity."""
        ...

    async def wait_stopped(self) -> None:
        """Block until the monitor has stopped delivering items."""
        ...


@dataclass(slots=True)
class EventSourceMonitor:
    """
    Network monitor driven by an async event source.

    Items are forwarded one at a time: the next item is not read until the
    bus finished handling the previous one. This serializes block handling
    and gives the source natural backpressure.
    """

    bus: EventBus
    """Bus that receives every item."""

    event_source: NetworkEventSource
    """Source of blocks and lifecycle events (peer layer wrapper, replay file or test mock)."""

    requester: BlockRequester
    """Where locator requests go."""

    _task: asyncio.Task[None] | None = field(default=None, repr=False)
    """The delivery loop, once started."""

    _abort_reason: BaseException | None = field(default=None, repr=False)
    """Reason passed to abort(), if any."""

    _aborted: bool = field(default=False, repr=False)
    """Whether abort() was called."""

    _items_forwarded: int = field(default=0, repr=False)
    """Counter of items published on the bus."""

    _awaiting_source: bool = field(default=False, repr=False)
    """Whether the loop is parked waiting for the source's next item."""

    async def start(self) -> None:
        """Start the delivery loop as a background task."""
        if self._task is not None:
            raise RuntimeError("Network monitor already started")
        self._task = asyncio.create_task(self._run(), name="network-monitor")

    async def wait_stopped(self) -> None:
        """
        Wait for the delivery loop to finish.

        Re-raises any exception that escaped a bus handler.
        """
        if self._task is not None:
            await self._task

    async def request_blocks(self, locator: list[BlockHash]) -> None:
        """Forward a locator request unless the monitor was aborted."""
        if self._aborted:
            logger.debug("Ignoring block request after abort")
            return
        await self.requester.request_blocks(locator)

    def abort(self, reason: BaseException | None = None) -> None:
        """
        Stop delivering items.

        A loop parked on the source is cancelled at once. A loop inside a bus
        handler exits after that item. Either way the stop event is still
        published. Safe to call from inside a bus handler.
        """
        if self._aborted:
            return
        self._aborted = True
        self._abort_reason = reason
        if reason is not None:
            logger.warning("Network monitor aborted: %r", reason)
        else:
            logger.info("Network monitor aborted")

        if self._awaiting_source and self._task is not None:
            self._task.cancel()

    @property
    def is_running(self) -> bool:
        """Whether the delivery loop is active."""
        return self._task is not None and not self._task.done()

    @property
    def items_forwarded(self) -> int:
        """Total items published on the bus."""
        return self._items_forwarded

    async def _run(self) -> None:
        """
        Delivery loop.

        Ends when the source is exhausted, when abort() was called, or when
        the source raises. A source failure is published as an error and a
        disconnect. A stop event is always published last.
        """
        stop_reason: BaseException | None = None

        items = aiter(self.event_source)
        try:
            while not self._aborted:
                item = await self._next_item(items)
                if item is None:
                    break

                await self.bus.process(item)
                self._items_forwarded += 1

        except (OSError, ConnectionError, asyncio.TimeoutError) as exc:
            logger.error("Network source failed: %r", exc)
            stop_reason = exc
            await self.bus.process(NetworkErrorEvent(error=exc))
            await self.bus.process(NetworkDisconnectedEvent())

        if self._aborted:
            stop_reason = self._abort_reason

        await self.bus.process(NetworkStopEvent(reason=stop_reason))

    async def _next_item(self, items: AsyncIterator[NetworkItem]) -> NetworkItem | None:
        """
        Wait for the source's next item.

        Returns None when the source is exhausted, or when abort() cancelled
        the wait.
        """
        self._awaiting_source = True
        try:
            return await anext(items)
        except StopAsyncIteration:
            return None
        except asyncio.CancelledError:
            if not self._aborted:
                raise
            # The cancellation came from abort(), not from outside.
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            return None
        finally:
            self._awaiting_source = False
