"""
Network lifecycle events and the event source protocol.

The network monitor publishes two kinds of items on the event bus: parsed
blocks, and the lifecycle events below. The node reacts to each lifecycle
event with one action.

::

    NetworkReadyEvent         --> request blocks from the current tip
    NetworkErrorEvent         --> log and count; synchronization may stall
    NetworkDisconnectedEvent  --> log
    NetworkStopEvent          --> persist the chain state
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from block_indexer.containers import Block


@dataclass(frozen=True, slots=True)
class NetworkReadyEvent:
    """
    Initial connection established.

    The monitor can now serve block requests.
    """


@dataclass(frozen=True, slots=True)
class NetworkErrorEvent:
    """
    The network layer hit an error.

    Not fatal on its own. The host process decides whether to reconnect,
    alert or exit.
    """

    error: BaseException
    """The underlying error."""


@dataclass(frozen=True, slots=True)
class NetworkDisconnectedEvent:
    """Connection to the network was lost."""


@dataclass(frozen=True, slots=True)
class NetworkStopEvent:
    """
    The monitor is shutting down.

    Fired exactly once, after the last block was delivered.
    """

    reason: BaseException | None = field(default=None)
    """Why the monitor stopped. None for a clean end of stream."""


LifecycleEvent = (
    NetworkReadyEvent | NetworkErrorEvent | NetworkDisconnectedEvent | NetworkStopEvent
)
"""Union of the lifecycle event types."""

NetworkItem = Block | LifecycleEvent
"""Anything an event source may yield."""


@runtime_checkable
class NetworkEventSource(Protocol):
    """
    Abstract source of network items.

    An async iterator yielding blocks and lifecycle events. Any class that
    implements async iteration over NetworkItem can serve as a source.

    Usage
    -----
    ::

        async for item in event_source:
            await bus.process(item)
    """

    def __aiter__(self) -> NetworkEventSource:
        """Return self as async iterator."""
        ...

    async def __anext__(self) -> NetworkItem:
        """
        Yield the next item.

        Raises:
            StopAsyncIteration: When no more items will arrive.
        """
        ...
