"""
Network boundary of the indexer.

The peer-wire protocol lives outside this package. What lives here is the
contract the node relies on (a monitor that publishes blocks and lifecycle
events and accepts locator requests) plus two sources for running without a
peer layer: a generic async-iterator monitor and a JSON-lines replay.
"""

from .events import (
    LifecycleEvent,
    NetworkDisconnectedEvent,
    NetworkErrorEvent,
    NetworkEventSource,
    NetworkItem,
    NetworkReadyEvent,
    NetworkStopEvent,
)
from .monitor import BlockRequester, EventSourceMonitor, NetworkMonitor
from .replay import MAX_BLOCKS_PER_RESPONSE, ReplayEventSource, load_blocks

__all__ = [
    # Events
    "LifecycleEvent",
    "NetworkDisconnectedEvent",
    "NetworkErrorEvent",
    "NetworkEventSource",
    "NetworkItem",
    "NetworkReadyEvent",
    "NetworkStopEvent",
    # Monitor
    "BlockRequester",
    "EventSourceMonitor",
    "NetworkMonitor",
    # Replay
    "MAX_BLOCKS_PER_RESPONSE",
    "ReplayEventSource",
    "load_blocks",
]
