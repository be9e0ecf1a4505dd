"""Typed event routing between the network monitor and the node."""

from .bus import AnyHook, EventBus, Handler

__all__ = [
    "AnyHook",
    "EventBus",
    "Handler",
]
