"""
Typed publish/subscribe router.

Event Flow
----------
Producers (the network monitor, or the node seeding genesis) hand items to
`process`. The bus looks up handlers by the item's type and awaits them in
registration order.

::

    Network monitor --process(item)--> EventBus
                                          |
                                          +-- Block handlers       --> Node.on_block
                                          +-- Lifecycle handlers   --> Node (ready/stop/...)
                                          +-- on_any hooks         --> logging, metrics

Dispatch follows the item's MRO, so a handler registered for a base class
also receives subclasses. Handlers run one after another: the bus never
interleaves two handlers for the same item.

Observability hooks registered with `on_any` see every item after its typed
handlers ran. They replace implicit event forwarding: nothing is re-emitted.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Handler = Callable[[T], Awaitable[None]]
"""Async callback receiving one published item."""

AnyHook = Callable[[object], None]
"""Synchronous observability hook receiving every published item."""


@dataclass(slots=True)
class EventBus:
    """
    Routes published items to handlers registered for their type.

    The bus holds no state besides its subscriptions.
    """

    _handlers: defaultdict[type, list[Handler[Any]]] = field(
        default_factory=lambda: defaultdict(list)
    )
    """Handlers keyed by the exact type they registered for."""

    _any_hooks: list[AnyHook] = field(default_factory=list)
    """Hooks called for every item."""

    _processed: int = field(default=0)
    """Number of items processed since creation."""

    def register(self, event_type: type[T], handler: Handler[T]) -> None:
        """
        Subscribe a handler to an item type.

        Registering the same handler twice for one type delivers each item
        to it twice.

        Args:
            event_type: Class of items the handler accepts.
            handler: Async callback awaited for each matching item.
        """
        self._handlers[event_type].append(handler)

    def unregister(self, event_type: type[T], handler: Handler[T]) -> None:
        """
        Remove one registration of a handler.

        Raises:
            ValueError: If the handler is not registered for the type.
        """
        self._handlers[event_type].remove(handler)

    def on_any(self, hook: AnyHook) -> None:
        """Register an observability hook that sees every processed item."""
        self._any_hooks.append(hook)

    def handler_count(self, event_type: type) -> int:
        """Number of handlers registered for exactly this type."""
        return len(self._handlers.get(event_type, ()))

    @property
    def processed(self) -> int:
        """Total items processed since creation."""
        return self._processed

    async def process(self, item: object) -> None:
        """
        Deliver an item to its handlers, then to the observability hooks.

        Handlers for the most specific class run first, then handlers for
        its bases. Exceptions raised by a handler propagate to the caller
        and stop delivery of this item.

        Args:
            item: The published item.
        """
        delivered = False
        for cls in type(item).__mro__:
            for handler in list(self._handlers.get(cls, ())):
                delivered = True
                await handler(item)

        if not delivered:
            logger.debug("No handler registered for %s", type(item).__name__)

        self._processed += 1
        for hook in self._any_hooks:
            hook(item)
