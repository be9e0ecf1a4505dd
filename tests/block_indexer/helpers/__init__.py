"""Test helpers for block indexer unit tests."""

from __future__ import annotations

from .builders import (
    EASY_BITS,
    HARD_BITS,
    make_block,
    make_chain,
    make_genesis_block,
    make_hash,
    make_transaction,
    make_txid,
)
from .mocks import MockBlockService, MockEventSource, MockNetworkMonitor, StalledEventSource

__all__ = [
    # Builders
    "EASY_BITS",
    "HARD_BITS",
    "make_block",
    "make_chain",
    "make_genesis_block",
    "make_hash",
    "make_transaction",
    "make_txid",
    # Mocks
    "MockBlockService",
    "MockEventSource",
    "MockNetworkMonitor",
    "StalledEventSource",
]
