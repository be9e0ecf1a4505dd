"""
Chain-state constants.

Parameters that shape block locators and snapshot handling.
"""

from __future__ import annotations

from typing import Final

from block_indexer.types import BlockHash

NULL_HASH: Final[BlockHash] = BlockHash.zero()
"""Virtual root every genesis block points to. Sits at height -1 with zero work."""

NULL_HEIGHT: Final[int] = -1
"""Height of the virtual root."""

LOCATOR_DENSE_COUNT: Final[int] = 10
"""Number of consecutive most-recent hashes in a locator before steps start doubling."""
