"""
Block handling support for the node.

- Blocks arrive from the network monitor, possibly out of order
- Bodies wait in the block cache until their parent connects
- Once connected they stay cached until deep enough below the tip
- The inventory records every hash seen
"""

from __future__ import annotations

__all__ = [
    "BlockCache",
    "CachedBlock",
    "Inventory",
    "MAX_ORPHAN_BLOCKS",
    "PRUNE_DEPTH",
    "STATS_INTERVAL_SECONDS",
    "SyncProgress",
]

from .block_cache import BlockCache, CachedBlock
from .config import MAX_ORPHAN_BLOCKS, PRUNE_DEPTH, STATS_INTERVAL_SECONDS
from .inventory import Inventory
from .progress import SyncProgress
