"""Sync progress snapshot for monitoring and logging."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from block_indexer.types import BlockHash


@dataclass(frozen=True, slots=True)
class SyncProgress:
    """
    Current synchronization progress.

    Provides a snapshot of node state for monitoring and logging.
    """

    tip: BlockHash
    """Hash of the canonical tip. The zero hash before genesis."""

    tip_height: int
    """Height of the canonical tip. -1 before genesis."""

    blocks_processed: int = 0
    """Blocks connected to the chain state this session."""

    reorgs: int = 0
    """Reorganizations applied this session."""

    cache_size: int = 0
    """Number of blocks in the block cache."""

    orphan_count: int = 0
    """Number of cached blocks whose parent is unknown."""

    inventory_size: int = 0
    """Number of block hashes seen."""

    velocity: float = 0.0
    """Blocks per second over the last reporting interval."""

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form."""
        return {
            "tip": self.tip.hex(),
            "tip_height": self.tip_height,
            "blocks_processed": self.blocks_processed,
            "reorgs": self.reorgs,
            "cache_size": self.cache_size,
            "orphan_count": self.orphan_count,
            "inventory_size": self.inventory_size,
            "velocity": self.velocity,
        }
