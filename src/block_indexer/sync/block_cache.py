"""
Block cache for received block bodies.

Why Cache Blocks?
-----------------
The chain state only keeps identifiers, heights and work. The indexing
services need the full block when they confirm or unconfirm it, which can
happen long after the block arrived:

1. **Out of order arrival**: A child shows up before its parent. It must be
   held until the parent connects.
2. **Reorganizations**: Blocks on a side branch become canonical later. The
   services need their bodies at that moment.
3. **Rollbacks**: Abandoned blocks are unconfirmed by body, not by hash.

How It Works
------------
Every entry starts unannotated (an orphan). Once the chain state connects
the block, the node annotates it with height and cumulative work.

The cache maintains four structures:

1. **Block storage**: Maps hash to CachedBlock
2. **Orphan queue**: Unannotated hashes in arrival order
3. **Parent index**: Maps prev_hash to child hashes for descendant lookup
4. **Height index**: Maps height to annotated hashes for pruning

Memory Safety
-------------
Annotated entries are pruned once they sit more than PRUNE_DEPTH below the
tip; no reorganization that deep is expected. Orphans are bounded by
MAX_ORPHAN_BLOCKS with FIFO eviction, since a peer can send any number of
blocks that never connect.
"""

from __future__ import annotations

import logging
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from time import time

from block_indexer.containers import Block
from block_indexer.types import BlockHash

from .config import MAX_ORPHAN_BLOCKS, PRUNE_DEPTH

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CachedBlock:
    """
    A block body plus what the chain state learned about it.

    Height and work stay None until the block's parent is connected.
    """

    block: Block
    """The block as delivered by the network."""

    height: int | None = None
    """Height assigned by the chain state."""

    work: int | None = None
    """Cumulative work assigned by the chain state."""

    received_at: float = field(default_factory=time)
    """Unix timestamp when the block was received."""

    arrival: int = 0
    """Position in the cache's arrival order, strictly increasing across adds."""

    @property
    def hash(self) -> BlockHash:
        return self.block.hash

    @property
    def prev_hash(self) -> BlockHash:
        return self.block.prev_hash

    @property
    def is_annotated(self) -> bool:
        """Whether the chain state connected this block."""
        return self.height is not None


@dataclass(slots=True)
class BlockCache:
    """Holds block bodies until they are deep enough to never be needed again."""

    max_orphans: int = MAX_ORPHAN_BLOCKS
    """Maximum unannotated entries."""

    prune_depth: int = PRUNE_DEPTH
    """Annotated entries deeper than this below the tip are pruned."""

    _blocks: dict[BlockHash, CachedBlock] = field(default_factory=dict)
    """Block storage keyed by hash."""

    _orphans: OrderedDict[BlockHash, None] = field(default_factory=OrderedDict)
    """Unannotated hashes ordered by arrival for FIFO eviction."""

    _by_parent: defaultdict[BlockHash, set[BlockHash]] = field(
        default_factory=lambda: defaultdict(set)
    )
    """Parent-to-children index for descendant processing."""

    _by_height: defaultdict[int, set[BlockHash]] = field(
        default_factory=lambda: defaultdict(set)
    )
    """Height-to-hashes index of annotated entries."""

    _arrivals: int = 0
    """Number of entries ever added. Source of `CachedBlock.arrival`."""

    def __len__(self) -> int:
        """Return the number of cached blocks."""
        return len(self._blocks)

    def __contains__(self, block_hash: BlockHash) -> bool:
        """Check if a block hash is in the cache."""
        return block_hash in self._blocks

    def add(self, block: Block) -> CachedBlock:
        """
        Add a block to the cache.

        The same block added twice returns the existing entry. A new entry
        starts unannotated; if the orphan bound is reached, the oldest
        orphan is evicted first.

        Returns:
            The cache entry, either newly created or existing.
        """
        existing = self._blocks.get(block.hash)
        if existing is not None:
            return existing

        if len(self._orphans) >= self.max_orphans:
            self._evict_oldest_orphan()

        self._arrivals += 1
        cached = CachedBlock(block=block, arrival=self._arrivals)
        self._blocks[block.hash] = cached
        self._orphans[block.hash] = None
        self._by_parent[block.prev_hash].add(block.hash)
        return cached

    def get(self, block_hash: BlockHash) -> CachedBlock | None:
        """Get a cached block by hash."""
        return self._blocks.get(block_hash)

    def annotate(self, block_hash: BlockHash, height: int, work: int) -> None:
        """
        Record the height and work the chain state assigned to a block.

        Raises:
            KeyError: If the block is not cached.
        """
        cached = self._blocks[block_hash]
        if cached.height is not None:
            self._discard_height(cached.height, block_hash)
        cached.height = height
        cached.work = work
        self._orphans.pop(block_hash, None)
        self._by_height[height].add(block_hash)

    def remove(self, block_hash: BlockHash) -> CachedBlock | None:
        """
        Remove a block from the cache.

        Returns:
            The removed entry if it existed, None otherwise.
        """
        cached = self._blocks.pop(block_hash, None)
        if cached is None:
            return None

        self._orphans.pop(block_hash, None)
        if cached.height is not None:
            self._discard_height(cached.height, block_hash)

        # Drop empty child sets so the index does not grow with every parent.
        children = self._by_parent.get(cached.prev_hash)
        if children:
            children.discard(block_hash)
            if not children:
                del self._by_parent[cached.prev_hash]

        return cached

    def get_children(self, parent_hash: BlockHash) -> list[CachedBlock]:
        """
        Unannotated cached children of a parent.

        These are the blocks that were waiting for the parent to connect.
        Results are ordered by arrival.
        """
        child_hashes = self._by_parent.get(parent_hash, set())
        children = [
            self._blocks[h]
            for h in child_hashes
            if h in self._blocks and not self._blocks[h].is_annotated
        ]
        return sorted(children, key=lambda c: c.arrival)

    def prune(self, tip_height: int) -> int:
        """
        Evict annotated entries more than `prune_depth` below the tip.

        Side-branch blocks are evicted by height just like canonical ones.

        Returns:
            Number of evicted entries.
        """
        cutoff = tip_height - self.prune_depth
        stale_heights = [h for h in self._by_height if h < cutoff]

        removed = 0
        for height in stale_heights:
            for block_hash in list(self._by_height.get(height, ())):
                self.remove(block_hash)
                removed += 1

        if removed:
            logger.debug("Pruned %d cached blocks below height %d", removed, cutoff)
        return removed

    @property
    def orphan_count(self) -> int:
        """Number of unannotated entries."""
        return len(self._orphans)

    @property
    def is_empty(self) -> bool:
        """Check if the cache is empty."""
        return len(self._blocks) == 0

    @property
    def lowest_height(self) -> int | None:
        """Lowest annotated height in the cache, or None."""
        return min(self._by_height) if self._by_height else None

    def clear(self) -> None:
        """Remove all blocks from the cache."""
        self._blocks.clear()
        self._orphans.clear()
        self._by_parent.clear()
        self._by_height.clear()

    def _discard_height(self, height: int, block_hash: BlockHash) -> None:
        hashes = self._by_height.get(height)
        if hashes:
            hashes.discard(block_hash)
            if not hashes:
                del self._by_height[height]

    def _evict_oldest_orphan(self) -> None:
        """Evict the orphan that arrived first."""
        oldest = next(iter(self._orphans), None)
        if oldest is None:
            return
        self.remove(oldest)
        logger.debug("Evicted orphan block %s", oldest.short())
